"""CLI state shared by the weave and tangle commands."""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
import sys
from typing import TYPE_CHECKING, Any

import click
import typer


if TYPE_CHECKING:
    from rich.console import Console

__all__ = [
    "CLIState",
    "debug_enabled",
    "emit_error",
    "emit_warning",
    "get_cli_state",
    "render_message",
    "set_cli_state",
]


@dataclass(slots=True)
class CLIState:
    """Verbosity, traceback mode and the pipeline events seen during a command."""

    verbosity: int = 0
    show_tracebacks: bool = False
    events: dict[str, list[dict[str, Any]]] = field(default_factory=dict, init=False)
    _err_console: Console | None = field(default=None, init=False, repr=False)

    @property
    def err_console(self) -> Console:
        """Diagnostics go to stderr so that ``-o -`` keeps stdout clean."""
        from rich.console import Console

        if self._err_console is None or self._err_console.file is not sys.stderr:
            self._err_console = Console(file=sys.stderr, highlight=False)
        return self._err_console

    def record_event(self, name: str, payload: Mapping[str, Any] | None = None) -> None:
        self.events.setdefault(name, []).append(dict(payload or {}))


_STATE_VAR: ContextVar[CLIState | None] = ContextVar("chunkweave_cli_state", default=None)


def _attached_state(ctx: click.Context | None) -> CLIState | None:
    while ctx is not None:
        if isinstance(ctx.obj, CLIState):
            return ctx.obj
        ctx = ctx.parent
    return None


def get_cli_state(
    ctx: typer.Context | click.Context | None = None,
    *,
    create: bool = True,
) -> CLIState:
    """Return the state attached to the click context, creating it on demand."""
    if ctx is None:
        ctx = click.get_current_context(silent=True)

    state = _attached_state(ctx)
    if state is None and ctx is not None and create:
        state = CLIState()
        ctx.obj = state
    if state is None:
        state = _STATE_VAR.get()
    if state is None:
        if not create:
            raise RuntimeError("CLI state is not initialised for this context.")
        state = CLIState()
    _STATE_VAR.set(state)
    return state


def set_cli_state(
    *,
    ctx: typer.Context | None = None,
    verbosity: int | None = None,
    debug: bool | None = None,
) -> CLIState:
    state = get_cli_state(ctx)
    if verbosity is not None:
        state.verbosity = max(0, verbosity)
    if debug is not None:
        state.show_tracebacks = debug
    return state


def _details(exception: BaseException, verbosity: int) -> list[str]:
    lines: list[str] = [f"type: {type(exception).__name__}"]
    label = getattr(exception, "label", None)
    if label:
        lines.append(f"chunk: {label}")
    span = getattr(exception, "lines", None)
    if span:
        lines.append(f"lines: {span[0]}-{span[1]}")
    if verbosity >= 2:
        cause = exception.__cause__ or exception.__context__
        seen: set[int] = set()
        while cause is not None and id(cause) not in seen:
            seen.add(id(cause))
            lines.append(f"caused by: {type(cause).__name__}: {cause}")
            cause = cause.__cause__ or cause.__context__
    return lines


def render_message(
    level: str,
    message: str,
    *,
    exception: BaseException | None = None,
) -> None:
    """Print a diagnostic to stderr; ``-v`` adds the chunk label and line range."""
    state = get_cli_state()
    if level == "info":
        state.err_console.print(message, markup=False)
        return

    from rich.text import Text

    style = "red" if level == "error" else "yellow"
    text = Text.assemble((f"{level}: ", f"bold {style}"), (message, style))
    if exception is not None and state.verbosity >= 1:
        text.append("\n")
        text.append("\n".join(_details(exception, state.verbosity)), style=style)
    state.err_console.print(text)


def emit_warning(message: str, *, exception: BaseException | None = None) -> None:
    render_message("warning", message, exception=exception)


def emit_error(message: str, *, exception: BaseException | None = None) -> None:
    render_message("error", message, exception=exception)


def debug_enabled() -> bool:
    """Return whether ``--debug`` asked for full tracebacks."""
    try:
        return get_cli_state(create=False).show_tracebacks
    except RuntimeError:
        return False
