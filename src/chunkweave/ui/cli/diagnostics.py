"""Emitter rendering weaving events for the ``weave`` and ``tangle`` commands.

Every event is recorded on the :class:`~chunkweave.ui.cli.state.CLIState`. Cache
hits are only printed with ``-v``; a ``quitting`` event is printed as a warning
naming the chunk that stopped the run.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

from chunkweave.core.diagnostics import format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state, render_message


_VERBOSE_EVENTS = frozenset({"cache_hit"})


class CliEmitter:
    """Print pipeline diagnostics on stderr."""

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self._state = state or get_cli_state()
        if debug_enabled is None:
            debug_enabled = self._state.show_tracebacks
        self.debug_enabled = bool(debug_enabled)

    @property
    def outputs(self) -> list[Path]:
        """Files written so far, in order."""
        return [
            Path(event["output"])
            for event in self._state.events.get("output_file", [])
            if event.get("output") is not None
        ]

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        data = dict(payload)
        self._state.record_event(name, data)
        if name in _VERBOSE_EVENTS and self._state.verbosity < 1:
            return
        message = format_event_message(name, data)
        if not message:
            return
        if name == "quitting":
            label = data.get("label")
            emit_warning(f"{message}, chunk '{label}'" if label else message)
        else:
            render_message("info", message)


__all__ = ["CliEmitter"]
