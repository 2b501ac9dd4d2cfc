"""Map evaluation result items onto output markup through the hook registry."""

from __future__ import annotations

import logging
import textwrap
from typing import TYPE_CHECKING

from .exceptions import NotCacheableError
from .options import ChunkOptions
from .plots import save_plot_variants
from .results import (
    ErrorItem,
    MessageItem,
    PlotItem,
    ResultItem,
    SourceItem,
    TextItem,
    WarningItem,
)


if TYPE_CHECKING:
    from .state import PipelineState


_log = logging.getLogger(__name__)


def comment_out(text: str, prefix: str | None) -> str:
    """Prefix every line of ``text`` with ``prefix`` and a space.

    A single trailing newline is dropped first and always restored, so the
    result ends with exactly one newline.
    """
    if text.endswith("\n"):
        text = text[:-1]
    if prefix:
        text = "\n".join(f"{prefix} {line}" for line in text.split("\n"))
    return f"{text}\n"


def add_prompt(source: str) -> str:
    lines = source.split("\n")
    return "\n".join(
        (">>> " if index == 0 else "... ") + line for index, line in enumerate(lines)
    )


def _wrap_message(message: str, state: PipelineState) -> str:
    if state.out_format == "latex":
        return message
    width = state.session.knit_options.width
    return "\n".join(
        textwrap.fill(line, width=width) if len(line) > width else line
        for line in message.split("\n")
    )


def _header(kind: str, message: str, call: str | None) -> str:
    return f"{kind} in {call}: {message}" if call else f"{kind}: {message}"


def wrap_source(item: SourceItem, options: ChunkOptions, state: PipelineState) -> str:
    source = item.src[:-1] if item.src.endswith("\n") else item.src
    if options.strip_white and not options.collapse:
        source = textwrap.dedent(source).strip("\n")
    if not source.strip():
        return ""
    if options.prompt:
        source = add_prompt(source)
    return state.hooks.source(f"{source}\n", options)


def wrap_text(item: TextItem, options: ChunkOptions, state: PipelineState) -> str:
    if options.results == "hide" or not item.text:
        return ""
    if item.asis:
        if options.cache and not item.cacheable:
            raise NotCacheableError(
                f"Output of chunk '{options.label}' cannot be cached; "
                "set cache=False on this chunk.",
                label=options.label,
            )
        state.session.meta.extend(item.meta)
        if state.out_format != "latex":
            return item.text
        return state.hooks.output(item.text, options.model_copy(update={"results": "asis"}))
    if options.results == "asis":
        if state.out_format != "latex":
            return item.text
        return state.hooks.output(item.text, options)
    return state.hooks.output(comment_out(item.text, options.comment), options)


def _wrap_condition(
    kind: str,
    message: str,
    options: ChunkOptions,
    state: PipelineState,
) -> str:
    state.log.add(kind, options.label, message)
    if kind == "warning" and not options.warning:
        return ""
    if kind == "message" and not options.message:
        return ""
    text = comment_out(_wrap_message(message, state), options.comment)
    return state.hooks.get(kind)(text, options)


def wrap_plot(item: PlotItem, options: ChunkOptions, state: PipelineState) -> str:
    number = state.next_figure()
    paths = save_plot_variants(item.plot, options, state.session.plot_writer, number)
    _log.debug("Chunk '%s' wrote figure %d to %s", options.label, number, paths)
    if options.fig_show == "hide" or not paths:
        return ""
    return state.hooks.plot(paths[0].as_posix(), options)


def wrap(item: ResultItem, options: ChunkOptions, state: PipelineState) -> str:
    """Return the output text for one evaluation result item.

    Items of unknown kinds produce no output.
    """
    match item:
        case SourceItem():
            return wrap_source(item, options, state)
        case TextItem():
            return wrap_text(item, options, state)
        case WarningItem(message=message, call=call):
            return _wrap_condition("warning", _header("Warning", message, call), options, state)
        case MessageItem(message=message):
            return _wrap_condition("message", message.rstrip("\n"), options, state)
        case ErrorItem(message=message, call=call):
            return _wrap_condition("error", _header("Error", message, call), options, state)
        case PlotItem():
            return wrap_plot(item, options, state)
        case _:
            _log.debug("Dropping result item of unknown kind %s", type(item).__name__)
            return ""


__all__ = [
    "add_prompt",
    "comment_out",
    "wrap",
    "wrap_plot",
    "wrap_source",
    "wrap_text",
]
