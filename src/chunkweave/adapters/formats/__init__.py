"""Hook registries for the supported output formats."""

from __future__ import annotations

from collections.abc import Callable

from chunkweave.core.exceptions import UnresolvedPatternError
from chunkweave.core.hooks import HookRegistry

from .html import render_html
from .latex import render_latex
from .markdown import render_markdown
from .rst import render_rst


FORMAT_RENDERERS: dict[str, Callable[[], HookRegistry]] = {
    "markdown": render_markdown,
    "latex": render_latex,
    "html": render_html,
    "rst": render_rst,
}


def hooks_for_format(out_format: str) -> HookRegistry:
    """Return a fresh hook registry for ``out_format``."""
    try:
        factory = FORMAT_RENDERERS[out_format]
    except KeyError as exc:
        known = ", ".join(sorted(FORMAT_RENDERERS))
        raise UnresolvedPatternError(
            f"No output hooks for format '{out_format}' (known formats: {known})."
        ) from exc
    return factory()


__all__ = [
    "FORMAT_RENDERERS",
    "hooks_for_format",
    "render_html",
    "render_latex",
    "render_markdown",
    "render_rst",
]
