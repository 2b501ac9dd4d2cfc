"""Output hooks producing HTML."""

from __future__ import annotations

from collections.abc import Callable
from html import escape
from typing import Any

from chunkweave.core.hooks import HookRegistry, format_inline_value
from chunkweave.core.options import ChunkOptions

from .highlight import PygmentsHighlighter


_STYLE_ID = "chunkweave-style"


class HtmlHooks:
    """HTML hook set; the highlighting stylesheet goes into ``<head>``."""

    def __init__(self, highlighter: PygmentsHighlighter | None = None) -> None:
        self.highlighter = highlighter or PygmentsHighlighter(style="default")

    def source(self, text: str, options: ChunkOptions) -> str:
        if options.highlight:
            return self.highlighter.render_html(text, options.engine)
        return f'<pre class="source"><code>{escape(text)}</code></pre>\n'

    def block(self, kind: str) -> Callable[[str, ChunkOptions], str]:
        def hook(text: str, options: ChunkOptions) -> str:
            if kind == "output" and options.results == "asis":
                return text
            return f'<pre class="{kind}"><code>{escape(text)}</code></pre>\n'

        return hook

    def plot(self, path: str, options: ChunkOptions) -> str:
        attributes = [f'src="{escape(path)}"', f'alt="{escape(options.fig_cap or "")}"']
        if options.out_width:
            attributes.append(f'width="{escape(options.out_width)}"')
        if options.out_height:
            attributes.append(f'height="{escape(options.out_height)}"')
        image = f"<img {' '.join(attributes)} />"
        if options.fig_align != "default":
            return f'<div style="text-align: {options.fig_align}">{image}</div>\n'
        return f"{image}\n"

    def inline(self, value: Any) -> str:
        return f'<code class="inline">{escape(format_inline_value(value))}</code>'

    def chunk(self, text: str, options: ChunkOptions) -> str:
        return f'<div class="chunk" id="chunk-{escape(options.label)}">\n{text}</div>\n'

    def document(self, text: str) -> str:
        """Add the highlighting stylesheet before ``</head>`` when present."""
        if _STYLE_ID in text:
            return text
        position = text.find("</head>")
        if position < 0:
            return text
        style = (
            f'<style type="text/css" id="{_STYLE_ID}">\n'
            f"{self.highlighter.html_style_defs()}\n</style>\n"
        )
        return text[:position] + style + text[position:]


def render_html(highlighter: PygmentsHighlighter | None = None) -> HookRegistry:
    """Return hooks writing ``<pre>`` blocks and ``<img>`` tags."""
    hooks = HtmlHooks(highlighter)
    return HookRegistry(
        source=hooks.source,
        output=hooks.block("output"),
        warning=hooks.block("warning"),
        message=hooks.block("message"),
        error=hooks.block("error"),
        plot=hooks.plot,
        inline=hooks.inline,
        chunk=hooks.chunk,
        document=hooks.document,
    )


__all__ = ["HtmlHooks", "render_html"]
