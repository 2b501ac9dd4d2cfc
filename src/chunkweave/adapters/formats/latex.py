"""Output hooks producing LaTeX."""

from __future__ import annotations

from typing import Any

from chunkweave.adapters.latex.utils import escape_latex_chars, latex_length
from chunkweave.core.hooks import HookRegistry, format_inline_value
from chunkweave.core.options import ChunkOptions

from .highlight import PygmentsHighlighter


_PREAMBLE_MARKER = "% chunkweave preamble"
_ENVIRONMENT = r"""\newenvironment{chunkweave}{\par\smallskip}{\par\smallskip}"""


def _verbatim(text: str) -> str:
    body = text if text.endswith("\n") else f"{text}\n"
    return f"\\begin{{verbatim}}\n{body}\\end{{verbatim}}\n"


class LatexHooks:
    """LaTeX hook set; highlighting style definitions go into the preamble."""

    def __init__(self, highlighter: PygmentsHighlighter | None = None) -> None:
        self.highlighter = highlighter or PygmentsHighlighter()

    def source(self, text: str, options: ChunkOptions) -> str:
        if not options.highlight:
            return _verbatim(text)
        return self.highlighter.render_latex(text, options.engine)

    def output(self, text: str, options: ChunkOptions) -> str:
        if options.results == "asis":
            return text
        return _verbatim(text)

    def plot(self, path: str, options: ChunkOptions) -> str:
        sizes = []
        width = latex_length(options.out_width)
        height = latex_length(options.out_height)
        if width:
            sizes.append(f"width={width}")
        if height:
            sizes.append(f"height={height}")
        size = f"[{','.join(sizes)}]" if sizes else ""
        graphic = f"\\includegraphics{size}{{{path}}}"
        if options.fig_align == "center":
            graphic = f"{{\\centering {graphic}\n\n}}"
        elif options.fig_align == "right":
            graphic = f"\\hfill{{}}{graphic}"

        if not options.fig_cap:
            return f"{graphic}\n"
        first = options.fig_cur <= 1
        last = options.fig_cur >= options.fig_num
        lines = []
        if first:
            lines.append("\\begin{figure}")
        lines.append(graphic)
        if last:
            lines.append(f"\\caption{{{escape_latex_chars(options.fig_cap)}}}")
            lines.append(f"\\label{{fig:{options.label}}}")
            lines.append("\\end{figure}")
        return "\n".join(lines) + "\n"

    def inline(self, value: Any) -> str:
        if isinstance(value, str):
            return escape_latex_chars(value)
        return format_inline_value(value)

    def chunk(self, text: str, options: ChunkOptions) -> str:
        return f"\\begin{{chunkweave}}\n{text}\\end{{chunkweave}}\n"

    def preamble(self) -> str:
        return "\n".join(
            [
                _PREAMBLE_MARKER,
                r"\usepackage{fancyvrb}",
                r"\usepackage{color}",
                r"\usepackage{graphicx}",
                self.highlighter.latex_style_defs().rstrip("\n"),
                _ENVIRONMENT,
            ]
        )

    def document(self, text: str) -> str:
        """Insert the preamble after ``\\documentclass`` when the text has one."""
        if _PREAMBLE_MARKER in text:
            return text
        start = text.find("\\documentclass")
        if start < 0:
            return text
        end = text.find("\n", start)
        if end < 0:
            return f"{text}\n{self.preamble()}"
        return f"{text[: end + 1]}{self.preamble()}\n{text[end + 1 :]}"


def render_latex(highlighter: PygmentsHighlighter | None = None) -> HookRegistry:
    """Return hooks writing ``verbatim``/Pygments blocks and ``\\includegraphics``."""
    hooks = LatexHooks(highlighter)
    return HookRegistry(
        source=hooks.source,
        output=hooks.output,
        warning=hooks.output,
        message=hooks.output,
        error=hooks.output,
        plot=hooks.plot,
        inline=hooks.inline,
        chunk=hooks.chunk,
        document=hooks.document,
    )


__all__ = ["LatexHooks", "render_latex"]
