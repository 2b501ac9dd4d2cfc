"""Pygments integration for highlighted source echoes."""

from __future__ import annotations

from pygments import highlight
from pygments.formatter import Formatter
from pygments.formatters import HtmlFormatter, LatexFormatter
from pygments.lexer import Lexer
from pygments.lexers import ClassNotFound, TextLexer, get_lexer_by_name


def _lexer_for(language: str) -> Lexer:
    try:
        return get_lexer_by_name(language or "text")
    except ClassNotFound:
        return TextLexer()


class PygmentsHighlighter:
    """Convert chunk source to LaTeX or HTML markup using Pygments."""

    def __init__(
        self,
        *,
        commandprefix: str = "PY",
        style: str = "bw",
        verboptions: str | None = None,
        cssclass: str = "highlight",
    ) -> None:
        self.commandprefix = commandprefix
        self.style = style
        self.verboptions = verboptions or r"breaklines, commandchars=\\\{\}"
        self.cssclass = cssclass

    def latex_formatter(self) -> LatexFormatter:
        return LatexFormatter(
            full=False,
            style=self.style,
            commandprefix=self.commandprefix,
            verboptions=self.verboptions,
        )

    def html_formatter(self) -> HtmlFormatter:
        return HtmlFormatter(style=self.style, cssclass=self.cssclass)

    def _render(self, code: str, language: str, formatter: Formatter) -> str:
        return highlight(code, _lexer_for(language), formatter)

    def render_latex(self, code: str, language: str) -> str:
        """Return a ``Verbatim`` environment with highlighting macros."""
        return self._render(code, language, self.latex_formatter())

    def render_html(self, code: str, language: str) -> str:
        """Return a ``div``/``pre`` block with highlighting spans."""
        return self._render(code, language, self.html_formatter())

    def latex_style_defs(self) -> str:
        return self.latex_formatter().get_style_defs()

    def html_style_defs(self) -> str:
        return self.html_formatter().get_style_defs(f".{self.cssclass}")


__all__ = ["PygmentsHighlighter"]
