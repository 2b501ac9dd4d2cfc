"""LaTeX escaping and length helpers used by the LaTeX output hooks."""

from __future__ import annotations

import re

from pylatexenc.latexencode import unicode_to_latex


_LATEX_SPECIALS = {
    "&": r"\&",
    "%": r"\%",
    "#": r"\#",
    "$": r"\$",
    "_": r"\_",
    "^": r"\^{}",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "\\": r"\textbackslash{}",
}

_PERCENT_LENGTH = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*%\s*$")


def escape_latex_chars(text: str, *, legacy_accents: bool = False) -> str:
    """Escape LaTeX special characters in inline values and captions.

    With ``legacy_accents`` non-ASCII characters are additionally encoded as
    LaTeX macros through pylatexenc, for engines without Unicode input.
    """
    if not text:
        return text
    escaped = "".join(_LATEX_SPECIALS.get(char, char) for char in text)
    if legacy_accents:
        escaped = unicode_to_latex(escaped, non_ascii_only=True, unknown_char_warning=False)
    return escaped


def latex_length(value: str | None) -> str | None:
    """Translate ``50%`` into a fraction of ``\\linewidth``; keep other lengths."""
    if value is None:
        return None
    match = _PERCENT_LENGTH.match(value)
    if match is None:
        return value
    fraction = float(match.group(1)) / 100
    return f"{fraction:g}\\linewidth"


__all__ = ["escape_latex_chars", "latex_length"]
