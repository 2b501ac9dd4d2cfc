from __future__ import annotations

import pytest

from chunkweave.adapters.formats import hooks_for_format
from chunkweave.adapters.formats.latex import render_latex
from chunkweave.adapters.latex.utils import escape_latex_chars, latex_length
from chunkweave.core.exceptions import UnresolvedPatternError
from chunkweave.core.hooks import HookRegistry, format_inline_value
from chunkweave.core.options import ChunkOptions


def test_override_rejects_unknown_hooks() -> None:
    with pytest.raises(KeyError):
        HookRegistry().override(footer=lambda text: text)


def test_override_returns_a_copy() -> None:
    base = HookRegistry()

    custom = base.override(inline=lambda value: f"<{value}>")

    assert custom.inline(1) == "<1>"
    assert base.inline(1) == "1"


def test_unknown_format_is_rejected() -> None:
    with pytest.raises(UnresolvedPatternError):
        hooks_for_format("docx")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (3, "3"),
        (True, "True"),
        (None, "None"),
        (2 / 3, "0.666667"),
        (1e-10, "1e-10"),
        ([1, 2.5], "1, 2.5"),
        ("text", "text"),
    ],
)
def test_inline_values_are_formatted(value: object, expected: str) -> None:
    assert format_inline_value(value) == expected


def test_markdown_plot_attributes() -> None:
    hooks = hooks_for_format("markdown")
    options = ChunkOptions(label="p", fig_cap="A plot", out_width="50%", fig_align="center")

    assert hooks.plot("figure/p-1.png", options) == (
        "![A plot](figure/p-1.png){width=50% fig-align=center}\n"
    )


def test_markdown_output_uses_longer_fence_when_needed() -> None:
    hooks = hooks_for_format("markdown")

    assert hooks.output("```\n", ChunkOptions()) == "````\n```\n````\n"


def test_latex_preamble_is_inserted_once() -> None:
    hooks = render_latex()
    text = "\\documentclass{article}\n\\begin{document}\nx\n\\end{document}"

    once = hooks.document(text)

    assert once.count("% chunkweave preamble") == 1
    assert hooks.document(once) == once
    assert once.index("% chunkweave preamble") > once.index("\\documentclass")


def test_latex_figures_group_multiple_plots() -> None:
    hooks = render_latex()
    options = ChunkOptions(label="fit", fig_cap="Fit 100%", fig_num=2, out_width="50%")

    first = hooks.plot("a.pdf", options.model_copy(update={"fig_cur": 1}))
    last = hooks.plot("b.pdf", options.model_copy(update={"fig_cur": 2}))

    assert first == "\\begin{figure}\n\\includegraphics[width=0.5\\linewidth]{a.pdf}\n"
    assert "\\begin{figure}" not in last
    assert "\\caption{Fit 100\\%}" in last
    assert last.endswith("\\label{fig:fit}\n\\end{figure}\n")


def test_latex_source_without_highlighting_is_verbatim() -> None:
    hooks = render_latex()

    text = hooks.source("x = 1\n", ChunkOptions(highlight=False))

    assert text == "\\begin{verbatim}\nx = 1\n\\end{verbatim}\n"


def test_latex_highlighting_uses_pygments() -> None:
    text = render_latex().source("x = 1\n", ChunkOptions())

    assert "\\begin{Verbatim}" in text
    assert "\\PY" in text


def test_latex_inline_strings_are_escaped() -> None:
    assert render_latex().inline("a_b & c") == "a\\_b \\& c"


def test_html_hooks() -> None:
    hooks = hooks_for_format("html")
    options = ChunkOptions(label="c1")

    assert hooks.output("<1>\n", options) == '<pre class="output"><code>&lt;1&gt;\n</code></pre>\n'
    assert hooks.warning("w\n", options).startswith('<pre class="warning">')
    assert hooks.inline(3) == '<code class="inline">3</code>'
    assert hooks.chunk("x", options) == '<div class="chunk" id="chunk-c1">\nx</div>\n'
    assert 'class="highlight"' in hooks.source("x = 1\n", options)


def test_html_document_gets_stylesheet() -> None:
    document = hooks_for_format("html").document("<html><head></head><body></body></html>")

    assert 'id="chunkweave-style"' in document
    assert document.index("<style") < document.index("</head>")


def test_rst_hooks() -> None:
    hooks = hooks_for_format("rst")
    options = ChunkOptions(fig_cap="Caption")

    assert hooks.source("x = 1\n", ChunkOptions()) == (
        "\n.. code-block:: python\n\n    x = 1\n\n"
    )
    assert hooks.plot("p.png", options) == "\n.. figure:: p.png\n\n    Caption\n\n"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("50%", "0.5\\linewidth"),
        ("3in", "3in"),
        (None, None),
    ],
)
def test_latex_length(text: str | None, expected: str | None) -> None:
    assert latex_length(text) == expected


def test_escape_latex_chars() -> None:
    assert escape_latex_chars("~^\\") == "\\textasciitilde{}\\^{}\\textbackslash{}"
    encoded = escape_latex_chars("café", legacy_accents=True)
    assert encoded.startswith("caf")
    assert "\\'" in encoded
    assert "é" not in encoded
