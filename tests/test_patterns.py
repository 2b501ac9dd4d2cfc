from __future__ import annotations

import pytest

from chunkweave.core.exceptions import UnresolvedPatternError
from chunkweave.core.patterns import (
    DIALECTS,
    detect_dialect,
    get_dialect,
    read_chunk,
    split_document,
    split_front_matter,
)
from chunkweave.core.segments import SegmentKind


MARKDOWN = (
    "Text.\n"
    "\n"
    "```{python}\n"
    "x = 1+1\n"
    "```\n"
    "\n"
    "Result:\n"
    "```{python show, echo=False}\n"
    "print(x)\n"
    "```\n"
)


def test_split_markdown_document_into_segments() -> None:
    segments = split_document(MARKDOWN, DIALECTS["md"])

    assert [segment.kind for segment in segments] == [
        SegmentKind.PROSE,
        SegmentKind.CODE,
        SegmentKind.PROSE,
        SegmentKind.CODE,
        SegmentKind.PROSE,
    ]
    assert segments[1].code == "x = 1+1"
    assert segments[1].lines == (3, 5)
    assert segments[3].option_string == "show, echo=False"
    assert segments[3].lines == (8, 10)


def test_split_document_preserves_text() -> None:
    segments = split_document(MARKDOWN, DIALECTS["md"])

    assert "\n".join(segment.raw_text for segment in segments) == MARKDOWN


def test_unclosed_chunk_runs_to_end_of_document() -> None:
    segments = split_document("```{python}\nx = 1\ny = 2", DIALECTS["md"])

    assert len(segments) == 1
    assert segments[0].code == "x = 1\ny = 2"
    assert segments[0].lines == (1, 3)


def test_unclosed_chunk_stops_at_next_header() -> None:
    text = "<<a>>=\nx = 1\n<<b>>=\ny = 2\n@"
    segments = split_document(text, DIALECTS["rnw"])

    assert [segment.option_string for segment in segments] == ["a", "b"]
    assert [segment.code for segment in segments] == ["x = 1", "y = 2"]


def test_split_rnw_and_html_chunks() -> None:
    rnw = split_document("Intro\n<<setup, cache=TRUE>>=\nimport math\n@\nOutro", DIALECTS["rnw"])
    assert rnw[1].option_string == "setup, cache=TRUE"
    assert rnw[1].code == "import math"

    html = split_document(
        "<p>x</p>\n<!-- begin.pycode calc\n1 + 1\nend.pycode -->", DIALECTS["html"]
    )
    assert html[1].option_string == "calc"
    assert html[1].code == "1 + 1"


def test_inline_code_is_located_in_prose() -> None:
    segments = split_document("Two is `py 1 + 1`.", DIALECTS["md"])

    (inline,) = segments[0].inline
    assert inline.code == "1 + 1"
    assert segments[0].raw_text[inline.start : inline.end] == "`py 1 + 1`"


@pytest.mark.parametrize(
    ("ext", "name"),
    [("pmd", "md"), ("Rmd", "md"), ("pnw", "rnw"), ("tex", "rnw"), ("phtml", "html"), ("prst", "rst")],
)
def test_detect_dialect_by_extension(ext: str, name: str) -> None:
    dialect = detect_dialect("", ext)

    assert dialect is not None
    assert dialect.name == name


def test_detect_dialect_by_content() -> None:
    assert detect_dialect("<<>>=\n1\n@").name == "rnw"
    assert detect_dialect("```{py}\n1\n```").name == "md"
    assert detect_dialect("plain text only") is None


def test_get_dialect_rejects_unknown_names() -> None:
    with pytest.raises(UnresolvedPatternError):
        get_dialect("asciidoc")


def test_split_front_matter() -> None:
    metadata, body = split_front_matter("---\ntitle: Demo\n---\nBody")

    assert metadata == {"title": "Demo"}
    assert body == "Body"
    assert split_front_matter("No metadata") == ({}, "No metadata")


def test_read_chunk_splits_script_on_markers() -> None:
    script = "# ---- a ----\nx = 1\n\n# ---- b, echo=False ----\ny = 2\n"

    assert read_chunk(script) == {"a": "x = 1", "b": "y = 2"}
