"""Chunk syntax dialects and the document splitter.

Each :class:`Dialect` bundles the regular expressions recognising the start and
end of a code chunk plus the inline expression syntax for one family of source
documents. :func:`split_document` walks the lines of a document and produces the
ordered :class:`~chunkweave.core.segments.Segment` list consumed by the
pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import Any

import yaml

from .exceptions import UnresolvedPatternError
from .segments import InlineCode, Segment, SegmentKind


@dataclass(frozen=True, slots=True)
class Dialect:
    """Chunk delimiters and inline syntax for one document family."""

    name: str
    out_format: str
    chunk_begin: re.Pattern[str]
    chunk_end: re.Pattern[str]
    inline_code: re.Pattern[str] | None = None


DIALECTS: dict[str, Dialect] = {
    "md": Dialect(
        name="md",
        out_format="markdown",
        chunk_begin=re.compile(r"^[\t >]*```+\s*\{(?:python|py)\b(.*)\}\s*$"),
        chunk_end=re.compile(r"^[\t >]*```+\s*$"),
        inline_code=re.compile(r"(?<!`)`py\s+([^`]+)`"),
    ),
    "rnw": Dialect(
        name="rnw",
        out_format="latex",
        chunk_begin=re.compile(r"^\s*<<(.*)>>=.*$"),
        chunk_end=re.compile(r"^\s*@\s*(%+.*|)$"),
        inline_code=re.compile(r"\\Sexpr\{([^}]+)\}"),
    ),
    "html": Dialect(
        name="html",
        out_format="html",
        chunk_begin=re.compile(r"^\s*<!--\s*begin\.pycode(.*)"),
        chunk_end=re.compile(r"^\s*end\.pycode\s*-->"),
        inline_code=re.compile(r"<!--\s*pyinline(.+?)-->"),
    ),
    "rst": Dialect(
        name="rst",
        out_format="rst",
        chunk_begin=re.compile(r"^\s*[.][.]\s+\{(?:python|py)\b(.*)\}\s*$"),
        chunk_end=re.compile(r"^\s*[.][.]\s+[.][.]\s*$"),
        inline_code=re.compile(r":py:`([^`]+)`"),
    ),
}

EXTENSION_DIALECTS: dict[str, str] = {
    "md": "md",
    "markdown": "md",
    "pmd": "md",
    "pmarkdown": "md",
    "rmd": "md",
    "rnw": "rnw",
    "snw": "rnw",
    "pnw": "rnw",
    "tex": "rnw",
    "ptex": "rnw",
    "stex": "rnw",
    "htm": "html",
    "html": "html",
    "phtml": "html",
    "rst": "rst",
    "prst": "rst",
}

_DETECTION_ORDER = ("rnw", "md", "html", "rst")


def get_dialect(name: str) -> Dialect:
    """Return the registered dialect called ``name``."""
    try:
        return DIALECTS[name]
    except KeyError as exc:
        raise UnresolvedPatternError(f"Unknown chunk dialect '{name}'.") from exc


def detect_dialect(text: str, ext: str | None = None) -> Dialect | None:
    """Pick a dialect from the file extension, falling back to content sniffing."""
    if ext:
        name = EXTENSION_DIALECTS.get(ext.lower().lstrip("."))
        if name is not None:
            return DIALECTS[name]
    lines = text.split("\n")
    for name in _DETECTION_ORDER:
        dialect = DIALECTS[name]
        if any(dialect.chunk_begin.match(line) for line in lines):
            return dialect
    return None


def _clean_params(raw: str) -> str:
    return raw.strip().lstrip(",").strip()


def _prose_segment(lines: list[str], start: int, dialect: Dialect) -> Segment:
    raw = "\n".join(lines)
    inline: tuple[InlineCode, ...] = ()
    if dialect.inline_code is not None:
        inline = tuple(
            InlineCode(start=match.start(), end=match.end(), code=match.group(1).strip())
            for match in dialect.inline_code.finditer(raw)
        )
    return Segment(
        kind=SegmentKind.PROSE,
        raw_text=raw,
        lines=(start, start + len(lines) - 1),
        inline=inline,
    )


def split_document(text: str, dialect: Dialect) -> list[Segment]:
    """Split ``text`` into ordered prose and code segments.

    A chunk without a closing delimiter runs until the next chunk header or the
    end of the document.
    """
    lines = text.split("\n")
    segments: list[Segment] = []
    prose: list[str] = []
    prose_start = 1
    index = 0

    while index < len(lines):
        line = lines[index]
        begin = dialect.chunk_begin.match(line)
        if begin is None:
            if not prose:
                prose_start = index + 1
            prose.append(line)
            index += 1
            continue

        if prose:
            segments.append(_prose_segment(prose, prose_start, dialect))
            prose = []

        start = index
        body: list[str] = []
        index += 1
        closed = False
        while index < len(lines):
            current = lines[index]
            if dialect.chunk_end.match(current):
                closed = True
                break
            if dialect.chunk_begin.match(current):
                break
            body.append(current)
            index += 1
        end = index if closed else index - 1
        segments.append(
            Segment(
                kind=SegmentKind.CODE,
                raw_text="\n".join(lines[start : end + 1]),
                lines=(start + 1, end + 1),
                option_string=_clean_params(begin.group(1)),
                code="\n".join(body),
            )
        )
        if closed:
            index += 1

    if prose:
        segments.append(_prose_segment(prose, prose_start, dialect))
    return segments


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from Markdown content, returning metadata and body."""
    candidate = source.lstrip("\ufeff")
    prefix_len = len(source) - len(candidate)
    lines = candidate.split("\n")
    if not lines or lines[0].strip() != "---":
        return {}, source

    closing_index: int | None = None
    for idx, line in enumerate(lines[1:], start=1):
        if line.strip() in {"---", "..."}:
            closing_index = idx
            break

    if closing_index is None:
        return {}, source

    raw_block = "\n".join(lines[1:closing_index])
    try:
        metadata = yaml.safe_load(raw_block) or {}
    except yaml.YAMLError:
        return {}, source

    if not isinstance(metadata, dict):
        metadata = {}

    body = "\n".join(lines[closing_index + 1 :])
    return metadata, source[:prefix_len] + body


_SCRIPT_LABEL = re.compile(r"^#+\s*-{4}\s*(.+?)\s*-*\s*$")


def read_chunk(text: str) -> dict[str, str]:
    """Split a script on ``# ---- label ----`` markers into labelled code.

    Lines before the first marker are ignored.
    """
    chunks: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.split("\n"):
        match = _SCRIPT_LABEL.match(line)
        if match:
            label = match.group(1).split(",")[0].strip()
            current = chunks.setdefault(label, [])
            continue
        if current is not None:
            current.append(line)
    return {label: "\n".join(body).strip("\n") for label, body in chunks.items()}


__all__ = [
    "DIALECTS",
    "EXTENSION_DIALECTS",
    "Dialect",
    "detect_dialect",
    "get_dialect",
    "read_chunk",
    "split_document",
    "split_front_matter",
]
