"""Code extraction for tangle mode.

``documentation`` levels

`0`
: code only.

`1`
: every chunk is preceded by a ``# ---- label ----`` marker that
  :func:`~chunkweave.core.patterns.read_chunk` understands.

`2`
: prose is kept as ``#'`` comments as well.
"""

from __future__ import annotations

from collections.abc import Iterable

from .options import ChunkHeader, ChunkOptions
from .segments import Segment


def chunk_marker(header: ChunkHeader) -> str:
    """Return the comment line announcing a chunk in the script."""
    params = [f"{name}={value!r}" for name, value in header.params.items()]
    title = ", ".join([header.label, *params])
    return f"# ---- {title} ----"


def tangle_chunk(
    header: ChunkHeader,
    options: ChunkOptions,
    code: str,
    documentation: int,
) -> str:
    if not options.purl:
        return ""
    if options.eval is False:
        code = "\n".join(f"# {line}" if line.strip() else line for line in code.split("\n"))
    if documentation >= 1:
        return f"{chunk_marker(header)}\n{code}"
    return code


def tangle_prose(segment: Segment, documentation: int) -> str:
    if documentation < 2:
        return ""
    return "\n".join(
        f"#' {line}" if line.strip() else "#'" for line in segment.raw_text.split("\n")
    )


def assemble(pieces: Iterable[str], documentation: int) -> str:
    """Join tangled pieces, dropping the blank ones."""
    kept = [piece for piece in pieces if piece.strip()]
    if not kept:
        return ""
    separator = "\n" if documentation == 0 else "\n\n"
    return separator.join(kept) + "\n"


__all__ = ["assemble", "chunk_marker", "tangle_chunk", "tangle_prose"]
