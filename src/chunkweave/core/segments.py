"""Segment model produced by the document splitter."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SegmentKind(Enum):
    """Kind of a split document unit."""

    PROSE = "prose"
    CODE = "code"


@dataclass(frozen=True, slots=True)
class InlineCode:
    """Inline expression embedded in a prose segment."""

    start: int
    end: int
    code: str


@dataclass(frozen=True, slots=True)
class Segment:
    """One unit of the split document, either prose or a code chunk."""

    kind: SegmentKind
    raw_text: str
    lines: tuple[int, int]
    option_string: str = ""
    code: str = ""
    inline: tuple[InlineCode, ...] = ()

    @property
    def is_code(self) -> bool:
        return self.kind is SegmentKind.CODE


__all__ = ["InlineCode", "Segment", "SegmentKind"]
