"""Evaluation result items produced by the execution engine.

The engine returns an ordered list of these frozen records for one chunk. The
result wrapper maps each variant onto output markup through a single ``match``.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any


class AsIs(str):
    """Text that should be written to the output document without decoration."""

    meta: tuple[Any, ...]
    cacheable: bool

    def __new__(
        cls,
        value: object,
        meta: Sequence[Any] | None = None,
        cacheable: bool | None = None,
    ) -> AsIs:
        instance = super().__new__(cls, str(value))
        instance.meta = tuple(meta or ())
        instance.cacheable = (not instance.meta) if cacheable is None else cacheable
        return instance


def asis_output(
    value: object,
    meta: Sequence[Any] | None = None,
    cacheable: bool | None = None,
) -> AsIs:
    """Mark ``value`` so it is written as is.

    ``meta`` objects are collected while the document is processed and can be
    retrieved with ``knit_meta()`` afterwards. Output carrying metadata is not
    cacheable unless ``cacheable`` says otherwise, since restoring it from the
    cache would skip the side effect of registering that metadata.
    """
    return AsIs(value, meta=meta, cacheable=cacheable)


@dataclass(frozen=True, slots=True)
class SourceItem:
    """Echo of one or more source statements."""

    src: str


@dataclass(frozen=True, slots=True)
class TextItem:
    """Printed output or a displayed value."""

    text: str
    asis: bool = False
    cacheable: bool = True
    meta: tuple[Any, ...] = ()

    @classmethod
    def from_value(cls, value: str) -> TextItem:
        if isinstance(value, AsIs):
            return cls(text=str(value), asis=True, cacheable=value.cacheable, meta=value.meta)
        return cls(text=value)


@dataclass(frozen=True, slots=True)
class WarningItem:
    """Warning raised while evaluating a statement."""

    message: str
    call: str | None = None
    category: str = "UserWarning"


@dataclass(frozen=True, slots=True)
class MessageItem:
    """Diagnostic message written to stderr."""

    message: str


@dataclass(frozen=True, slots=True)
class ErrorItem:
    """Exception raised while evaluating a statement."""

    message: str
    call: str | None = None
    exc_type: str = "Exception"
    traceback: str = ""


@dataclass(frozen=True, slots=True)
class PlotItem:
    """Recorded graphic object waiting to be written to disk."""

    plot: Any = field(compare=False)


ResultItem = SourceItem | TextItem | WarningItem | MessageItem | ErrorItem | PlotItem


__all__ = [
    "AsIs",
    "ErrorItem",
    "MessageItem",
    "PlotItem",
    "ResultItem",
    "SourceItem",
    "TextItem",
    "WarningItem",
    "asis_output",
]
