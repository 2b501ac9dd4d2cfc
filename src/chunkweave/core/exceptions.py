"""Custom exception hierarchy for the weaving pipeline."""

from __future__ import annotations


class WeaveError(RuntimeError):
    """Base exception for weaving and tangling failures."""

    def __init__(
        self,
        message: str,
        *,
        label: str | None = None,
        lines: tuple[int, int] | None = None,
    ) -> None:
        super().__init__(message)
        self.label = label
        self.lines = lines
        self.reported = False


class MalformedOptionsError(WeaveError):
    """Raised when a chunk header cannot be parsed into options."""


class DuplicateLabelError(WeaveError):
    """Raised when two chunks of a document claim the same label."""


class NotCacheableError(WeaveError):
    """Raised when caching is requested on output marked as not cacheable."""


class EvaluationError(WeaveError):
    """Raised when chunk code fails and the chunk does not tolerate errors."""

    def __init__(
        self,
        message: str,
        *,
        label: str | None = None,
        lines: tuple[int, int] | None = None,
        partial: str = "",
    ) -> None:
        super().__init__(message, label=label, lines=lines)
        self.partial = partial


class UnresolvedPatternError(WeaveError):
    """Raised when no chunk syntax can be determined for an input."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "DuplicateLabelError",
    "EvaluationError",
    "MalformedOptionsError",
    "NotCacheableError",
    "UnresolvedPatternError",
    "WeaveError",
    "exception_hint",
    "exception_messages",
]
