"""Output hook registry.

The pipeline never writes markup itself: each kind of result goes through a
named hook. A :class:`HookRegistry` bundles one callable per hook point and is
built by the format renderers in :mod:`chunkweave.adapters.formats`.
"""

from __future__ import annotations

from collections.abc import Callable
import dataclasses
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any

from .options import ChunkOptions


ChunkHook = Callable[[str, ChunkOptions], str]
InlineHook = Callable[[Any], str]
DocumentHook = Callable[[str], str]

HOOK_NAMES = (
    "source",
    "output",
    "warning",
    "message",
    "error",
    "plot",
    "inline",
    "chunk",
    "document",
)


def _passthrough(text: str, options: ChunkOptions) -> str:
    return text


def _identity(text: str) -> str:
    return text


def format_inline_value(value: Any) -> str:
    """Format a value produced by inline code."""
    if isinstance(value, bool) or value is None:
        return str(value)
    if isinstance(value, Integral):
        return str(int(value))
    if isinstance(value, Real):
        return format(float(value), ".6g")
    if isinstance(value, (list, tuple)):
        return ", ".join(format_inline_value(item) for item in value)
    return str(value)


@dataclass(frozen=True, slots=True)
class HookRegistry:
    """One formatting function per hook point."""

    source: ChunkHook = _passthrough
    output: ChunkHook = _passthrough
    warning: ChunkHook = _passthrough
    message: ChunkHook = _passthrough
    error: ChunkHook = _passthrough
    plot: ChunkHook = _passthrough
    inline: InlineHook = format_inline_value
    chunk: ChunkHook = _passthrough
    document: DocumentHook = _identity

    def override(self, **hooks: Callable[..., str]) -> HookRegistry:
        """Return a copy with some hooks replaced."""
        unknown = sorted(set(hooks) - set(HOOK_NAMES))
        if unknown:
            msg = f"Unknown hook(s): {', '.join(unknown)}"
            raise KeyError(msg)
        return dataclasses.replace(self, **hooks)

    def get(self, name: str) -> Callable[..., str]:
        if name not in HOOK_NAMES:
            msg = f"Unknown hook '{name}'"
            raise KeyError(msg)
        return getattr(self, name)


__all__ = [
    "HOOK_NAMES",
    "ChunkHook",
    "DocumentHook",
    "HookRegistry",
    "InlineHook",
    "format_inline_value",
]
