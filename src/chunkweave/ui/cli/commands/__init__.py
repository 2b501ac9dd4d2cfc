"""CLI command implementations exposed via `chunkweave.ui.cli`."""

from __future__ import annotations

from .tangle import tangle
from .weave import weave


__all__ = ["tangle", "weave"]
