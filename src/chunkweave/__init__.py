"""Primary public API for chunkweave."""

from __future__ import annotations

from chunkweave.core.config import ConfigError, WeaveConfig, load_config
from chunkweave.core.diagnostics import DiagnosticEmitter, LoggingEmitter, NullEmitter
from chunkweave.core.engine import knit_print
from chunkweave.core.exceptions import (
    DuplicateLabelError,
    EvaluationError,
    MalformedOptionsError,
    NotCacheableError,
    UnresolvedPatternError,
    WeaveError,
)
from chunkweave.core.hooks import HookRegistry
from chunkweave.core.options import ChunkOptions
from chunkweave.core.patterns import read_chunk
from chunkweave.core.pipeline import (
    KnitResult,
    auto_out_name,
    knit,
    knit_child,
    knit_document,
    knit_exit,
    knit_meta,
    purl,
    set_chunk_defaults,
)
from chunkweave.core.results import asis_output
from chunkweave.core.state import KnitOptions, Session, get_session, set_session
from chunkweave.version import get_version


__version__ = get_version()

__all__ = [
    "ChunkOptions",
    "ConfigError",
    "DiagnosticEmitter",
    "DuplicateLabelError",
    "EvaluationError",
    "HookRegistry",
    "KnitOptions",
    "KnitResult",
    "LoggingEmitter",
    "MalformedOptionsError",
    "NotCacheableError",
    "NullEmitter",
    "Session",
    "UnresolvedPatternError",
    "WeaveConfig",
    "WeaveError",
    "__version__",
    "asis_output",
    "auto_out_name",
    "get_session",
    "knit",
    "knit_child",
    "knit_document",
    "knit_exit",
    "knit_meta",
    "knit_print",
    "load_config",
    "purl",
    "read_chunk",
    "set_chunk_defaults",
    "set_session",
]
