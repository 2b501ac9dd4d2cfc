"""Session configuration and per-run pipeline state.

A :class:`Session` carries what a user configures once and reuses across runs:
knit options, chunk defaults, hook overrides, the plot writer and the metadata
collected from custom result handlers. A :class:`PipelineState` is created by
every top-level ``knit()`` call, shared by nested child documents, and discarded
when the call returns.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from pathlib import Path
from threading import RLock
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .cache import ChunkCache
from .diagnostics import DiagnosticEmitter
from .engine import PlotRecorder, knit_print
from .hooks import HookRegistry
from .options import LabelRegistry, normalise_options
from .patterns import Dialect
from .plots import DefaultPlotWriter, PlotWriter


LogKind = Literal["warning", "message", "error"]


class KnitOptions(BaseModel):
    """Options controlling a whole run rather than one chunk."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    progress: bool = True
    verbose: bool = False
    documentation: int = Field(default=1, ge=0, le=2)
    root_dir: Path | None = None
    out_format: str | None = None
    dialect: str | None = None
    width: int = Field(default=75, gt=0)
    tolerate_unknown_options: bool = False
    unnamed_chunk_label: str = "unnamed-chunk"
    concordance: bool = False
    encoding: str = "utf-8"


@dataclass(slots=True)
class Session:
    """User-level configuration reused across runs."""

    knit_options: KnitOptions = field(default_factory=KnitOptions)
    chunk_defaults: dict[str, Any] = field(default_factory=dict)
    hooks: dict[str, Callable[..., str]] = field(default_factory=dict)
    plot_writer: PlotWriter = field(default_factory=DefaultPlotWriter)
    emitter: DiagnosticEmitter | None = None
    render: Callable[[Any], str] = knit_print
    meta: list[Any] = field(default_factory=list)

    def set_chunk_defaults(self, **options: Any) -> None:
        """Update the chunk defaults; ``fig_width`` and ``fig.width`` are equivalent."""
        self.chunk_defaults.update(normalise_options(options))

    def set_knit_options(self, **options: Any) -> None:
        for key, value in options.items():
            setattr(self.knit_options, key, value)

    def set_hooks(self, **hooks: Callable[..., str]) -> None:
        """Override output hooks for every subsequent run."""
        self.hooks.update(hooks)

    def knit_meta(self, cls: type | None = None, *, clean: bool = True) -> list[Any]:
        """Return collected metadata, optionally filtered by type, clearing it by default."""
        matches = [item for item in self.meta if cls is None or isinstance(item, cls)]
        if clean:
            keep = [item for item in self.meta if not any(item is m for m in matches)]
            self.meta[:] = keep
        return matches


_DEFAULT_SESSION: Session | None = None
_LOCK = RLock()


def get_session() -> Session:
    """Return the lazily created process-wide session."""
    global _DEFAULT_SESSION
    with _LOCK:
        if _DEFAULT_SESSION is None:
            _DEFAULT_SESSION = Session()
        return _DEFAULT_SESSION


def set_session(session: Session | None) -> Session | None:
    """Replace the process-wide session, returning the previous one."""
    global _DEFAULT_SESSION
    with _LOCK:
        previous = _DEFAULT_SESSION
        _DEFAULT_SESSION = session
        return previous


@dataclass(slots=True)
class KnitLog:
    """Warnings, messages and errors emitted while weaving, keyed by kind."""

    warning: list[str] = field(default_factory=list)
    message: list[str] = field(default_factory=list)
    error: list[str] = field(default_factory=list)

    def add(self, kind: LogKind, label: str, text: str) -> None:
        getattr(self, kind).append(f"Chunk {label}:\n  {text}")

    def entries(self, kind: LogKind) -> list[str]:
        return list(getattr(self, kind))

    def clear(self) -> None:
        self.warning.clear()
        self.message.clear()
        self.error.clear()

    def __bool__(self) -> bool:
        return bool(self.warning or self.message or self.error)


def line_count(text: str) -> int:
    """Number of lines ``text`` occupies once joined into the output document."""
    return text.count("\n") + 1


@dataclass(slots=True)
class Concordance:
    """Map between input line ranges and the output lines they produced."""

    infile: Path | None = None
    outfile: Path | None = None
    entries: list[tuple[tuple[int, int], int]] = field(default_factory=list)

    def add(self, lines: tuple[int, int], output: str) -> None:
        self.entries.append((lines, line_count(output)))

    def mapping(self) -> list[int]:
        """Return, for every output line, the input line it originates from.

        Segments copied line for line map one to one; other segments map every
        output line onto their first input line.
        """
        result: list[int] = []
        for (start, end), count in self.entries:
            if count == end - start + 1:
                result.extend(range(start, end + 1))
            else:
                result.extend([start] * count)
        return result


@dataclass(slots=True)
class DocumentFrame:
    """Per-document part of the state; one frame per parent or child document."""

    input_path: Path | None
    dialect: Dialect
    outputs: list[str] = field(default_factory=list)
    front_matter: Mapping[str, Any] = field(default_factory=dict)

    @property
    def input_dir(self) -> Path | None:
        return self.input_path.parent if self.input_path is not None else None


@dataclass(slots=True)
class PipelineState:
    """Process-wide state of one top-level run, shared with child documents."""

    session: Session
    namespace: dict[str, Any]
    hooks: HookRegistry
    out_format: str
    tangle: bool = False
    registry: LabelRegistry = field(default_factory=LabelRegistry)
    log: KnitLog = field(default_factory=KnitLog)
    concordance: Concordance = field(default_factory=Concordance)
    recorder: PlotRecorder = field(default_factory=PlotRecorder)
    frames: list[DocumentFrame] = field(default_factory=list)
    caches: dict[Path, ChunkCache] = field(default_factory=dict)
    fingerprints: dict[str, str] = field(default_factory=dict)
    figure_counter: int = 0
    terminate: str | None = None

    @property
    def frame(self) -> DocumentFrame:
        return self.frames[-1]

    @property
    def depth(self) -> int:
        return len(self.frames) - 1

    def next_figure(self) -> int:
        """Increment and return the figure counter."""
        self.figure_counter += 1
        return self.figure_counter

    def cache_for(self, path: str | Path) -> ChunkCache:
        """Return the cache stored under ``path``, opening it on first use."""
        root = Path(path).resolve()
        cache = self.caches.get(root)
        if cache is None:
            cache = ChunkCache.open(root)
            self.caches[root] = cache
        return cache

    @contextmanager
    def enter(self, frame: DocumentFrame) -> Iterator[DocumentFrame]:
        """Push a document frame for the duration of a (child) run."""
        self.frames.append(frame)
        try:
            yield frame
        finally:
            self.frames.pop()


_ACTIVE_STATE: ContextVar[PipelineState | None] = ContextVar(
    "chunkweave_pipeline_state", default=None
)


def active_state(*, required: bool = True) -> PipelineState | None:
    """Return the state of the run in progress."""
    state = _ACTIVE_STATE.get()
    if state is None and required:
        raise RuntimeError("No document is being knitted in this context.")
    return state


@contextmanager
def activate(state: PipelineState) -> Iterator[PipelineState]:
    """Expose ``state`` to code evaluated during the run."""
    token = _ACTIVE_STATE.set(state)
    try:
        yield state
    finally:
        _ACTIVE_STATE.reset(token)


__all__ = [
    "Concordance",
    "DocumentFrame",
    "KnitLog",
    "KnitOptions",
    "PipelineState",
    "Session",
    "activate",
    "active_state",
    "get_session",
    "line_count",
    "set_session",
]
