"""Disk-backed cache of chunk results.

Every cached chunk is identified by a sha256 fingerprint of its code, its label,
the options that influence evaluation, and the fingerprints of the chunks listed
in ``dependson``. A hit replays the stored result items and restores the
namespace objects the chunk created, without running the code again.

Options that only change the presentation of already computed results do not
take part in the fingerprint (see :data:`PRESENTATION_OPTIONS`).
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping, Sequence
from dataclasses import dataclass, field
import hashlib
import importlib
import json
import logging
from pathlib import Path
import pickle
from types import ModuleType
from typing import Any

from .options import ChunkOptions
from .results import ResultItem


_log = logging.getLogger(__name__)

_CACHE_FILENAME = "metadata.json"
_CACHE_VERSION = 1

PRESENTATION_OPTIONS = frozenset(
    {
        "include",
        "echo",
        "results",
        "collapse",
        "strip.white",
        "comment",
        "prompt",
        "highlight",
        "fig.show",
        "fig.cap",
        "fig.align",
        "fig.cur",
        "fig.num",
        "out.width",
        "out.height",
        "warning",
        "message",
        "cache",
        "cache.path",
        "purl",
    }
)


def _normalise(value: Any) -> Any:
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _normalise(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalise(item) for item in value]
    return value


def chunk_fingerprint(
    code: str,
    options: ChunkOptions,
    dependencies: Mapping[str, str] | None = None,
) -> str:
    """Return the cache key of a chunk."""
    relevant = {
        key: value
        for key, value in options.to_mapping().items()
        if key not in PRESENTATION_OPTIONS
    }
    payload = {
        "code": code,
        "options": _normalise(relevant),
        "dependencies": dict(sorted((dependencies or {}).items())),
    }
    encoded = json.dumps(payload, sort_keys=True, default=str).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


@dataclass(slots=True)
class CachedChunk:
    """Stored evaluation of one chunk."""

    items: list[ResultItem]
    objects: dict[str, Any] = field(default_factory=dict)
    modules: dict[str, str] = field(default_factory=dict)


def snapshot_namespace(namespace: Mapping[str, Any]) -> dict[str, int]:
    """Record object identities so changed bindings can be detected later."""
    return {name: id(value) for name, value in namespace.items()}


def changed_objects(
    namespace: Mapping[str, Any],
    before: Mapping[str, int],
    *,
    exclude: frozenset[str] = frozenset(),
) -> dict[str, Any]:
    """Return the bindings created or rebound since ``before`` was taken."""
    return {
        name: value
        for name, value in namespace.items()
        if not name.startswith("__")
        and name not in exclude
        and before.get(name) != id(value)
    }


@dataclass(slots=True)
class ChunkCache:
    """Cache directory holding pickled chunk results and a JSON index."""

    root: Path
    metadata: dict[str, Any] = field(default_factory=dict)
    dirty: bool = False

    @classmethod
    def open(cls, root: Path) -> ChunkCache:
        """Load the cache index stored under ``root``."""
        return cls(root=root, metadata=_load_metadata(root / _CACHE_FILENAME))

    def lookup(self, digest: str) -> CachedChunk | None:
        """Return the cached chunk for ``digest`` when it is still readable."""
        entry = self._entries().get(digest)
        if not isinstance(entry, dict):
            return None
        payload_path = self.root / str(entry.get("file") or f"{digest}.pickle")
        try:
            with payload_path.open("rb") as handle:
                cached = pickle.load(handle)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError):
            _log.debug("Discarding unreadable cache entry %s", digest, exc_info=True)
            self.discard(digest)
            return None
        if not isinstance(cached, CachedChunk):
            self.discard(digest)
            return None
        return cached

    def store(
        self,
        digest: str,
        label: str,
        items: Sequence[ResultItem],
        objects: Mapping[str, Any],
    ) -> bool:
        """Persist a chunk evaluation; return whether it could be stored."""
        storable: dict[str, Any] = {}
        modules: dict[str, str] = {}
        for name, value in objects.items():
            if isinstance(value, ModuleType):
                modules[name] = value.__name__
                continue
            try:
                pickle.dumps(value)
            except Exception:
                _log.debug("Object '%s' of chunk '%s' is not picklable", name, label)
                continue
            storable[name] = value

        try:
            payload = pickle.dumps(
                CachedChunk(items=list(items), objects=storable, modules=modules)
            )
        except Exception as exc:
            _log.warning("Results of chunk '%s' cannot be cached: %s", label, exc)
            return False

        self.root.mkdir(parents=True, exist_ok=True)
        filename = f"{digest}.pickle"
        (self.root / filename).write_bytes(payload)
        entries = self._entries()
        for stale, entry in list(entries.items()):
            if isinstance(entry, dict) and entry.get("label") == label and stale != digest:
                self.discard(stale)
        entries[digest] = {"label": label, "file": filename, "objects": sorted(storable)}
        self.dirty = True
        self.flush()
        return True

    def discard(self, digest: str) -> None:
        """Remove a cache entry and its payload."""
        entries = self._entries()
        entry = entries.pop(digest, None)
        if entry is None:
            return
        self.dirty = True
        filename = entry.get("file") if isinstance(entry, dict) else None
        if filename:
            (self.root / filename).unlink(missing_ok=True)

    def flush(self) -> None:
        """Persist the index to disk when modified."""
        if not self.dirty:
            return
        payload = {"version": _CACHE_VERSION, "entries": self._entries()}
        metadata_path = self.root / _CACHE_FILENAME
        tmp_path = metadata_path.with_suffix(".tmp")
        self.root.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        tmp_path.replace(metadata_path)
        self.dirty = False

    def _entries(self) -> dict[str, Any]:
        entries = self.metadata.setdefault("entries", {})
        if not isinstance(entries, dict):
            entries = {}
            self.metadata["entries"] = entries
        return entries


def _load_metadata(path: Path) -> dict[str, Any]:
    default: dict[str, Any] = {"version": _CACHE_VERSION, "entries": {}}
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return default
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return default
    if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
        return default
    if not isinstance(payload.get("entries"), dict):
        payload["entries"] = {}
    return payload


def restore_objects(namespace: MutableMapping[str, Any], cached: CachedChunk) -> None:
    """Bind the objects saved with a cached chunk into ``namespace``."""
    for name, module in cached.modules.items():
        namespace[name] = importlib.import_module(module)
    namespace.update(cached.objects)


__all__ = [
    "PRESENTATION_OPTIONS",
    "CachedChunk",
    "ChunkCache",
    "changed_objects",
    "chunk_fingerprint",
    "restore_objects",
    "snapshot_namespace",
]
