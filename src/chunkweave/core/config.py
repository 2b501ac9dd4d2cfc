"""Configuration file models.

A configuration file is a YAML mapping with two optional sections.

WeaveConfig

`knit` (`KnitOptions`)
: Run-level options: `progress`, `verbose`, `documentation` (tangle comment
  level, 0 to 2), `root_dir`, `out_format`, `dialect`, `width` (column at which
  messages are wrapped outside LaTeX), `tolerate_unknown_options`,
  `unnamed_chunk_label`, `concordance` and `encoding`.

`chunk` (`dict[str, Any]`)
: Chunk option defaults. Both `fig.width` and `fig_width` spellings are
  accepted; unknown names are rejected unless `tolerate_unknown_options` is set.

`hooks` (`dict[str, str]`)
: Hook overrides given as `module:function` import paths, keyed by hook name.
"""

from __future__ import annotations

from collections.abc import Callable
import importlib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
import yaml

from .exceptions import WeaveError
from .hooks import HOOK_NAMES
from .options import KNOWN_OPTIONS, normalise_options
from .state import KnitOptions, Session


class ConfigError(WeaveError):
    """Raised when a configuration file cannot be loaded."""


class WeaveConfig(BaseModel):
    """Validated content of a configuration file."""

    model_config = ConfigDict(extra="forbid")

    knit: KnitOptions = Field(default_factory=KnitOptions)
    chunk: dict[str, Any] = Field(default_factory=dict)
    hooks: dict[str, str] = Field(default_factory=dict)

    @field_validator("chunk", mode="before")
    @classmethod
    def _normalise_chunk(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, dict):
            raise ValueError("chunk options must be a mapping")
        return normalise_options(value)

    @field_validator("hooks")
    @classmethod
    def _known_hooks(cls, value: dict[str, str]) -> dict[str, str]:
        unknown = sorted(set(value) - set(HOOK_NAMES))
        if unknown:
            raise ValueError(f"unknown hook(s): {', '.join(unknown)}")
        return value

    def unknown_chunk_options(self) -> list[str]:
        return sorted(key for key in self.chunk if key not in KNOWN_OPTIONS)

    def apply(self, session: Session) -> Session:
        """Copy the configuration onto ``session`` and return it."""
        unknown = self.unknown_chunk_options()
        if unknown and not self.knit.tolerate_unknown_options:
            raise ConfigError(f"Unknown chunk option(s): {', '.join(unknown)}")
        session.knit_options = self.knit.model_copy()
        session.set_chunk_defaults(
            **{key: value for key, value in self.chunk.items() if key in KNOWN_OPTIONS}
        )
        session.set_hooks(**{name: import_hook(path) for name, path in self.hooks.items()})
        return session


def import_hook(path: str) -> Callable[..., str]:
    """Import a hook given as ``package.module:function``."""
    module_name, _, attribute = path.partition(":")
    if not module_name or not attribute:
        raise ConfigError(f"Hook '{path}' must be written as 'module:function'.")
    try:
        module = importlib.import_module(module_name)
        hook = getattr(module, attribute)
    except (ImportError, AttributeError) as exc:
        raise ConfigError(f"Cannot import hook '{path}': {exc}") from exc
    if not callable(hook):
        raise ConfigError(f"Hook '{path}' is not callable.")
    return hook


def load_config(path: Path) -> WeaveConfig:
    """Read and validate a YAML configuration file."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file '{path}': {exc}") from exc
    try:
        payload = yaml.safe_load(raw) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in '{path}': {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigError(f"Configuration file '{path}' must contain a mapping.")
    try:
        return WeaveConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration in '{path}': {exc}") from exc


__all__ = ["ConfigError", "WeaveConfig", "import_hook", "load_config"]
