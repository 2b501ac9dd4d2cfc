"""Auxiliary helpers used by CLI commands."""

from __future__ import annotations

from pathlib import Path

import typer

from chunkweave.core.config import ConfigError, load_config
from chunkweave.core.state import Session

from .diagnostics import CliEmitter
from .state import CLIState


def build_session(
    state: CLIState,
    *,
    config: Path | None = None,
    dialect: str | None = None,
    out_format: str | None = None,
) -> Session:
    """Create a session from the configuration file and command-line overrides."""
    session = Session()
    if config is not None:
        try:
            load_config(config).apply(session)
        except ConfigError as exc:
            raise typer.BadParameter(str(exc), param_hint="--config") from exc
    if dialect is not None:
        session.knit_options.dialect = dialect
    if out_format is not None:
        session.knit_options.out_format = out_format
    if state.verbosity >= 1:
        session.knit_options.verbose = True
    session.emitter = CliEmitter(state=state)
    return session


def determine_output_target(output_option: Path | None) -> tuple[str, Path | None]:
    """Return ``("stdout", None)``, ``("file", path)`` or ``("auto", None)``."""
    if output_option is None:
        return "auto", None
    if str(output_option) == "-":
        return "stdout", None
    return "file", output_option


__all__ = ["build_session", "determine_output_target"]
