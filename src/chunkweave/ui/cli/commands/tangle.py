"""Implementation of the `chunkweave tangle` command."""

from __future__ import annotations

import click
import typer

from chunkweave.core.exceptions import WeaveError
from chunkweave.core.pipeline import knit_document

from .._options import (
    ConfigOption,
    DebugOption,
    DialectOption,
    DocumentationOption,
    InputPathArgument,
    OutputPathOption,
    QuietOption,
    VerboseOption,
)
from ..state import emit_error, set_cli_state
from ..utils import build_session, determine_output_target


def tangle(
    input: InputPathArgument,
    output: OutputPathOption = None,
    documentation: DocumentationOption = 1,
    config: ConfigOption = None,
    dialect: DialectOption = None,
    quiet: QuietOption = False,
    verbose: VerboseOption = 0,
    debug: DebugOption = False,
) -> None:
    """Extract the Python code of INPUT into a script."""
    ctx = click.get_current_context(silent=True)
    typer_ctx = ctx if isinstance(ctx, typer.Context) else None
    state = set_cli_state(ctx=typer_ctx, verbosity=verbose, debug=debug)
    session = build_session(state, config=config, dialect=dialect)
    session.knit_options.documentation = documentation

    mode, target = determine_output_target(output)
    try:
        if mode == "stdout":
            result = knit_document(
                input, tangle=True, quiet=quiet, session=session, write_output=False
            )
        else:
            result = knit_document(input, target, tangle=True, quiet=quiet, session=session)
    except WeaveError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if mode == "stdout":
        typer.echo(result.text, nl=not result.text.endswith("\n"))


__all__ = ["tangle"]
