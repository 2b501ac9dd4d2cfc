"""Implementation of the `chunkweave weave` command."""

from __future__ import annotations

import click
import typer

from chunkweave.core.exceptions import EvaluationError, WeaveError
from chunkweave.core.pipeline import knit_document

from .._options import (
    ConfigOption,
    DebugOption,
    DialectOption,
    FormatOption,
    InputPathArgument,
    OutputPathOption,
    QuietOption,
    VerboseOption,
)
from ..state import emit_error, set_cli_state
from ..utils import build_session, determine_output_target


def weave(
    input: InputPathArgument,
    output: OutputPathOption = None,
    config: ConfigOption = None,
    dialect: DialectOption = None,
    out_format: FormatOption = None,
    quiet: QuietOption = False,
    verbose: VerboseOption = 0,
    debug: DebugOption = False,
) -> None:
    """Run the chunks of INPUT and write the woven document."""
    ctx = click.get_current_context(silent=True)
    typer_ctx = ctx if isinstance(ctx, typer.Context) else None
    state = set_cli_state(ctx=typer_ctx, verbosity=verbose, debug=debug)
    session = build_session(state, config=config, dialect=dialect, out_format=out_format)

    mode, target = determine_output_target(output)
    try:
        if mode == "stdout":
            result = knit_document(input, quiet=quiet, session=session, write_output=False)
        else:
            result = knit_document(input, target, quiet=quiet, session=session)
    except EvaluationError as exc:
        emit_error(str(exc).splitlines()[0], exception=exc)
        raise typer.Exit(code=1) from exc
    except WeaveError as exc:
        emit_error(str(exc), exception=exc)
        raise typer.Exit(code=1) from exc

    if mode == "stdout":
        typer.echo(result.text, nl=not result.text.endswith("\n"))


__all__ = ["weave"]
