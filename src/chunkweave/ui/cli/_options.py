"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
OUTPUT_PANEL = "Output"
DIAGNOSTICS_PANEL = "Diagnostics"

InputPathArgument = Annotated[
    Path,
    typer.Argument(
        metavar="INPUT",
        help="Source document with embedded Python chunks (.pmd, .md, .pnw, .phtml, .prst).",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
        resolve_path=True,
        rich_help_panel=INPUTS_PANEL,
    ),
]

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output file. Use '-' for stdout. Defaults to a name derived from the input.",
        show_default=False,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config",
        "-c",
        help="YAML configuration file with 'knit' and 'chunk' sections.",
        exists=True,
        dir_okay=False,
        resolve_path=True,
        show_default=False,
        rich_help_panel=INPUTS_PANEL,
    ),
]

DialectOption = Annotated[
    str | None,
    typer.Option(
        "--dialect",
        help="Chunk syntax to use instead of detecting it (md, rnw, html, rst).",
        rich_help_panel=INPUTS_PANEL,
    ),
]

FormatOption = Annotated[
    str | None,
    typer.Option(
        "--format",
        "-f",
        help="Output format overriding the dialect default (markdown, latex, html, rst).",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

DocumentationOption = Annotated[
    int,
    typer.Option(
        "--documentation",
        "-d",
        min=0,
        max=2,
        help="0: code only, 1: chunk label comments, 2: prose as #' comments.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

QuietOption = Annotated[
    bool,
    typer.Option(
        "--quiet",
        "-q",
        help="Do not report progress.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]
