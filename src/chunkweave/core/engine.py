"""Python execution engine.

:func:`evaluate` runs chunk code statement by statement in a shared namespace
and records what each statement produced: the echoed source, printed text,
displayed values, warnings, stderr messages, exceptions and graphics.
"""

from __future__ import annotations

import ast
from collections.abc import Callable, Iterable, MutableMapping
import contextlib
from dataclasses import dataclass, field
import functools
import io
import linecache
import sys
import traceback
from typing import Any
import warnings

from .options import selected
from .results import (
    AsIs,
    ErrorItem,
    MessageItem,
    PlotItem,
    ResultItem,
    SourceItem,
    TextItem,
    WarningItem,
)


@functools.singledispatch
def knit_print(value: Any) -> str:
    """Render a displayed value; register overloads to customise the output.

    Overloads may return :func:`~chunkweave.core.results.asis_output` to write
    markup directly into the document.
    """
    return repr(value)


@knit_print.register
def _(value: AsIs) -> str:
    return value


@dataclass(slots=True)
class PlotRecorder:
    """Collect graphics produced while a statement runs.

    Objects passed to :meth:`record` (exposed to chunk code as ``record_plot``)
    are collected in order. Open matplotlib figures are collected and closed
    when pyplot has been imported by chunk code.
    """

    pending: list[Any] = field(default_factory=list)

    def record(self, plot: Any) -> None:
        self.pending.append(plot)

    def collect(self) -> list[Any]:
        plots = list(self.pending)
        self.pending.clear()
        pyplot = sys.modules.get("matplotlib.pyplot")
        if pyplot is not None:
            for number in pyplot.get_fignums():
                plots.append(pyplot.figure(number))
            pyplot.close("all")
        return plots


@dataclass(frozen=True, slots=True)
class Statement:
    """One top-level statement with the source lines that belong to it."""

    index: int
    source: str
    node: ast.stmt | None


def split_statements(code: str) -> list[Statement]:
    """Split code into top-level statements, attaching leading comments."""
    tree = ast.parse(code)
    lines = code.split("\n")
    statements: list[Statement] = []
    cursor = 0
    for index, node in enumerate(tree.body, start=1):
        end = node.end_lineno or node.lineno
        statements.append(
            Statement(index=index, source="\n".join(lines[cursor:end]), node=node)
        )
        cursor = end
    trailing = "\n".join(lines[cursor:])
    if trailing.strip():
        if statements:
            last = statements[-1]
            statements[-1] = Statement(
                index=last.index, source=f"{last.source}\n{trailing}", node=last.node
            )
        else:
            statements.append(Statement(index=1, source=trailing, node=None))
    return statements


def _call_text(node: ast.stmt | None) -> str | None:
    if isinstance(node, ast.Expr) and isinstance(node.value, ast.Call):
        return ast.unparse(node.value)
    return None


def _format_traceback(exc: BaseException) -> str:
    frames = [
        frame
        for frame in traceback.extract_tb(exc.__traceback__)
        if frame.filename != __file__
    ]
    lines = traceback.format_list(frames)
    lines.extend(traceback.format_exception_only(type(exc), exc))
    return "".join(lines)


def _comment(source: str) -> str:
    return "\n".join(f"# {line}" if line.strip() else line for line in source.split("\n"))


def evaluate(
    code: str,
    namespace: MutableMapping[str, Any],
    *,
    eval_selection: bool | Iterable[int] = True,
    echo_selection: bool | Iterable[int] = True,
    stop_on_error: bool = True,
    filename: str = "<chunk>",
    recorder: PlotRecorder | None = None,
    render: Callable[[Any], str] = knit_print,
) -> list[ResultItem]:
    """Execute ``code`` in ``namespace`` and return the ordered result items."""
    recorder = recorder or PlotRecorder()
    namespace["record_plot"] = recorder.record
    items: list[ResultItem] = []

    try:
        statements = split_statements(code)
    except SyntaxError as exc:
        if not isinstance(echo_selection, bool) or echo_selection:
            items.append(SourceItem(src=code))
        items.append(
            ErrorItem(
                message=f"{exc.msg} (line {exc.lineno})",
                exc_type="SyntaxError",
                traceback="".join(traceback.format_exception_only(type(exc), exc)),
            )
        )
        return items

    source_lines = [f"{line}\n" for line in code.split("\n")]
    linecache.cache[filename] = (len(code), None, source_lines, filename)

    for statement in statements:
        run = selected(eval_selection, statement.index) and statement.node is not None
        if selected(echo_selection, statement.index):
            source = statement.source
            if not run and statement.node is not None:
                source = _comment(source)
            items.append(SourceItem(src=source))
        if not run:
            continue
        failed = _run_statement(statement, namespace, filename, recorder, render, items)
        if failed and stop_on_error:
            break
    return items


def _run_statement(
    statement: Statement,
    namespace: MutableMapping[str, Any],
    filename: str,
    recorder: PlotRecorder,
    render: Callable[[Any], str],
    items: list[ResultItem],
) -> bool:
    node = statement.node
    assert node is not None
    stdout = io.StringIO()
    stderr = io.StringIO()
    value: Any = None
    error: BaseException | None = None

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            try:
                if isinstance(node, ast.Expr):
                    compiled = compile(ast.Expression(node.value), filename, "eval")
                    value = eval(compiled, namespace)  # noqa: S307
                else:
                    module = ast.Module(body=[node], type_ignores=[])
                    exec(compile(module, filename, "exec"), namespace)  # noqa: S102
            except Exception as exc:
                error = exc

    printed = stdout.getvalue()
    if printed:
        items.append(TextItem(text=printed))
    if value is not None and error is None:
        rendered = render(value)
        items.append(TextItem.from_value(rendered))
    message = stderr.getvalue()
    if message:
        items.append(MessageItem(message=message))
    call = _call_text(node)
    for record in caught:
        items.append(
            WarningItem(
                message=str(record.message),
                call=call,
                category=record.category.__name__,
            )
        )
    for plot in recorder.collect():
        items.append(PlotItem(plot=plot))
    if error is not None:
        items.append(
            ErrorItem(
                message=str(error),
                call=call,
                exc_type=type(error).__name__,
                traceback=_format_traceback(error),
            )
        )
        return True
    return False


__all__ = [
    "PlotRecorder",
    "Statement",
    "evaluate",
    "knit_print",
    "split_statements",
]
