"""Document pipeline: weave or tangle a whole document.

A top-level call builds a fresh :class:`~chunkweave.core.state.PipelineState`,
exposes it to evaluated code, and restores the working directory and session
settings on exit whatever happens. Child documents knitted from a chunk run
nested inside the same state: they share the namespace, the figure counter, the
label registry and the log.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, MutableMapping
import contextlib
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any, cast

from chunkweave.adapters.formats import hooks_for_format

from .diagnostics import record_event
from .driver import ChunkDriver, SegmentOutcome
from .exceptions import EvaluationError, UnresolvedPatternError, WeaveError
from .options import LabelRegistry, normalise_options, resolve_options
from .patterns import detect_dialect, get_dialect, split_document, split_front_matter
from .segments import Segment
from .state import (
    Concordance,
    DocumentFrame,
    KnitLog,
    PipelineState,
    Session,
    activate,
    active_state,
    get_session,
)
from .tangle import assemble, tangle_chunk, tangle_prose


_log = logging.getLogger(__name__)

_CLOSING_TEXT = {
    "latex": "\\end{document}",
    "html": "</body>\n</html>",
}

_PREFIXED_EXTENSIONS = {
    "pmd": "md",
    "rmd": "md",
    "pmarkdown": "markdown",
    "phtml": "html",
    "phtm": "htm",
    "ptex": "tex",
    "stex": "tex",
    "prst": "rst",
}


@dataclass(slots=True)
class KnitResult:
    """Outcome of a top-level run."""

    text: str
    output: Path | None
    concordance: Concordance
    log: KnitLog


def auto_out_name(input: str | Path, tangle: bool = False) -> Path:
    """Derive the output path of ``input``.

    ``foo.pnw`` becomes ``foo.tex``, ``foo.pmd`` becomes ``foo.md`` (the other
    ``p``-prefixed extensions likewise), ``_knit_`` is removed from names that
    contain it, ``foo.txt`` becomes ``foo-out.txt`` and any other extension
    becomes ``.txt``. Tangling always produces ``foo.py``.
    """
    path = Path(input)
    ext = path.suffix.lower().lstrip(".")
    if tangle:
        return path.with_suffix(".py")
    if ext in {"rnw", "snw", "pnw"}:
        return path.with_suffix(".tex")
    if ext in _PREFIXED_EXTENSIONS:
        return path.with_suffix(f".{_PREFIXED_EXTENSIONS[ext]}")
    if "_knit_" in path.name:
        return path.with_name(path.name.replace("_knit_", ""))
    if ext != "txt":
        return path.with_suffix(".txt")
    return path.with_name(f"{path.stem}-out.txt")


def _read_source(input: str | Path, encoding: str) -> tuple[Path, str]:
    path = Path(input).resolve()
    try:
        return path, path.read_text(encoding=encoding)
    except OSError as exc:
        raise WeaveError(f"Cannot read input document '{input}': {exc}") from exc


def _write_output(path: Path, text: str, encoding: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding=encoding)


def _document_defaults(front_matter: Mapping[str, Any]) -> dict[str, Any]:
    section = front_matter.get("chunkweave")
    if not isinstance(section, Mapping):
        return {}
    chunk = section.get("chunk")
    if not isinstance(chunk, Mapping):
        return {}
    return normalise_options(chunk)


def _evaluate_inline(segment: Segment, state: PipelineState) -> str:
    text = segment.raw_text
    for span in reversed(segment.inline):
        try:
            value = eval(compile(span.code, "<inline>", "eval"), state.namespace)  # noqa: S307
        except Exception as exc:
            raise EvaluationError(
                f"Error in inline expression '{span.code}': {type(exc).__name__}: {exc}",
                lines=segment.lines,
            ) from exc
        text = text[: span.start] + state.hooks.inline(value) + text[span.end :]
    return text


def _process_segment(
    segment: Segment,
    state: PipelineState,
    driver: ChunkDriver,
    headers: Mapping[int, Any],
    index: int,
) -> SegmentOutcome:
    session = state.session
    if not segment.is_code:
        if state.tangle:
            return SegmentOutcome(tangle_prose(segment, session.knit_options.documentation))
        text = _evaluate_inline(segment, state) if segment.inline else segment.raw_text
        terminate, state.terminate = state.terminate, None
        return SegmentOutcome(text, terminate)

    header = headers[index]
    options = resolve_options(
        header,
        session.chunk_defaults,
        state.registry,
        tolerate_unknown=session.knit_options.tolerate_unknown_options,
    )
    if state.tangle:
        if options.child and options.purl:
            return SegmentOutcome(driver.tangle_children(header, options))
        code = state.registry.code_for(header)
        return SegmentOutcome(
            tangle_chunk(header, options, code, session.knit_options.documentation)
        )
    return driver.drive(header, options)


def _run(state: PipelineState, source: str, frame: DocumentFrame, *, nested: bool) -> str:
    """Process every segment of ``source`` and return the assembled text."""
    segments = split_document(source, frame.dialect)
    headers = {
        index: state.registry.register(segment)
        for index, segment in enumerate(segments)
        if segment.is_code
    }
    driver = ChunkDriver(state)
    positions = {index: position for position, index in enumerate(headers, start=1)}
    progress = state.session.knit_options.progress and not state.tangle

    with state.enter(frame):
        for index, segment in enumerate(segments):
            if progress and segment.is_code:
                record_event(
                    state.session.emitter,
                    "chunk_progress",
                    {
                        "label": headers[index].label,
                        "position": positions[index],
                        "total": len(headers),
                    },
                )
            try:
                outcome = _process_segment(segment, state, driver, headers, index)
            except WeaveError as exc:
                if isinstance(exc, EvaluationError):
                    # Inner documents fill the partial first; outer ones prepend.
                    pieces = [*frame.outputs, exc.partial] if exc.reported else frame.outputs
                    exc.partial = "\n".join(pieces)
                if not exc.reported:
                    exc.reported = True
                    record_event(
                        state.session.emitter,
                        "quitting",
                        {"lines": segment.lines, "input": frame.input_path, "label": exc.label},
                    )
                raise
            frame.outputs.append(outcome.text)
            if not nested:
                state.concordance.add(segment.lines, outcome.text)
            if outcome.terminate is not None:
                if nested:
                    state.terminate = outcome.terminate
                elif outcome.terminate:
                    frame.outputs.append(outcome.terminate)
                break

    if state.tangle:
        return assemble(frame.outputs, state.session.knit_options.documentation)
    return "\n".join(frame.outputs)


@contextlib.contextmanager
def _restore_session(session: Session) -> Iterator[Session]:
    chunk_defaults = dict(session.chunk_defaults)
    knit_options = session.knit_options.model_copy()
    try:
        yield session
    finally:
        session.chunk_defaults.clear()
        session.chunk_defaults.update(chunk_defaults)
        session.knit_options = knit_options


def knit_document(
    input: str | Path | None = None,
    output: str | Path | None = None,
    *,
    text: str | None = None,
    tangle: bool = False,
    quiet: bool = False,
    namespace: MutableMapping[str, Any] | None = None,
    session: Session | None = None,
    write_output: bool = True,
) -> KnitResult:
    """Weave (or tangle) a document and return the full result record.

    ``input`` is a path; ``text`` literal document text. When ``input`` is given
    and ``output`` is not, the output path is derived with :func:`auto_out_name`,
    unless ``write_output`` is false and the result only lives in memory.
    """
    if input is None and text is None:
        raise ValueError("Either an input path or literal text is required.")
    session = session or get_session()
    options = session.knit_options
    emitter = None if quiet else session.emitter

    input_path: Path | None = None
    from_file = text is None
    if text is None:
        input_path, text = _read_source(input, options.encoding)
    elif input is not None:
        input_path = Path(input).resolve()
    output_path: Path | None = None
    if output is not None:
        output_path = Path(output).resolve()
    elif from_file and write_output:
        output_path = auto_out_name(input_path, tangle)

    concordance = Concordance(infile=input_path, outfile=output_path)
    record_event(emitter, "processing_file", {"input": input_path})

    if not text:
        if output_path is not None:
            _write_output(output_path, "", options.encoding)
            record_event(emitter, "output_file", {"output": output_path})
        return KnitResult("", output_path, concordance, KnitLog())

    if options.dialect:
        dialect = get_dialect(options.dialect)
    else:
        dialect = detect_dialect(text, input_path.suffix if input_path else None)
    if dialect is None:
        if from_file:
            raise UnresolvedPatternError(
                f"Cannot determine the chunk syntax of '{input_path.name}'."
            )
        _log.debug("No chunk syntax detected; returning the text unchanged.")
        return KnitResult(text, None, concordance, KnitLog())

    out_format = options.out_format or dialect.out_format
    hooks = hooks_for_format(out_format).override(**session.hooks)
    front_matter: Mapping[str, Any] = {}
    if dialect.name == "md":
        front_matter, _ = split_front_matter(text)

    state = PipelineState(
        session=session,
        namespace=namespace if namespace is not None else {"__name__": "__chunkweave__"},
        hooks=hooks,
        out_format=out_format,
        tangle=tangle,
        registry=LabelRegistry(unnamed_prefix=f"{options.unnamed_chunk_label}-"),
        concordance=concordance,
    )
    frame = DocumentFrame(input_path=input_path, dialect=dialect, front_matter=front_matter)
    root_dir = options.root_dir or (input_path.parent if input_path is not None else None)

    with contextlib.ExitStack() as stack:
        stack.enter_context(_restore_session(session))
        if quiet:
            stack.callback(setattr, session, "emitter", session.emitter)
            session.emitter = None
        if root_dir is not None:
            stack.enter_context(contextlib.chdir(root_dir))
        stack.enter_context(activate(state))
        session.set_chunk_defaults(**_document_defaults(front_matter))

        try:
            result = _run(state, text, frame, nested=False)
        except EvaluationError as exc:
            if output_path is not None:
                _write_output(output_path, exc.partial, options.encoding)
            raise
        finally:
            for cache in state.caches.values():
                cache.flush()
        if not tangle and state.registry.counter:
            result = hooks.document(result)
        if options.verbose:
            for kind in ("warning", "message", "error"):
                record_event(
                    session.emitter,
                    "knit_log",
                    {"kind": kind, "entries": state.log.entries(kind)},
                )

    if output_path is not None:
        _write_output(output_path, result, options.encoding)
        record_event(emitter, "output_file", {"output": output_path})
        if options.concordance:
            concordance_path = output_path.with_name(f"{output_path.stem}-concordance.json")
            payload = {
                "infile": str(input_path) if input_path else None,
                "outfile": str(output_path),
                "lines": concordance.mapping(),
            }
            _write_output(concordance_path, json.dumps(payload, indent=2), options.encoding)
    return KnitResult(result, output_path, concordance, state.log)


def knit(
    input: str | Path | None = None,
    output: str | Path | None = None,
    *,
    text: str | None = None,
    tangle: bool = False,
    quiet: bool = False,
    namespace: MutableMapping[str, Any] | None = None,
    session: Session | None = None,
) -> str | Path:
    """Weave a document; return the output path when written, else the text."""
    result = knit_document(
        input,
        output,
        text=text,
        tangle=tangle,
        quiet=quiet,
        namespace=namespace,
        session=session,
    )
    return result.output if result.output is not None else result.text


def purl(
    input: str | Path | None = None,
    output: str | Path | None = None,
    *,
    text: str | None = None,
    documentation: int | None = None,
    quiet: bool = False,
    session: Session | None = None,
) -> str | Path:
    """Extract the code of a document into a script."""
    session = session or get_session()
    previous = session.knit_options.documentation
    if documentation is not None:
        session.knit_options.documentation = documentation
    try:
        return knit(input, output, text=text, tangle=True, quiet=quiet, session=session)
    finally:
        session.knit_options.documentation = previous


def knit_child(
    input: str | Path | None = None,
    *,
    text: str | None = None,
    options: Mapping[str, Any] | None = None,
    quiet: bool = True,
) -> str:
    """Knit a child document from inside a running chunk.

    ``options`` become chunk defaults for the child; defaults the child leaves
    untouched are restored afterwards. The result starts with a blank line.
    """
    state = cast(PipelineState, active_state())
    session = state.session
    parent = state.frame

    child_path: Path | None = None
    if text is None:
        if input is None:
            raise ValueError("Either an input path or literal text is required.")
        candidate = Path(input)
        if not candidate.is_absolute() and parent.input_dir is not None:
            candidate = parent.input_dir / candidate
        child_path, text = _read_source(candidate, session.knit_options.encoding)

    if not quiet:
        record_event(session.emitter, "processing_file", {"input": child_path or "<text>"})

    dialect = detect_dialect(text, child_path.suffix if child_path else None)
    if dialect is None:
        if child_path is not None:
            raise UnresolvedPatternError(
                f"Cannot determine the chunk syntax of '{child_path.name}'."
            )
        return f"\n{text}"
    front_matter: Mapping[str, Any] = {}
    if dialect.name == "md":
        front_matter, text = split_front_matter(text)

    inherited = {
        key: value
        for key, value in normalise_options(options or {}).items()
        if key not in {"label", "child", "ref.label"}
    }
    missing = object()
    previous = {key: session.chunk_defaults.get(key, missing) for key in inherited}
    session.chunk_defaults.update(inherited)
    try:
        frame = DocumentFrame(input_path=child_path, dialect=dialect, front_matter=front_matter)
        result = _run(state, text, frame, nested=True)
    finally:
        for key, value in inherited.items():
            if session.chunk_defaults.get(key, missing) != value:
                continue
            if previous[key] is missing:
                session.chunk_defaults.pop(key, None)
            else:
                session.chunk_defaults[key] = previous[key]
    return f"\n{result}"


def knit_exit(append: str | None = None) -> None:
    """Stop processing after the current segment and append ``append``.

    By default LaTeX documents are closed with ``\\end{document}`` and HTML
    documents with ``</body></html>``.
    """
    state = cast(PipelineState, active_state())
    state.terminate = _CLOSING_TEXT.get(state.out_format, "") if append is None else append


def set_chunk_defaults(**options: Any) -> None:
    """Change the chunk defaults of the running document or the default session."""
    state = active_state(required=False)
    session = state.session if state is not None else get_session()
    session.set_chunk_defaults(**options)


def knit_meta(cls: type | None = None, *, clean: bool = True) -> list[Any]:
    """Return metadata collected from as-is output, clearing it by default."""
    state = active_state(required=False)
    session = state.session if state is not None else get_session()
    return session.knit_meta(cls, clean=clean)


__all__ = [
    "KnitResult",
    "auto_out_name",
    "knit",
    "knit_child",
    "knit_document",
    "knit_exit",
    "knit_meta",
    "purl",
    "set_chunk_defaults",
]
