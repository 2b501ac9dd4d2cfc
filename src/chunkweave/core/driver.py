"""Evaluate one code chunk and assemble its output text."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from .cache import changed_objects, chunk_fingerprint, restore_objects, snapshot_namespace
from .diagnostics import record_event
from .engine import evaluate, split_statements
from .exceptions import EvaluationError, NotCacheableError
from .options import ChunkHeader, ChunkOptions, explicit_options, selected
from .results import ErrorItem, PlotItem, ResultItem, SourceItem, TextItem
from .wrap import wrap


if TYPE_CHECKING:
    from .state import PipelineState


_log = logging.getLogger(__name__)

# Names the driver injects into the namespace; never cached.
_INJECTED_NAMES = frozenset({"record_plot"})
_CHILD_EXCLUDED = frozenset({"label", "child", "ref.label"})


@dataclass(frozen=True, slots=True)
class SegmentOutcome:
    """Output of one segment plus the closing text requested by ``knit_exit``."""

    text: str
    terminate: str | None = None


def _echo_only(code: str, echo: bool | list[int]) -> list[ResultItem]:
    if echo is True:
        return [SourceItem(src=code)]
    if echo is False or not code.strip():
        return []
    try:
        statements = split_statements(code)
    except SyntaxError:
        return [SourceItem(src=code)]
    return [
        SourceItem(src=statement.source)
        for statement in statements
        if selected(echo, statement.index)
    ]


def _collapse(items: list[ResultItem]) -> list[ResultItem]:
    merged: list[ResultItem] = []
    for item in items:
        previous = merged[-1] if merged else None
        if isinstance(item, SourceItem) and isinstance(previous, SourceItem):
            merged[-1] = SourceItem(src=f"{previous.src}\n{item.src}")
        elif (
            isinstance(item, TextItem)
            and isinstance(previous, TextItem)
            and not item.asis
            and not previous.asis
        ):
            merged[-1] = TextItem(text=previous.text + item.text)
        else:
            merged.append(item)
    return merged


def _reorder(items: list[ResultItem], options: ChunkOptions) -> list[ResultItem]:
    if options.results == "hold":
        sources = [item for item in items if isinstance(item, SourceItem)]
        items = sources + [item for item in items if not isinstance(item, SourceItem)]
    if options.fig_show == "hold":
        plots = [item for item in items if isinstance(item, PlotItem)]
        items = [item for item in items if not isinstance(item, PlotItem)] + plots
    return items


class ChunkDriver:
    """Run code chunks against the shared state of one pipeline run."""

    def __init__(self, state: PipelineState) -> None:
        self.state = state

    def drive(self, header: ChunkHeader, options: ChunkOptions) -> SegmentOutcome:
        """Evaluate a registered chunk with its resolved options."""
        state = self.state
        if options.child:
            text = self._knit_children(header, options)
        else:
            text = self._render(self._evaluate(header, options), options)
        terminate, state.terminate = state.terminate, None
        return SegmentOutcome(text=text, terminate=terminate)

    def _evaluate(self, header: ChunkHeader, options: ChunkOptions) -> list[ResultItem]:
        state = self.state
        code = state.registry.code_for(header)
        if options.eval is False or not code.strip():
            return _echo_only(code, options.echo)

        if not options.cache:
            items = self._run(code, options)
            self._raise_on_error(items, options, header)
            return items

        dependencies = {
            label: state.fingerprints[label]
            for label in options.dependson
            if label in state.fingerprints
        }
        digest = chunk_fingerprint(code, options, dependencies)
        state.fingerprints[options.label] = digest
        cache = state.cache_for(Path(options.cache_path))
        cached = cache.lookup(digest)
        if cached is not None:
            record_event(
                state.session.emitter,
                "cache_hit",
                {"label": options.label, "digest": digest},
            )
            restore_objects(state.namespace, cached)
            return list(cached.items)

        before = snapshot_namespace(state.namespace)
        items = self._run(code, options)
        self._raise_on_error(items, options, header)
        for item in items:
            if isinstance(item, TextItem) and not item.cacheable:
                raise NotCacheableError(
                    f"Output of chunk '{options.label}' cannot be cached; "
                    "set cache=False on this chunk.",
                    label=options.label,
                    lines=header.lines,
                )
        if not any(isinstance(item, ErrorItem) for item in items):
            objects = changed_objects(state.namespace, before, exclude=_INJECTED_NAMES)
            cache.store(digest, options.label, items, objects)
        return items

    def _run(self, code: str, options: ChunkOptions) -> list[ResultItem]:
        _log.debug("Evaluating chunk '%s'", options.label)
        return evaluate(
            code,
            self.state.namespace,
            eval_selection=options.eval,
            echo_selection=options.echo,
            stop_on_error=not options.error,
            filename=f"<chunk {options.label}>",
            recorder=self.state.recorder,
            render=self.state.session.render,
        )

    def _raise_on_error(
        self,
        items: list[ResultItem],
        options: ChunkOptions,
        header: ChunkHeader,
    ) -> None:
        if options.error:
            return
        failure = next((item for item in items if isinstance(item, ErrorItem)), None)
        if failure is None:
            return
        summary = f"{failure.exc_type}: {failure.message}"
        self.state.log.add("error", options.label, summary)
        detail = f"\n{failure.traceback.rstrip()}" if failure.traceback else ""
        raise EvaluationError(
            f"Error in chunk '{options.label}': {summary}{detail}",
            label=options.label,
            lines=header.lines,
        )

    def _render(self, items: list[ResultItem], options: ChunkOptions) -> str:
        items = _reorder(items, options)
        if options.collapse:
            items = _collapse(items)

        fig_num = sum(isinstance(item, PlotItem) for item in items)
        fig_cur = 0
        pieces: list[str] = []
        for item in items:
            item_options = options
            if isinstance(item, PlotItem):
                fig_cur += 1
                item_options = options.model_copy(
                    update={"fig_cur": fig_cur, "fig_num": fig_num}
                )
            pieces.append(wrap(item, item_options, self.state))

        text = "".join(pieces)
        if not options.include or not text:
            return ""
        return _trim_newline(self.state.hooks.chunk(text, options))

    def tangle_children(self, header: ChunkHeader, options: ChunkOptions) -> str:
        """Return the scripts tangled from the chunk's child documents."""
        scripts = [text.strip("\n") for text in self._child_outputs(header, options)]
        separator = "\n" if self.state.session.knit_options.documentation == 0 else "\n\n"
        return separator.join(script for script in scripts if script)

    def _child_outputs(self, header: ChunkHeader, options: ChunkOptions) -> list[str]:
        from .pipeline import knit_child

        inherited = {
            key: value
            for key, value in explicit_options(header, self.state.registry).items()
            if key not in _CHILD_EXCLUDED
        }
        return [knit_child(child, options=inherited, quiet=True) for child in options.child]

    def _knit_children(self, header: ChunkHeader, options: ChunkOptions) -> str:
        outputs = self._child_outputs(header, options)
        if not options.include:
            return ""
        return _trim_newline("".join(outputs))


def _trim_newline(text: str) -> str:
    return text[:-1] if text.endswith("\n") else text


__all__ = ["ChunkDriver", "SegmentOutcome"]
