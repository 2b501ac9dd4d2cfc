"""Chunk option model, header parsing, and option resolution.

Chunk headers are written as ``label, name = literal, ...``. Parsing produces
the *literal* options of a chunk; resolution merges them with the session
defaults and any ``ref.label`` base layer into a fully populated
:class:`ChunkOptions` record.

Precedence (lowest first)

`built-in defaults`
: field defaults declared on :class:`ChunkOptions`.

`session defaults`
: values set with ``set_chunk_defaults`` or a configuration file.

`referenced chunks`
: literal options of the chunks listed in ``ref.label``.

`literal options`
: the options written in the chunk header itself.
"""

from __future__ import annotations

import ast
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
import logging
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import DuplicateLabelError, MalformedOptionsError
from .segments import Segment


_log = logging.getLogger(__name__)

_TRUE_VALUES = {"TRUE", "T", "true", "True", "yes"}
_FALSE_VALUES = {"FALSE", "F", "false", "False", "no"}
_NULL_VALUES = {"NULL", "None", "null"}
_BARE_WORD = re.compile(r"^[\w./:@%+-]+$")
_R_VECTOR = re.compile(r"^c\((.*)\)$", re.DOTALL)


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, tuple):
        return list(value)
    return value


class ChunkOptions(BaseModel):
    """Fully resolved options controlling how one chunk is evaluated and rendered."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    label: str = ""
    eval: bool | list[int] = True
    echo: bool | list[int] = True
    results: Literal["markup", "hide", "asis", "hold"] = "markup"
    include: bool = True
    cache: bool = False
    cache_path: str = Field(default="cache/", alias="cache.path")
    dependson: list[str] = Field(default_factory=list)
    collapse: bool = False
    strip_white: bool = Field(default=True, alias="strip.white")
    comment: str = "##"
    prompt: bool = False
    highlight: bool = True
    tidy: bool = False
    error: bool = False
    warning: bool = True
    message: bool = True
    child: list[str] = Field(default_factory=list)
    ref_label: list[str] = Field(default_factory=list, alias="ref.label")
    fig_path: str = Field(default="figure/", alias="fig.path")
    fig_width: float | list[float] = Field(default=7.0, alias="fig.width")
    fig_height: float | list[float] = Field(default=7.0, alias="fig.height")
    dev: str | list[str] = "png"
    fig_ext: str | list[str] | None = Field(default=None, alias="fig.ext")
    dpi: int | list[int] = 72
    fig_show: Literal["asis", "hold", "hide"] = Field(default="asis", alias="fig.show")
    fig_cap: str | None = Field(default=None, alias="fig.cap")
    fig_align: Literal["default", "left", "center", "right"] = Field(
        default="default", alias="fig.align"
    )
    fig_cur: int = Field(default=0, alias="fig.cur")
    fig_num: int = Field(default=0, alias="fig.num")
    out_width: str | None = Field(default=None, alias="out.width")
    out_height: str | None = Field(default=None, alias="out.height")
    engine: str = "python"
    purl: bool = True

    @field_validator("dependson", "child", "ref_label", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        return _as_list(value)

    @field_validator("eval", "echo", mode="before")
    @classmethod
    def _coerce_selection(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return [value]
        if isinstance(value, tuple):
            return list(value)
        return value

    def to_mapping(self) -> dict[str, Any]:
        """Return the options keyed by their document spelling."""
        return self.model_dump(by_alias=True)


_FIELD_ALIASES: dict[str, str] = {
    name: (info.alias or name) for name, info in ChunkOptions.model_fields.items()
}
KNOWN_OPTIONS: frozenset[str] = frozenset(_FIELD_ALIASES.values())


def normalise_option_name(name: str) -> str:
    """Map ``fig_width`` style names onto their ``fig.width`` spelling."""
    key = name.strip()
    return _FIELD_ALIASES.get(key, key)


def normalise_options(values: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``values`` with every key normalised to its document spelling."""
    return {normalise_option_name(key): value for key, value in values.items()}


def _split_top_level(raw: str, separator: str) -> list[str]:
    parts: list[str] = []
    depth = 0
    quote: str | None = None
    buffer: list[str] = []
    previous = ""
    for char in raw:
        if quote is not None:
            buffer.append(char)
            if char == quote and previous != "\\":
                quote = None
        elif char in {"'", '"'}:
            quote = char
            buffer.append(char)
        elif char in "([{":
            depth += 1
            buffer.append(char)
        elif char in ")]}":
            depth -= 1
            buffer.append(char)
        elif char == separator and depth == 0:
            parts.append("".join(buffer))
            buffer = []
        else:
            buffer.append(char)
        previous = char
    if quote is not None or depth != 0:
        raise ValueError("unbalanced quotes or brackets")
    parts.append("".join(buffer))
    return parts


def _split_assignment(part: str) -> tuple[str, str] | None:
    pieces = _split_top_level(part, "=")
    if len(pieces) == 1:
        return None
    name = pieces[0]
    value = "=".join(pieces[1:])
    return name.strip(), value.strip()


def parse_literal(text: str) -> Any:
    """Parse one option value written in a chunk header."""
    value = text.strip()
    if not value:
        raise ValueError("missing value")
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    if value in _NULL_VALUES:
        return None
    vector = _R_VECTOR.match(value)
    if vector:
        inner = vector.group(1).strip()
        if not inner:
            return []
        return [parse_literal(item) for item in _split_top_level(inner, ",")]
    try:
        parsed = ast.literal_eval(value)
    except (ValueError, SyntaxError):
        if _BARE_WORD.match(value):
            return value
        raise ValueError(f"cannot parse value {value!r}") from None
    if isinstance(parsed, tuple):
        return list(parsed)
    return parsed


def parse_option_string(
    raw: str,
    *,
    lines: tuple[int, int] | None = None,
) -> tuple[str | None, dict[str, Any]]:
    """Parse a chunk header into its label and literal options."""
    label: str | None = None
    params: dict[str, Any] = {}
    text = raw.strip()
    if not text:
        return None, params

    try:
        parts = _split_top_level(text, ",")
    except ValueError as exc:
        raise MalformedOptionsError(
            f"Malformed chunk options '{raw}': {exc}", lines=lines
        ) from exc

    for position, part in enumerate(parts):
        if not part.strip():
            continue
        try:
            assignment = _split_assignment(part)
            if assignment is None:
                if position != 0:
                    raise ValueError(f"positional value {part.strip()!r} after the label")
                label = str(parse_literal(part))
                continue
            name, value = assignment
            if not name:
                raise ValueError(f"missing option name in {part.strip()!r}")
            params[normalise_option_name(name)] = parse_literal(value)
        except ValueError as exc:
            raise MalformedOptionsError(
                f"Malformed chunk options '{raw}': {exc}", label=label, lines=lines
            ) from exc

    if "label" in params:
        label = str(params.pop("label"))
    return label, params


@dataclass(slots=True)
class ChunkHeader:
    """Parsed, registered chunk: label, literal options and code."""

    index: int
    label: str
    params: dict[str, Any]
    code: str
    lines: tuple[int, int]


@dataclass(slots=True)
class LabelRegistry:
    """Labels claimed by the chunks of one top-level run, children included."""

    unnamed_prefix: str = "unnamed-chunk-"
    chunks: dict[str, ChunkHeader] = field(default_factory=dict)
    counter: int = 0

    def register(self, segment: Segment) -> ChunkHeader:
        """Parse a code segment header and claim its label."""
        self.counter += 1
        label, params = parse_option_string(segment.option_string, lines=segment.lines)
        if not label:
            label = f"{self.unnamed_prefix}{self.counter}"
        if label in self.chunks:
            previous = self.chunks[label]
            raise DuplicateLabelError(
                f"Duplicate chunk label '{label}' (lines {previous.lines[0]}-"
                f"{previous.lines[1]} and {segment.lines[0]}-{segment.lines[1]}).",
                label=label,
                lines=segment.lines,
            )
        header = ChunkHeader(
            index=self.counter,
            label=label,
            params=params,
            code=segment.code,
            lines=segment.lines,
        )
        self.chunks[label] = header
        return header

    def get(self, label: str) -> ChunkHeader | None:
        return self.chunks.get(label)

    def code_for(self, header: ChunkHeader) -> str:
        """Return the chunk code, borrowing from ``ref.label`` targets when empty."""
        if header.code.strip():
            return header.code
        references = _as_list(header.params.get("ref.label"))
        bodies = [self.chunks[ref].code for ref in references if ref in self.chunks]
        return "\n".join(bodies) if bodies else header.code


def explicit_options(header: ChunkHeader, registry: LabelRegistry) -> dict[str, Any]:
    """Return the options set on a chunk, including its ``ref.label`` layer."""
    merged: dict[str, Any] = {}
    references = _as_list(header.params.get("ref.label"))
    for ref in references:
        target = registry.get(ref)
        if target is None:
            raise MalformedOptionsError(
                f"Chunk '{header.label}' references unknown chunk '{ref}'.",
                label=header.label,
                lines=header.lines,
            )
        merged.update(
            {k: v for k, v in target.params.items() if k not in {"label", "ref.label"}}
        )
    merged.update(header.params)
    return merged


def _drop_unknown(values: dict[str, Any], label: str) -> dict[str, Any]:
    unknown = sorted(key for key in values if key not in KNOWN_OPTIONS)
    if unknown:
        _log.warning("Ignoring unknown options in chunk '%s': %s", label, ", ".join(unknown))
    return {key: value for key, value in values.items() if key in KNOWN_OPTIONS}


def resolve_options(
    header: ChunkHeader,
    defaults: Mapping[str, Any],
    registry: LabelRegistry,
    *,
    tolerate_unknown: bool = False,
) -> ChunkOptions:
    """Merge defaults, the ``ref.label`` layer and literal options."""
    merged = normalise_options(defaults)
    merged.update(explicit_options(header, registry))
    merged["label"] = header.label
    if tolerate_unknown:
        merged = _drop_unknown(merged, header.label)
    try:
        return ChunkOptions.model_validate(merged)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise MalformedOptionsError(
            f"Invalid options for chunk '{header.label}': {problems}",
            label=header.label,
            lines=header.lines,
        ) from exc


def recycle(*values: Any) -> list[tuple[Any, ...]]:
    """Broadcast scalars and lists to the longest length, recycling shorter lists."""
    columns: list[list[Any]] = [
        list(value) if isinstance(value, (list, tuple)) else [value] for value in values
    ]
    columns = [column or [None] for column in columns]
    length = max(len(column) for column in columns)
    return [tuple(column[i % len(column)] for column in columns) for i in range(length)]


def selected(selection: bool | Iterable[int], index: int) -> bool:
    """Return whether statement ``index`` (1-based) is enabled by a selection."""
    if isinstance(selection, bool):
        return selection
    return index in set(selection)


__all__ = [
    "KNOWN_OPTIONS",
    "ChunkHeader",
    "ChunkOptions",
    "LabelRegistry",
    "explicit_options",
    "normalise_option_name",
    "normalise_options",
    "parse_literal",
    "parse_option_string",
    "recycle",
    "resolve_options",
    "selected",
]
