"""Output hooks producing reStructuredText."""

from __future__ import annotations

import textwrap

from chunkweave.core.hooks import HookRegistry
from chunkweave.core.options import ChunkOptions


def _indent(text: str) -> str:
    return textwrap.indent(text.rstrip("\n"), "    ") + "\n"


def source_hook(text: str, options: ChunkOptions) -> str:
    return f"\n.. code-block:: {options.engine}\n\n{_indent(text)}\n"


def output_hook(text: str, options: ChunkOptions) -> str:
    if options.results == "asis":
        return text
    return f"\n::\n\n{_indent(text)}\n"


def plot_hook(path: str, options: ChunkOptions) -> str:
    directive = "figure" if options.fig_cap else "image"
    lines = [f".. {directive}:: {path}"]
    if options.out_width:
        lines.append(f"    :width: {options.out_width}")
    if options.out_height:
        lines.append(f"    :height: {options.out_height}")
    if options.fig_align != "default":
        lines.append(f"    :align: {options.fig_align}")
    if options.fig_cap:
        lines.extend(["", f"    {options.fig_cap}"])
    return "\n" + "\n".join(lines) + "\n\n"


def render_rst() -> HookRegistry:
    """Return hooks writing ``code-block`` and literal blocks."""
    return HookRegistry(
        source=source_hook,
        output=output_hook,
        warning=output_hook,
        message=output_hook,
        error=output_hook,
        plot=plot_hook,
    )


__all__ = ["render_rst"]
