"""Output hooks producing Markdown."""

from __future__ import annotations

import re

from chunkweave.core.hooks import HookRegistry
from chunkweave.core.options import ChunkOptions


def _fence(text: str, info: str = "") -> str:
    body = text if text.endswith("\n") else f"{text}\n"
    fence = "````" if "```" in body else "```"
    return f"{fence}{info}\n{body}{fence}\n"


def source_hook(text: str, options: ChunkOptions) -> str:
    return _fence(text, options.engine)


def output_hook(text: str, options: ChunkOptions) -> str:
    if options.results == "asis":
        return text
    return _fence(text)


def plot_hook(path: str, options: ChunkOptions) -> str:
    caption = options.fig_cap or ""
    attributes = []
    if options.out_width:
        attributes.append(f"width={options.out_width}")
    if options.out_height:
        attributes.append(f"height={options.out_height}")
    if options.fig_align != "default":
        attributes.append(f"fig-align={options.fig_align}")
    suffix = "{" + " ".join(attributes) + "}" if attributes else ""
    return f"![{caption}]({path}){suffix}\n"


def chunk_hook(text: str, options: ChunkOptions) -> str:
    if not options.collapse:
        return text
    # Merge a closing fence directly followed by another fence.
    return re.sub(r"\n(`{3,})\n+\1(?:" + re.escape(options.engine) + r")?\n", "\n", text)


def render_markdown() -> HookRegistry:
    """Return hooks writing fenced code blocks and Markdown images."""
    return HookRegistry(
        source=source_hook,
        output=output_hook,
        warning=output_hook,
        message=output_hook,
        error=output_hook,
        plot=plot_hook,
        chunk=chunk_hook,
    )


__all__ = ["render_markdown"]
