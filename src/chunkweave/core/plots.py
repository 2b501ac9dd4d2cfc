"""Figure naming and the plot-writing collaborator."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from slugify import slugify

from .options import ChunkOptions, recycle


_DEVICE_EXTENSIONS = {
    "png": "png",
    "pdf": "pdf",
    "svg": "svg",
    "jpeg": "jpg",
    "jpg": "jpg",
    "tiff": "tiff",
    "eps": "eps",
    "ps": "ps",
}


@runtime_checkable
class PlotWriter(Protocol):
    """Write one recorded plot to ``path`` using the given device settings."""

    def save(
        self,
        plot: Any,
        path: Path,
        *,
        device: str,
        width: float,
        height: float,
        dpi: int,
    ) -> Path: ...


class DefaultPlotWriter:
    """Writer handling figure-like objects, raw bytes and text payloads.

    Figure-like objects expose ``savefig`` (matplotlib figures do); objects with
    a ``save`` method (PIL images, for instance) are saved directly; ``bytes``
    and ``str`` payloads are written verbatim.
    """

    def save(
        self,
        plot: Any,
        path: Path,
        *,
        device: str,
        width: float,
        height: float,
        dpi: int,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        if hasattr(plot, "savefig"):
            if hasattr(plot, "set_size_inches"):
                plot.set_size_inches(width, height)
            plot.savefig(path, format=device, dpi=dpi)
        elif isinstance(plot, (bytes, bytearray)):
            path.write_bytes(bytes(plot))
        elif isinstance(plot, str):
            path.write_text(plot, encoding="utf-8")
        elif callable(getattr(plot, "save", None)):
            plot.save(path)
        else:
            msg = f"Cannot write plot object of type {type(plot).__name__}"
            raise TypeError(msg)
        return path


def device_extension(device: str) -> str:
    """Return the file extension conventionally produced by ``device``."""
    return _DEVICE_EXTENSIONS.get(device.lower(), device.lower())


def fig_path(options: ChunkOptions, number: int, ext: str = "") -> str:
    """Return the figure path stem (or full name when ``ext`` is given)."""
    stem = slugify(options.label, separator="-", lowercase=False) or "unnamed"
    suffix = f".{ext}" if ext else ""
    return f"{options.fig_path}{stem}-{number}{suffix}"


def save_plot_variants(
    plot: Any,
    options: ChunkOptions,
    writer: PlotWriter,
    number: int,
) -> list[Path]:
    """Write every width/height/device/extension/dpi variant of one plot.

    List-valued options are recycled to the length of the longest one; every
    variant shares the figure number.
    """
    devices = options.dev
    if options.fig_ext is not None:
        extensions: Any = options.fig_ext
    elif isinstance(devices, list):
        extensions = [device_extension(device) for device in devices]
    else:
        extensions = device_extension(devices)

    written: list[Path] = []
    for width, height, device, ext, dpi in recycle(
        options.fig_width, options.fig_height, devices, extensions, options.dpi
    ):
        target = Path(fig_path(options, number, ext))
        written.append(
            writer.save(plot, target, device=device, width=width, height=height, dpi=dpi)
        )
    return written


__all__ = [
    "DefaultPlotWriter",
    "PlotWriter",
    "device_extension",
    "fig_path",
    "save_plot_variants",
]
