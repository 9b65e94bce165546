"""Render padded level canvases with Pillow and cut them into tiles."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from PIL import Image, UnidentifiedImageError

from layoutuploader.core.errors import RenderError
from layoutuploader.core.models import Color, Tile, ZoomLevel
from layoutuploader.logging import get_logger

LOGGER = get_logger(__name__)

# Source images are user supplied and can be arbitrarily large.
Image.MAX_IMAGE_PIXELS = None

_WIDE_GRAY_MODES = ("I", "F")


def load_source(path: Path | str) -> Image.Image:
    """Decode ``path`` into an RGB or RGBA image held in memory."""

    image_path = Path(path)
    try:
        with Image.open(image_path) as handle:
            handle.load()
            image = _normalize_mode(handle)
    except FileNotFoundError as exc:
        raise RenderError(f"Failed to open image: {image_path} does not exist") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise RenderError(f"Failed to open image: {exc}") from exc
    LOGGER.info(
        "source image loaded",
        extra={"path": str(image_path), "width": image.width, "height": image.height, "mode": image.mode},
    )
    return image


def read_dimensions(path: Path | str) -> tuple[int, int]:
    """Return the ``(width, height)`` of an image without decoding its pixels."""

    image_path = Path(path)
    try:
        with Image.open(image_path) as handle:
            return handle.size
    except FileNotFoundError as exc:
        raise RenderError(f"Failed to open image: {image_path} does not exist") from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise RenderError(f"Failed to open image: {exc}") from exc


def _normalize_mode(image: Image.Image) -> Image.Image:
    if image.mode in ("RGB", "RGBA"):
        return image.copy()
    if image.mode in _WIDE_GRAY_MODES or image.mode.startswith("I;16"):
        return _to_8bit_gray(image).convert("RGB")
    has_alpha = image.mode in ("LA", "PA") or (image.mode == "P" and "transparency" in image.info)
    return image.convert("RGBA" if has_alpha else "RGB")


def _to_8bit_gray(image: Image.Image) -> Image.Image:
    # Samples are taken to span the 16-bit range; 65535 maps to 255.
    wide = image if image.mode in _WIDE_GRAY_MODES else image.convert("I")
    return wide.point(lambda value: value * (1 / 257)).convert("L")


class TileRenderer:
    """Produce the tiles of one zoom level at a time from a decoded source."""

    def __init__(self, source: Image.Image, background_color: Color) -> None:
        if source.mode not in ("RGB", "RGBA"):
            source = _normalize_mode(source)
        self._source = source
        self._background = tuple(background_color)

    @property
    def source_size(self) -> tuple[int, int]:
        return self._source.size

    def render_level(self, level: ZoomLevel) -> Image.Image:
        """Return the background-filled canvas of ``level`` with the scaled image centered on it."""

        try:
            if (level.width, level.height) == self._source.size:
                scaled = self._source
            else:
                # Always resample from the full-resolution source.
                scaled = self._source.resize((level.width, level.height), Image.Resampling.LANCZOS)
            canvas = Image.new("RGB", (level.canvas_width, level.canvas_height), self._background)
            # RGBA pastes through its own alpha band.
            mask = scaled if scaled.mode == "RGBA" else None
            canvas.paste(scaled, (level.offset_x, level.offset_y), mask)
            if scaled is not self._source:
                scaled.close()
        except (ValueError, OSError, MemoryError) as exc:
            raise RenderError(f"Failed to render zoom level {level.zoom}: {exc}") from exc
        LOGGER.debug(
            "level canvas rendered",
            extra={
                "zoom": level.zoom,
                "scaled": f"{level.width}x{level.height}",
                "canvas": f"{level.canvas_width}x{level.canvas_height}",
            },
        )
        return canvas

    @staticmethod
    def slice_level(canvas: Image.Image, level: ZoomLevel) -> Iterator[Tile]:
        """Yield full-size tiles of ``canvas`` in row-major order."""

        size = level.tile_size
        if canvas.size != (level.canvas_width, level.canvas_height):
            raise RenderError(
                f"Canvas {canvas.width}x{canvas.height} does not match zoom level {level.zoom} "
                f"({level.canvas_width}x{level.canvas_height})"
            )
        for row in range(level.rows):
            for column in range(level.columns):
                left = column * size
                top = row * size
                yield Tile(
                    zoom=level.zoom,
                    column=column,
                    row=row,
                    image=canvas.crop((left, top, left + size, top + size)),
                    tile_size=size,
                )

