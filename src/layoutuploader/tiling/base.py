"""Protocol definitions for tile production components."""

from __future__ import annotations

from typing import Iterator, Protocol

from PIL import Image

from layoutuploader.core.models import Tile, ZoomLevel


class TileSource(Protocol):
    """Interface for producing the tiles of one zoom level."""

    @property
    def source_size(self) -> tuple[int, int]:
        """Return the ``(width, height)`` of the full-resolution source."""

    def render_level(self, level: ZoomLevel) -> Image.Image:
        """Return the padded canvas of ``level``."""

    def slice_level(self, canvas: Image.Image, level: ZoomLevel) -> Iterator[Tile]:
        """Yield every tile of ``canvas`` in row-major order."""


class PayloadEncoder(Protocol):
    """Interface for turning a tile into transport-ready bytes."""

    def encode(self, tile: Tile) -> bytes:
        """Return the encoded payload of ``tile``."""
