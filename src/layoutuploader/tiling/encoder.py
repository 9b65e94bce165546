"""JPEG encoding of tile pixel buffers."""

from __future__ import annotations

import io

from PIL import Image

from layoutuploader.core.errors import ConfigError, RenderError
from layoutuploader.core.models import Tile

CONTENT_TYPE = "image/jpeg"
FILE_NAME = "tile.jpg"


class TileEncoder:
    """Encode tiles as baseline JPEG.

    All encoder options are pinned; the same pixels always produce the same
    bytes.
    """

    def __init__(self, quality: int = 90) -> None:
        if not 1 <= quality <= 95:
            raise ConfigError(f"JPEG quality must be between 1 and 95, got {quality}")
        self._quality = quality

    def encode(self, tile: Tile) -> bytes:
        return self.encode_image(tile.image)

    def encode_image(self, image: Image.Image) -> bytes:
        rgb = image if image.mode == "RGB" else image.convert("RGB")
        buffer = io.BytesIO()
        try:
            rgb.save(
                buffer,
                format="JPEG",
                quality=self._quality,
                subsampling=0,
                optimize=False,
                progressive=False,
            )
        except (OSError, ValueError) as exc:
            raise RenderError(f"Failed to encode JPEG: {exc}") from exc
        return buffer.getvalue()
