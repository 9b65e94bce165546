"""Pyramid planning, rendering and encoding for layoutuploader."""

from .base import PayloadEncoder, TileSource
from .encoder import TileEncoder
from .planner import plan_pyramid, pyramid_metadata, total_tiles
from .renderer import TileRenderer, load_source, read_dimensions

__all__ = [
    "PayloadEncoder",
    "TileEncoder",
    "TileRenderer",
    "TileSource",
    "load_source",
    "plan_pyramid",
    "pyramid_metadata",
    "read_dimensions",
    "total_tiles",
]
