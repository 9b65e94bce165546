"""Zoom-level planning for deep zoom tile pyramids.

Levels are produced by repeatedly halving the source image. Level ``k`` (``k``
= 0 for the source itself) has the scaled size ``ceil(width / 2**k)`` ×
``ceil(height / 2**k)``; halving stops at the first level whose longest edge
fits within ``min_resolution`` (one tile by default). Every level is padded up
to whole tiles and the scaled image is centered on that canvas. When the
padding is odd the extra pixel goes to the right/bottom edge.

The returned list is ordered most detailed first, which is the order in which
levels are rendered and uploaded. Zoom indices count from the other end: the
coarsest level is zoom 0.
"""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from layoutuploader.core.errors import InvalidDimensions, InvalidTileSize, PlanningError
from layoutuploader.core.models import Color, LevelMetadata, PyramidMetadata, ZoomLevel


def _padded(size: int, tile_size: int) -> int:
    return math.ceil(size / tile_size) * tile_size


def _scaled_sizes(
    width: int,
    height: int,
    min_resolution: int,
) -> List[Tuple[int, int]]:
    sizes = [(width, height)]
    while max(sizes[-1]) > min_resolution:
        factor = 2 ** len(sizes)
        sizes.append((math.ceil(width / factor), math.ceil(height / factor)))
    return sizes


def plan_pyramid(
    width: int,
    height: int,
    tile_size: int,
    *,
    min_resolution: Optional[int] = None,
    max_resolution: Optional[int] = None,
) -> List[ZoomLevel]:
    """Return the zoom levels for a ``width`` × ``height`` source, finest first."""

    if width <= 0 or height <= 0:
        raise InvalidDimensions(f"Source dimensions must be positive, got {width}x{height}")
    if tile_size <= 0:
        raise InvalidTileSize(f"Tile size must be positive, got {tile_size}")

    floor = tile_size if min_resolution is None else min_resolution
    if floor <= 0:
        raise PlanningError(f"min_resolution must be positive, got {floor}")
    if max_resolution is not None and max_resolution < floor:
        raise PlanningError(
            f"max_resolution ({max_resolution}) must not be smaller than min_resolution ({floor})"
        )

    sizes = _scaled_sizes(width, height, floor)
    if max_resolution is not None:
        sizes = [size for size in sizes if max(size) <= max_resolution]
    if not sizes:  # pragma: no cover - the coarsest size always satisfies max_resolution >= floor
        raise PlanningError("No zoom level fits within the requested resolution bounds")

    levels: List[ZoomLevel] = []
    top_zoom = len(sizes) - 1
    for index, (level_width, level_height) in enumerate(sizes):
        canvas_width = _padded(level_width, tile_size)
        canvas_height = _padded(level_height, tile_size)
        levels.append(
            ZoomLevel(
                zoom=top_zoom - index,
                width=level_width,
                height=level_height,
                canvas_width=canvas_width,
                canvas_height=canvas_height,
                columns=canvas_width // tile_size,
                rows=canvas_height // tile_size,
                offset_x=(canvas_width - level_width) // 2,
                offset_y=(canvas_height - level_height) // 2,
                tile_size=tile_size,
            )
        )
    return levels


def total_tiles(levels: Iterable[ZoomLevel]) -> int:
    """Return the number of tiles across all ``levels``."""

    return sum(level.tile_count for level in levels)


def pyramid_metadata(
    levels: Sequence[ZoomLevel],
    *,
    source_size: Tuple[int, int],
    background_color: Color,
) -> PyramidMetadata:
    """Describe a planned pyramid for layout registration, coarsest level first."""

    if not levels:
        raise PlanningError("Cannot describe an empty pyramid")
    ordered = sorted(levels, key=lambda level: level.zoom)
    return PyramidMetadata(
        source_width=source_size[0],
        source_height=source_size[1],
        tile_size=ordered[0].tile_size,
        background_color=tuple(background_color),  # type: ignore[arg-type]
        levels=tuple(
            LevelMetadata(
                zoom=level.zoom,
                canvas_width=level.canvas_width,
                canvas_height=level.canvas_height,
                columns=level.columns,
                rows=level.rows,
            )
            for level in ordered
        ),
    )
