"""Dataclasses describing core layout upload entities."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from .errors import ConfigError

if TYPE_CHECKING:  # pragma: no cover - typing only
    from PIL import Image

MIN_TILE_SIZE = 64
MAX_TILE_SIZE = 1024
DEFAULT_TILE_SIZE = 256

_HEX_COLOR = re.compile(r"^#?([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")

Color = Tuple[int, int, int]


def parse_color(value: str) -> Color:
    """Return an ``(r, g, b)`` tuple for a ``#rrggbb`` string."""

    match = _HEX_COLOR.match(value.strip())
    if match is None:
        raise ConfigError(f"Invalid background color '{value}'; expected #rrggbb")
    return tuple(int(group, 16) for group in match.groups())  # type: ignore[return-value]


def format_color(color: Color) -> str:
    return "#{:02x}{:02x}{:02x}".format(*color)


def parse_server_details(value: str) -> Tuple[str, str, str]:
    """Split ``server_url|layout_key|secret`` into its three fields."""

    parts = [part.strip() for part in value.split("|")]
    if len(parts) != 3 or not all(parts):
        raise ConfigError("Server details must look like 'server_url|layout_key|secret'")
    server_address, layout_key, secret = parts
    return server_address, layout_key, secret


@dataclass(frozen=True)
class ProcessConfig:
    """Immutable input of one upload run."""

    image_path: Path
    server_address: str
    layout_key: str
    secret: str
    background_color: Color = (0, 0, 0)
    tile_size: int = DEFAULT_TILE_SIZE

    @classmethod
    def from_server_string(
        cls,
        image_path: Path | str,
        server_details: str,
        *,
        background_color: Color = (0, 0, 0),
        tile_size: int = DEFAULT_TILE_SIZE,
    ) -> "ProcessConfig":
        server_address, layout_key, secret = parse_server_details(server_details)
        return cls(
            image_path=Path(image_path),
            server_address=server_address,
            layout_key=layout_key,
            secret=secret,
            background_color=background_color,
            tile_size=tile_size,
        )

    def validate(self) -> None:
        """Raise :class:`ConfigError` when the config cannot start a run."""

        missing = [
            name
            for name, value in (
                # Path("") renders as "."
                ("image_path", "" if str(self.image_path) == "." else str(self.image_path)),
                ("server_address", self.server_address),
                ("layout_key", self.layout_key),
                ("secret", self.secret),
            )
            if not value or not value.strip()
        ]
        if missing:
            raise ConfigError(f"Missing required fields: {', '.join(missing)}")
        if not isinstance(self.tile_size, int) or not MIN_TILE_SIZE <= self.tile_size <= MAX_TILE_SIZE:
            raise ConfigError(
                f"tile_size must be an integer between {MIN_TILE_SIZE} and {MAX_TILE_SIZE}, "
                f"got {self.tile_size!r}"
            )
        if len(self.background_color) != 3 or any(
            not isinstance(channel, int) or not 0 <= channel <= 255
            for channel in self.background_color
        ):
            raise ConfigError(f"background_color must be three values in 0..255, got {self.background_color!r}")


@dataclass(frozen=True)
class ZoomLevel:
    """One resolution layer of the pyramid.

    ``zoom`` 0 is the coarsest level. ``width``/``height`` describe the scaled
    source image, ``canvas_width``/``canvas_height`` the padded canvas it is
    centered on.
    """

    zoom: int
    width: int
    height: int
    canvas_width: int
    canvas_height: int
    columns: int
    rows: int
    offset_x: int
    offset_y: int
    tile_size: int

    @property
    def tile_count(self) -> int:
        return self.columns * self.rows


@dataclass
class Tile:
    """A single tile cut from a level canvas; owned by one worker at a time."""

    zoom: int
    column: int
    row: int
    image: "Image.Image"
    tile_size: int

    @property
    def x(self) -> int:
        return self.column * self.tile_size

    @property
    def y(self) -> int:
        return self.row * self.tile_size

    @property
    def key(self) -> str:
        return f"{self.zoom}/{self.x}/{self.y}"


class RunStatus(str, Enum):
    STARTING = "Starting"
    PROCESSING_TILES = "Processing tiles"
    UPLOADING = "Uploading"
    GENERATING_THUMBNAILS = "Generating thumbnails"
    FINALIZING = "Finalizing"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    ERROR = "Error"

    @property
    def is_terminal(self) -> bool:
        return self in {RunStatus.CANCELLED, RunStatus.COMPLETED, RunStatus.ERROR}


@dataclass(frozen=True)
class ProgressUpdate:
    """Read-only progress snapshot handed to pollers."""

    current: int
    total: int
    zoom_level: int
    percentage: float
    status: RunStatus
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "zoom_level": self.zoom_level,
            "percentage": self.percentage,
            "status": self.status.value,
            "message": self.message,
        }


@dataclass(frozen=True)
class LevelMetadata:
    zoom: int
    canvas_width: int
    canvas_height: int
    columns: int
    rows: int


@dataclass(frozen=True)
class PyramidMetadata:
    """Description of an uploaded pyramid registered by the finalize call."""

    source_width: int
    source_height: int
    tile_size: int
    background_color: Color
    levels: Tuple[LevelMetadata, ...] = field(default_factory=tuple)

    @property
    def level_count(self) -> int:
        return len(self.levels)

    @property
    def max_zoom(self) -> int:
        return max((level.zoom for level in self.levels), default=0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sourceWidth": self.source_width,
            "sourceHeight": self.source_height,
            "tileSize": self.tile_size,
            "backgroundColor": format_color(self.background_color),
            "levelCount": self.level_count,
            "maxZoom": self.max_zoom,
            "levels": [
                {
                    "zoom": level.zoom,
                    "width": level.canvas_width,
                    "height": level.canvas_height,
                    "columns": level.columns,
                    "rows": level.rows,
                }
                for level in self.levels
            ],
        }


@dataclass(frozen=True)
class RunResult:
    """Terminal outcome of one run; ``message`` is the only user-facing text."""

    status: RunStatus
    message: str
    max_zoom: Optional[int] = None
    layout_path: Optional[str] = None
    tiles_uploaded: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status is RunStatus.COMPLETED
