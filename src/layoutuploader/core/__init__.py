"""Core data models and errors for layoutuploader."""

from .errors import (
    CancelledByUser,
    ConfigError,
    FinalizeError,
    InvalidDimensions,
    InvalidTileSize,
    PipelineBusyError,
    PlanningError,
    RenderError,
    UploaderError,
    UploadFatalError,
    UploadRetryableError,
)
from .models import (
    LevelMetadata,
    ProcessConfig,
    ProgressUpdate,
    PyramidMetadata,
    RunResult,
    RunStatus,
    Tile,
    ZoomLevel,
    parse_color,
    parse_server_details,
)

__all__ = [
    "CancelledByUser",
    "ConfigError",
    "FinalizeError",
    "InvalidDimensions",
    "InvalidTileSize",
    "LevelMetadata",
    "PipelineBusyError",
    "PlanningError",
    "ProcessConfig",
    "ProgressUpdate",
    "PyramidMetadata",
    "RenderError",
    "RunResult",
    "RunStatus",
    "Tile",
    "UploadFatalError",
    "UploadRetryableError",
    "UploaderError",
    "ZoomLevel",
    "parse_color",
    "parse_server_details",
]
