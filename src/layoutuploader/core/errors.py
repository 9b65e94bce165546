"""Exception hierarchy shared by the tiling, upload and pipeline layers."""

from __future__ import annotations


class UploaderError(RuntimeError):
    """Base class for every failure raised by a layout upload run."""


class ConfigError(UploaderError):
    """Raised when a required run parameter is missing or out of range."""


class PlanningError(UploaderError):
    """Raised when a tile pyramid cannot be planned for the source image."""


class InvalidDimensions(PlanningError):
    """Raised when the source width or height is not positive."""


class InvalidTileSize(PlanningError):
    """Raised when the tile edge length is not positive."""


class RenderError(UploaderError):
    """Raised when the source image cannot be decoded or resized."""


class UploadRetryableError(UploaderError):
    """Transient upload failure (network error, 5xx, throttling)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UploadFatalError(UploaderError):
    """Upload failure that aborts the run (4xx or exhausted retries)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class FinalizeError(UploaderError):
    """Raised when tiles were uploaded but the layout could not be registered."""


class CancelledByUser(UploaderError):
    """Raised when the cancellation token is observed set."""


class PipelineBusyError(UploaderError):
    """Raised when a run is started while another one is still active."""
