"""Layout service upload interfaces for layoutuploader."""

from .base import TileUploader
from .client import UploadClient, is_retryable_status

__all__ = ["TileUploader", "UploadClient", "is_retryable_status"]
