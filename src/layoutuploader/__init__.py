"""Deep zoom tile pyramid generation and upload to a layout hosting service."""

from __future__ import annotations

import importlib
from typing import Any

__all__ = [
    "CancellationToken",
    "ProcessConfig",
    "ProgressTracker",
    "ProgressUpdate",
    "RunResult",
    "RunStatus",
    "TileEncoder",
    "TilePipeline",
    "TileRenderer",
    "UploadClient",
    "UploaderService",
    "UploaderSettings",
    "ZoomLevel",
    "plan_pyramid",
]

_MODULE_MAP = {
    "CancellationToken": ("layoutuploader.pipeline", "CancellationToken"),
    "ProcessConfig": ("layoutuploader.core", "ProcessConfig"),
    "ProgressTracker": ("layoutuploader.pipeline", "ProgressTracker"),
    "ProgressUpdate": ("layoutuploader.core", "ProgressUpdate"),
    "RunResult": ("layoutuploader.core", "RunResult"),
    "RunStatus": ("layoutuploader.core", "RunStatus"),
    "TileEncoder": ("layoutuploader.tiling", "TileEncoder"),
    "TilePipeline": ("layoutuploader.pipeline", "TilePipeline"),
    "TileRenderer": ("layoutuploader.tiling", "TileRenderer"),
    "UploadClient": ("layoutuploader.upload", "UploadClient"),
    "UploaderService": ("layoutuploader.pipeline", "UploaderService"),
    "UploaderSettings": ("layoutuploader.config", "UploaderSettings"),
    "ZoomLevel": ("layoutuploader.core", "ZoomLevel"),
    "plan_pyramid": ("layoutuploader.tiling", "plan_pyramid"),
}


def __getattr__(name: str) -> Any:
    if name not in _MODULE_MAP:
        raise AttributeError(f"module 'layoutuploader' has no attribute '{name}'")
    module_name, attr = _MODULE_MAP[name]
    module = importlib.import_module(module_name)
    return getattr(module, attr)
