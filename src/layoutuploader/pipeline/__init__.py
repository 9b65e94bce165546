"""Run orchestration, shared state and the command surface."""

from .orchestrator import UPLOAD_CONCURRENCY, PipelineState, TilePipeline
from .service import UploaderService
from .state import CancellationToken, ProgressTracker

__all__ = [
    "CancellationToken",
    "PipelineState",
    "ProgressTracker",
    "TilePipeline",
    "UPLOAD_CONCURRENCY",
    "UploaderService",
]
