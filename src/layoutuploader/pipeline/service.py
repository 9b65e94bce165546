"""Command surface used by front ends: start, cancel and poll a run."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from layoutuploader.config.loader import UploaderSettings
from layoutuploader.core.errors import PipelineBusyError
from layoutuploader.core.models import ProcessConfig, ProgressUpdate, RunResult, RunStatus
from layoutuploader.logging import get_logger

from .orchestrator import TilePipeline
from .state import CancellationToken, ProgressTracker

LOGGER = get_logger(__name__)

PipelineFactory = Callable[..., TilePipeline]


class UploaderService:
    """Own the process-wide progress record and allow one active run at a time.

    ``start`` blocks until the run ends, so ``cancel`` and ``get_progress``
    are meant to be called from other threads while it is running.
    """

    def __init__(
        self,
        *,
        settings: Optional[UploaderSettings] = None,
        pipeline_factory: PipelineFactory = TilePipeline,
    ) -> None:
        self._settings = settings or UploaderSettings()
        self._pipeline_factory = pipeline_factory
        self._lock = threading.Lock()
        self._tracker = ProgressTracker()
        self._token: Optional[CancellationToken] = None
        self._active = False

    @property
    def is_active(self) -> bool:
        with self._lock:
            return self._active

    def start(self, config: ProcessConfig) -> RunResult:
        """Run one job to completion, failure or cancellation.

        Raises :class:`ConfigError` before anything starts when ``config`` is
        invalid and :class:`PipelineBusyError` when another run is active.
        """

        config.validate()
        with self._lock:
            if self._active:
                raise PipelineBusyError("A run is already in progress")
            self._active = True
            self._token = CancellationToken()
            self._tracker.reset()
            token = self._token
        LOGGER.info(
            "run started",
            extra={"image": str(config.image_path), "layout_key": config.layout_key, "tile_size": config.tile_size},
        )
        try:
            try:
                pipeline = self._pipeline_factory(
                    config,
                    tracker=self._tracker,
                    token=token,
                    settings=self._settings,
                )
            except Exception as exc:
                LOGGER.exception("could not set up the run")
                message = f"Unexpected error: {exc}"
                self._tracker.finish(RunStatus.ERROR, message)
                return RunResult(status=RunStatus.ERROR, message=message)
            return pipeline.run()
        finally:
            with self._lock:
                self._active = False

    def cancel(self) -> bool:
        """Request cancellation of the active run; return False when idle."""

        with self._lock:
            if not self._active or self._token is None:
                return False
            already = self._token.cancelled
            self._token.cancel()
        if not already:
            LOGGER.info("cancellation requested")
        return True

    def get_progress(self) -> Optional[ProgressUpdate]:
        """Return the latest snapshot, or None if no run has started yet."""

        return self._tracker.snapshot()
