"""Drive one image through planning, rendering, upload and finalize."""

from __future__ import annotations

import queue
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, wait
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator, Optional

from PIL import Image

from layoutuploader.config.loader import UploaderSettings
from layoutuploader.core.errors import (
    CancelledByUser,
    UploaderError,
    UploadFatalError,
)
from layoutuploader.core.models import ProcessConfig, RunResult, RunStatus, Tile, ZoomLevel
from layoutuploader.logging import get_logger
from layoutuploader.tiling.base import PayloadEncoder, TileSource
from layoutuploader.tiling.encoder import TileEncoder
from layoutuploader.tiling.planner import plan_pyramid, pyramid_metadata, total_tiles
from layoutuploader.tiling.renderer import TileRenderer, load_source
from layoutuploader.upload.base import TileUploader
from layoutuploader.upload.client import UploadClient

from .state import CancellationToken, ProgressTracker

LOGGER = get_logger(__name__)

# Number of tiles encoded and uploaded in parallel within one level.
UPLOAD_CONCURRENCY = 4

# Sliced tiles waiting for a worker, per worker.
QUEUE_DEPTH_PER_WORKER = 2
QUEUE_POLL_SECONDS = 0.05

CANCELLED_MESSAGE = "Processing cancelled"


class PipelineState(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    RENDERING = "rendering"
    UPLOADING = "uploading"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in {PipelineState.COMPLETED, PipelineState.ERROR, PipelineState.CANCELLED}


class TilePipeline:
    """Single-use orchestrator of one upload run.

    Levels are processed one after another, finest first. Within a level a
    fixed pool of workers drains a queue of tiles; each worker checks the
    cancellation token and the level's abort flag before taking another tile.
    """

    def __init__(
        self,
        config: ProcessConfig,
        *,
        tracker: ProgressTracker,
        token: CancellationToken,
        settings: Optional[UploaderSettings] = None,
        uploader: Optional[TileUploader] = None,
        encoder: Optional[PayloadEncoder] = None,
        source_loader: Callable[[Path], Image.Image] = load_source,
        concurrency: int = UPLOAD_CONCURRENCY,
        layout_path: Optional[str] = None,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self._config = config
        self._tracker = tracker
        self._token = token
        self._settings = settings or UploaderSettings()
        self._uploader = uploader
        self._owns_uploader = uploader is None
        self._encoder = encoder or TileEncoder(self._settings.jpeg_quality)
        self._source_loader = source_loader
        self._concurrency = concurrency
        self._layout_path = layout_path or str(uuid.uuid4())
        self._state = PipelineState.IDLE
        self._current_zoom: Optional[int] = None
        self._failure_lock = threading.Lock()
        self._first_failure: Optional[BaseException] = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def current_zoom(self) -> Optional[int]:
        return self._current_zoom

    @property
    def layout_path(self) -> str:
        return self._layout_path

    def run(self) -> RunResult:
        """Execute the run and return its single terminal result."""

        if self._state is not PipelineState.IDLE:
            raise RuntimeError("TilePipeline instances are single-use")
        max_zoom: Optional[int] = None
        try:
            max_zoom = self._execute()
        except CancelledByUser:
            return self._terminate(PipelineState.CANCELLED, RunStatus.CANCELLED, CANCELLED_MESSAGE)
        except UploadFatalError as exc:
            LOGGER.error("run aborted by upload failure: %s", exc, extra={"layout_path": self._layout_path})
            return self._terminate(PipelineState.ERROR, RunStatus.ERROR, f"Upload failed: {exc}")
        except UploaderError as exc:
            LOGGER.error("run failed: %s", exc, extra={"layout_path": self._layout_path})
            return self._terminate(PipelineState.ERROR, RunStatus.ERROR, str(exc))
        except Exception as exc:
            LOGGER.exception("unexpected failure during run")
            return self._terminate(PipelineState.ERROR, RunStatus.ERROR, f"Unexpected error: {exc}")
        finally:
            if self._owns_uploader and self._uploader is not None:
                self._uploader.close()
        message = f"Processing completed successfully! Max zoom level: {max_zoom}"
        return self._terminate(PipelineState.COMPLETED, RunStatus.COMPLETED, message, max_zoom=max_zoom)

    def _execute(self) -> int:
        self._transition(PipelineState.PLANNING)
        self._config.validate()
        self._check_cancel()

        source = self._source_loader(Path(self._config.image_path))
        renderer: TileSource = TileRenderer(source, self._config.background_color)
        levels = plan_pyramid(
            *renderer.source_size,
            self._config.tile_size,
            min_resolution=self._settings.min_resolution,
            max_resolution=self._settings.max_resolution,
        )
        total = total_tiles(levels)
        self._tracker.set_total(total)
        metadata = pyramid_metadata(
            levels,
            source_size=renderer.source_size,
            background_color=self._config.background_color,
        )
        LOGGER.info(
            "pyramid planned",
            extra={
                "layout_path": self._layout_path,
                "levels": len(levels),
                "tiles": total,
                "tile_size": self._config.tile_size,
            },
        )

        uploader = self._ensure_uploader()
        for level in levels:
            self._check_cancel()
            self._current_zoom = level.zoom
            self._transition(PipelineState.RENDERING)
            stage = RunStatus.GENERATING_THUMBNAILS if level.tile_count == 1 else RunStatus.PROCESSING_TILES
            self._tracker.set_stage(stage, zoom_level=level.zoom, message=f"Rendering zoom level {level.zoom}")
            canvas = renderer.render_level(level)
            try:
                self._transition(PipelineState.UPLOADING)
                self._tracker.set_stage(
                    RunStatus.UPLOADING,
                    zoom_level=level.zoom,
                    message=f"Uploading zoom level {level.zoom} ({level.columns}x{level.rows} tiles)",
                )
                self._upload_level(level, renderer.slice_level(canvas, level), uploader)
            finally:
                canvas.close()

        self._check_cancel()
        self._transition(PipelineState.FINALIZING)
        self._tracker.set_stage(RunStatus.FINALIZING)
        uploader.finalize(self._layout_path, metadata)
        return metadata.max_zoom

    def _ensure_uploader(self) -> TileUploader:
        if self._uploader is None:
            self._uploader = UploadClient(
                self._config.server_address,
                self._config.layout_key,
                self._config.secret,
                max_attempts=self._settings.max_attempts,
                backoff_seconds=self._settings.backoff_seconds,
                timeout=self._settings.timeout_seconds,
                user_agent=self._settings.user_agent,
                pool_size=self._concurrency,
            )
        return self._uploader

    def _upload_level(self, level: ZoomLevel, tiles: Iterator[Tile], uploader: TileUploader) -> None:
        """Upload the tiles of one level as they are cut from its canvas.

        The coordinating thread slices tiles into a bounded queue while the
        workers drain it, so at most a few tiles exist besides the canvas.
        """

        pending: "queue.Queue[Tile]" = queue.Queue(maxsize=self._concurrency * QUEUE_DEPTH_PER_WORKER)
        sliced = threading.Event()
        abort = threading.Event()
        workers = max(1, min(self._concurrency, level.tile_count))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"zoom{level.zoom}-upload") as executor:
            futures = [
                executor.submit(self._upload_worker, pending, sliced, abort, uploader)
                for _ in range(workers)
            ]
            try:
                self._feed(tiles, pending, abort)
            except BaseException:
                abort.set()
                raise
            finally:
                sliced.set()
                wait(futures)
                _discard(pending)

        if self._token.cancelled:
            raise CancelledByUser(CANCELLED_MESSAGE)
        if self._first_failure is not None:
            raise self._first_failure
        LOGGER.info("zoom level uploaded", extra={"zoom": level.zoom, "tiles": level.tile_count})

    def _feed(self, tiles: Iterator[Tile], pending: "queue.Queue[Tile]", abort: threading.Event) -> None:
        for tile in tiles:
            while True:
                if abort.is_set() or self._token.cancelled:
                    tile.image.close()
                    return
                try:
                    pending.put(tile, timeout=QUEUE_POLL_SECONDS)
                    break
                except queue.Full:
                    continue

    def _upload_worker(
        self,
        pending: "queue.Queue[Tile]",
        sliced: threading.Event,
        abort: threading.Event,
        uploader: TileUploader,
    ) -> None:
        while not abort.is_set() and not self._token.cancelled:
            try:
                tile = pending.get(timeout=QUEUE_POLL_SECONDS)
            except queue.Empty:
                # Nothing is added once slicing has finished.
                if sliced.is_set() and pending.empty():
                    return
                continue
            try:
                payload = self._encoder.encode(tile)
                tile.image.close()
                uploader.upload_tile(self._layout_path, tile.key, payload, cancel_token=self._token)
            except CancelledByUser:
                return
            except Exception as exc:
                self._record_failure(exc)
                abort.set()
                return
            self._tracker.tile_completed(tile.zoom)
            LOGGER.debug("tile uploaded", extra={"tile": tile.key})

    def _record_failure(self, exc: BaseException) -> None:
        with self._failure_lock:
            if self._first_failure is None:
                self._first_failure = exc

    def _check_cancel(self) -> None:
        if self._token.cancelled:
            raise CancelledByUser(CANCELLED_MESSAGE)

    def _transition(self, state: PipelineState) -> None:
        LOGGER.debug(
            "pipeline state change",
            extra={"from": self._state.value, "to": state.value, "zoom": self._current_zoom},
        )
        self._state = state

    def _terminate(
        self,
        state: PipelineState,
        status: RunStatus,
        message: str,
        *,
        max_zoom: Optional[int] = None,
    ) -> RunResult:
        self._transition(state)
        self._tracker.finish(status, message)
        snapshot = self._tracker.snapshot()
        uploaded = snapshot.current if snapshot is not None else 0
        LOGGER.info(
            "run finished",
            extra={"status": status.value, "layout_path": self._layout_path, "tiles_uploaded": uploaded},
        )
        return RunResult(
            status=status,
            message=message,
            max_zoom=max_zoom,
            layout_path=self._layout_path,
            tiles_uploaded=uploaded,
        )


def _discard(pending: "queue.Queue[Tile]") -> None:
    while True:
        try:
            tile = pending.get_nowait()
        except queue.Empty:
            return
        tile.image.close()
