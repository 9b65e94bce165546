"""Shared progress and cancellation state of a run.

Both objects are shared between the coordinating thread, the upload workers
and whoever polls or cancels the run, so every mutation is serialized. Callers
only ever receive immutable :class:`ProgressUpdate` snapshots.
"""

from __future__ import annotations

import threading
from typing import Optional

from layoutuploader.core.models import ProgressUpdate, RunStatus


class CancellationToken:
    """One-way cancellation flag; once set it stays set."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled meanwhile."""

        return self._event.wait(timeout)


class ProgressTracker:
    """Lock-guarded progress record of the active (or last) run."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current = 0
        self._total = 0
        self._zoom_level = 0
        self._percentage = 0.0
        self._status: Optional[RunStatus] = None
        self._message = ""

    def reset(self, message: str = "Starting...") -> None:
        """Start a fresh record for a new run."""

        with self._lock:
            self._current = 0
            self._total = 0
            self._zoom_level = 0
            self._percentage = 0.0
            self._status = RunStatus.STARTING
            self._message = message

    def set_total(self, total: int) -> None:
        with self._lock:
            self._total = max(0, total)
            self._recompute()

    def set_stage(self, status: RunStatus, *, zoom_level: Optional[int] = None, message: Optional[str] = None) -> None:
        with self._lock:
            if self._status is not None and self._status.is_terminal:
                return
            self._status = status
            if zoom_level is not None:
                self._zoom_level = zoom_level
            self._message = message if message is not None else status.value

    def tile_completed(self, zoom_level: int) -> ProgressUpdate:
        """Record one uploaded tile and return the resulting snapshot."""

        with self._lock:
            if self._total and self._current >= self._total:
                raise RuntimeError("More tiles completed than planned")
            self._current += 1
            self._zoom_level = zoom_level
            self._recompute()
            if self._status is not None and not self._status.is_terminal:
                self._message = (
                    f"Processing zoom level {zoom_level} ({self._current}/{self._total})"
                )
            return self._snapshot()

    def finish(self, status: RunStatus, message: str) -> None:
        """Move to a terminal status; later stage changes are ignored."""

        if not status.is_terminal:
            raise ValueError(f"{status.value!r} is not a terminal status")
        with self._lock:
            self._status = status
            self._message = message

    def snapshot(self) -> Optional[ProgressUpdate]:
        with self._lock:
            if self._status is None:
                return None
            return self._snapshot()

    def _recompute(self) -> None:
        if not self._total:
            return
        percentage = min(100.0, max(0.0, self._current * 100.0 / self._total))
        # Never move backwards within a run.
        self._percentage = max(self._percentage, percentage)

    def _snapshot(self) -> ProgressUpdate:
        assert self._status is not None
        return ProgressUpdate(
            current=self._current,
            total=self._total,
            zoom_level=self._zoom_level,
            percentage=self._percentage,
            status=self._status,
            message=self._message,
        )
