import threading
from functools import partial
from pathlib import Path

import pytest

from layoutuploader.core.errors import ConfigError, PipelineBusyError
from layoutuploader.core.models import ProcessConfig, RunResult, RunStatus
from layoutuploader.pipeline.orchestrator import TilePipeline
from layoutuploader.pipeline.service import UploaderService


class RecordingUploader:
    def __init__(self) -> None:
        self.calls = 0
        self._lock = threading.Lock()

    def upload_tile(self, layout_path, tile_key, payload, *, cancel_token=None) -> None:
        with self._lock:
            self.calls += 1

    def finalize(self, layout_path, metadata) -> None:
        pass

    def close(self) -> None:
        pass


class BlockingPipeline:
    """Stand-in pipeline that waits for cancellation before finishing."""

    started = threading.Event()

    def __init__(self, config, *, tracker, token, settings) -> None:
        self._tracker = tracker
        self._token = token

    def run(self) -> RunResult:
        BlockingPipeline.started.set()
        self._token.wait(5)
        self._tracker.finish(RunStatus.CANCELLED, "Processing cancelled")
        return RunResult(status=RunStatus.CANCELLED, message="Processing cancelled")


def _config(path: Path, **overrides) -> ProcessConfig:
    values = dict(
        image_path=path,
        server_address="https://layouts.example.com",
        layout_key="venue-42",
        secret="s3cret",
    )
    values.update(overrides)
    return ProcessConfig(**values)


def test_progress_is_none_before_any_run() -> None:
    assert UploaderService().get_progress() is None


def test_start_runs_to_completion(image_file) -> None:
    uploader = RecordingUploader()
    service = UploaderService(pipeline_factory=partial(TilePipeline, uploader=uploader, concurrency=1))

    result = service.start(_config(image_file(1000, 700)))

    assert result.status is RunStatus.COMPLETED
    assert uploader.calls == 17
    assert not service.is_active
    progress = service.get_progress()
    assert progress.status is RunStatus.COMPLETED
    assert progress.current == progress.total == 17


def test_invalid_config_is_rejected_before_start(tmp_path: Path) -> None:
    calls = []
    service = UploaderService(pipeline_factory=lambda *args, **kwargs: calls.append(args))

    with pytest.raises(ConfigError):
        service.start(_config(tmp_path / "a.png", secret=""))

    assert calls == []
    assert service.get_progress() is None
    assert not service.is_active


def test_second_start_while_active_is_refused(tmp_path: Path) -> None:
    BlockingPipeline.started.clear()
    service = UploaderService(pipeline_factory=BlockingPipeline)
    results = []
    worker = threading.Thread(target=lambda: results.append(service.start(_config(tmp_path / "a.png"))))
    worker.start()
    assert BlockingPipeline.started.wait(5)

    assert service.is_active
    with pytest.raises(PipelineBusyError):
        service.start(_config(tmp_path / "b.png"))

    assert service.cancel() is True
    worker.join(5)
    assert results[0].status is RunStatus.CANCELLED
    assert service.get_progress().status is RunStatus.CANCELLED
    assert not service.is_active


def test_cancel_when_idle_returns_false() -> None:
    assert UploaderService().cancel() is False


def test_new_run_resets_progress(image_file) -> None:
    service = UploaderService(
        pipeline_factory=partial(TilePipeline, uploader=RecordingUploader(), concurrency=1)
    )
    service.start(_config(image_file(1000, 700)))

    second = service.start(_config(image_file(100, 100, name="small.png")))

    assert second.status is RunStatus.COMPLETED
    progress = service.get_progress()
    assert progress.current == progress.total == 1
    assert progress.message == "Processing completed successfully! Max zoom level: 0"


def test_failed_pipeline_setup_is_reported_as_error(tmp_path: Path) -> None:
    def broken_factory(config, **kwargs):  # type: ignore[no-untyped-def]
        raise OSError("no sockets left")

    service = UploaderService(pipeline_factory=broken_factory)

    result = service.start(_config(tmp_path / "a.png"))

    assert result.status is RunStatus.ERROR
    assert result.message == "Unexpected error: no sockets left"
    progress = service.get_progress()
    assert progress.status is RunStatus.ERROR
    assert progress.message == result.message
    assert not service.is_active
