import json
import logging
from pathlib import Path

import pytest

from layoutuploader.logging import JSONFormatter, KeyValueFormatter, configure_logging, get_logger


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("layoutuploader.test", logging.INFO, __file__, 1, "uploaded %d tiles", (3,), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields() -> None:
    payload = json.loads(JSONFormatter().format(_record(zoom=2, layout_path="abc")))

    assert payload["message"] == "uploaded 3 tiles"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "layoutuploader.test"
    assert payload["zoom"] == 2
    assert payload["layout_path"] == "abc"


def test_key_value_formatter_appends_sorted_extras() -> None:
    line = KeyValueFormatter("%(levelname)s %(message)s").format(_record(zoom=2, tiles=12))

    assert line == "INFO uploaded 3 tiles | tiles=12 zoom=2"


def test_key_value_formatter_without_extras() -> None:
    assert KeyValueFormatter("%(message)s").format(_record()) == "uploaded 3 tiles"


@pytest.fixture()
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("_restore_root_logger")
def test_configure_logging_writes_json_file(tmp_path: Path) -> None:
    log_file = tmp_path / "run.log"

    configure_logging(level="debug", json_logs=True, log_file=str(log_file))
    get_logger("layoutuploader.test").info("hello", extra={"zoom": 1})
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING
    entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert entry["message"] == "hello"
    assert entry["zoom"] == 1
