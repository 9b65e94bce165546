import json
from pathlib import Path

import pytest

from layoutuploader.config import ConfigLoader, UploaderSettings, load_config


def test_defaults_match_upload_conventions() -> None:
    settings = UploaderSettings()

    assert settings.jpeg_quality == 90
    assert settings.max_attempts == 3
    assert settings.backoff_seconds == 1.0
    assert settings.timeout_seconds == 30.0
    assert settings.user_agent == "SDLayoutUploader-Python"
    assert settings.min_resolution is None and settings.max_resolution is None


def test_yaml_uploader_section_is_loaded(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "uploader:\n"
        "  jpeg_quality: 75\n"
        "  max_attempts: '5'\n"
        "  backoff_seconds: 2\n"
        "  max_resolution: 4096\n",
        encoding="utf-8",
    )

    settings = load_config(path)

    assert settings.jpeg_quality == 75
    assert settings.max_attempts == 5
    assert settings.backoff_seconds == 2.0
    assert isinstance(settings.backoff_seconds, float)
    assert settings.max_resolution == 4096
    assert settings.timeout_seconds == 30.0


def test_json_top_level_settings_relative_to_base_dir(tmp_path: Path) -> None:
    (tmp_path / "settings.json").write_text(json.dumps({"timeout_seconds": 5, "user_agent": "test"}), encoding="utf-8")

    settings = ConfigLoader(base_dir=tmp_path).load("settings.json")

    assert settings.timeout_seconds == 5.0
    assert settings.user_agent == "test"


def test_empty_yaml_yields_defaults(tmp_path: Path) -> None:
    path = tmp_path / "empty.yml"
    path.write_text("", encoding="utf-8")

    assert load_config(path) == UploaderSettings()


@pytest.mark.parametrize(
    "name,content",
    [
        ("settings.toml", "jpeg_quality = 10"),
        ("settings.yaml", "- a\n- b\n"),
        ("settings.yaml", "uploader: 3\n"),
        ("settings.yaml", "colour: red\n"),
        ("settings.yaml", "jpeg_quality: 99\n"),
        ("settings.json", '{"max_attempts": 0}'),
    ],
)
def test_invalid_settings_files_are_rejected(tmp_path: Path, name: str, content: str) -> None:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(path)
