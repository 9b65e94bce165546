from pathlib import Path

import pytest

from layoutuploader.core.errors import ConfigError
from layoutuploader.core.models import (
    ProcessConfig,
    RunResult,
    RunStatus,
    Tile,
    format_color,
    parse_color,
    parse_server_details,
)


def _config(**overrides) -> ProcessConfig:
    values = dict(
        image_path=Path("map.png"),
        server_address="https://layouts.example.com",
        layout_key="venue-42",
        secret="s3cret",
    )
    values.update(overrides)
    return ProcessConfig(**values)


def test_from_server_string_splits_fields() -> None:
    config = ProcessConfig.from_server_string(
        "map.png",
        " https://layouts.example.com | venue-42 | s3cret ",
        tile_size=512,
    )

    assert config.image_path == Path("map.png")
    assert config.server_address == "https://layouts.example.com"
    assert config.layout_key == "venue-42"
    assert config.secret == "s3cret"
    assert config.tile_size == 512
    assert config.background_color == (0, 0, 0)


@pytest.mark.parametrize("value", ["https://host|key", "a|b|c|d", "https://host||secret", ""])
def test_malformed_server_details_are_rejected(value: str) -> None:
    with pytest.raises(ConfigError):
        parse_server_details(value)


def test_valid_config_passes_validation() -> None:
    _config(tile_size=64).validate()
    _config(tile_size=1024, background_color=(255, 255, 255)).validate()


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"image_path": Path("")}, "image_path"),
        ({"server_address": " "}, "server_address"),
        ({"layout_key": ""}, "layout_key"),
        ({"secret": ""}, "secret"),
    ],
)
def test_missing_fields_are_named(overrides, field: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        _config(**overrides).validate()

    assert field in str(excinfo.value)


@pytest.mark.parametrize("tile_size", [63, 1025, 0, 256.0])
def test_tile_size_outside_range_is_rejected(tile_size) -> None:
    with pytest.raises(ConfigError):
        _config(tile_size=tile_size).validate()


@pytest.mark.parametrize("color", [(256, 0, 0), (0, -1, 0), (0, 0)])
def test_bad_background_color_is_rejected(color) -> None:
    with pytest.raises(ConfigError):
        _config(background_color=color).validate()


def test_color_helpers() -> None:
    assert parse_color("#FF8000") == (255, 128, 0)
    assert parse_color("00ff7f") == (0, 255, 127)
    assert format_color((255, 128, 0)) == "#ff8000"
    with pytest.raises(ConfigError):
        parse_color("#fff")


def test_tile_key_uses_pixel_offsets() -> None:
    tile = Tile(zoom=3, column=2, row=1, image=None, tile_size=256)

    assert (tile.x, tile.y) == (512, 256)
    assert tile.key == "3/512/256"


def test_terminal_statuses() -> None:
    assert {status for status in RunStatus if status.is_terminal} == {
        RunStatus.CANCELLED,
        RunStatus.COMPLETED,
        RunStatus.ERROR,
    }
    assert RunResult(status=RunStatus.COMPLETED, message="ok").succeeded
    assert not RunResult(status=RunStatus.CANCELLED, message="stop").succeeded
