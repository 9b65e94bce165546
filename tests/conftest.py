from pathlib import Path
from typing import Callable, Tuple

import pytest
from PIL import Image


@pytest.fixture()
def image_file(tmp_path: Path) -> Callable[..., Path]:
    """Write a solid-color image to ``tmp_path`` and return its path."""

    def _make(
        width: int,
        height: int,
        color: Tuple[int, ...] = (0, 0, 255),
        *,
        mode: str = "RGB",
        name: str = "source.png",
    ) -> Path:
        path = tmp_path / name
        Image.new(mode, (width, height), color).save(path)
        return path

    return _make
