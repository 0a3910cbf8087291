from __future__ import annotations

from pathlib import Path
from typing import Tuple

import pytest
from PIL import Image

from collage_geometry import Cell, LayoutCandidate, PageSize, Photo


def make_candidate(cells, page=PageSize(100, 100), name="t", kind="grid") -> LayoutCandidate:
    return LayoutCandidate(kind=kind, name=name, page=page, cells=tuple(cells))


@pytest.fixture
def image_dir(tmp_path: Path):
    """Writes small solid-colour images and returns the folder."""

    def write(specs: Tuple[Tuple[str, Tuple[int, int], Tuple[int, int, int]], ...]) -> Path:
        for name, size, color in specs:
            Image.new("RGB", size, color=color).save(tmp_path / name)
        return tmp_path

    return write


@pytest.fixture
def photo_cells():
    def build(*rects, photo=Photo(1, 1)):
        return [Cell(x, y, w, h, photo=photo) for x, y, w, h in rects]

    return build
