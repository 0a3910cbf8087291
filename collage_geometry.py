from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, List, Sequence, Tuple

# cells closer than this are treated as touching, not overlapping
EPS = 1e-9


@dataclass(frozen=True)
class PageSize:
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 1.0

    @property
    def is_valid(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class Photo:
    width: int
    height: int
    handle: Any = None

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 1.0

    @property
    def is_landscape(self) -> bool:
        return self.width > self.height


@dataclass(frozen=True)
class Cell:
    """One rectangle of a layout.

    In a descriptor the coordinates are fractions of the page and
    ``photo_index`` points into the ordered photo sequence; in a candidate they
    are absolute page units and ``photo`` is the bound photo.
    """

    x: float
    y: float
    width: float
    height: float
    photo_index: int | None = None
    photo: Photo | None = None

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def aspect(self) -> float:
        return self.width / self.height if self.height else 1.0

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def bind(self, photo: Photo) -> "Cell":
        return replace(self, photo=photo)

    def unbound(self) -> "Cell":
        return Cell(self.x, self.y, self.width, self.height)

    def scaled(self, page: PageSize) -> "Cell":
        return replace(
            self,
            x=self.x * page.width,
            y=self.y * page.height,
            width=self.width * page.width,
            height=self.height * page.height,
        )

    def normalized(self, page: PageSize) -> Tuple[float, float, float, float]:
        return (
            self.x / page.width,
            self.y / page.height,
            self.width / page.width,
            self.height / page.height,
        )


@dataclass(frozen=True)
class LayoutMetrics:
    utilization: float
    cropping_rate: float
    size_balance: float
    score: float


@dataclass(frozen=True)
class LayoutCandidate:
    kind: str
    name: str
    page: PageSize
    cells: Tuple[Cell, ...]
    optimized: bool = False
    score: float | None = None
    metrics: LayoutMetrics | None = None
    duplicate_of: int | None = None

    @property
    def count(self) -> int:
        return len(self.cells)

    @property
    def photos(self) -> List[Photo]:
        return [c.photo for c in self.cells if c.photo is not None]


def position_key(cell: Cell) -> Tuple[float, float]:
    return (cell.y, cell.x)


def cells_overlap(a: Cell, b: Cell, eps: float = EPS) -> bool:
    return not (
        a.right <= b.x + eps
        or b.right <= a.x + eps
        or a.bottom <= b.y + eps
        or b.bottom <= a.y + eps
    )


def inside_unit_square(c: Cell, eps: float = EPS) -> bool:
    return c.x >= -eps and c.y >= -eps and c.right <= 1.0 + eps and c.bottom <= 1.0 + eps


def distribute_counts(total: int, count: int) -> List[int]:
    # most even split, extra items go to the first slots
    if count <= 0:
        return []
    base = total // count
    rem = total - base * count
    out = [base] * count
    for i in range(rem):
        out[i] += 1
    return out


def band_spans(start: float, extent: float, count: int) -> List[Tuple[float, float]]:
    """Split ``[start, start + extent]`` into ``count`` equal (offset, length) spans."""
    if count <= 0:
        return []
    step = extent / count
    return [(start + extent * i / count, step) for i in range(count)]


def row_band(y: float, height: float, count: int, first_index: int, x: float = 0.0, width: float = 1.0) -> List[Cell]:
    return [
        Cell(cx, y, cw, height, photo_index=first_index + i)
        for i, (cx, cw) in enumerate(band_spans(x, width, count))
    ]


def column_band(x: float, width: float, count: int, first_index: int, y: float = 0.0, height: float = 1.0) -> List[Cell]:
    return [
        Cell(x, cy, width, ch, photo_index=first_index + i)
        for i, (cy, ch) in enumerate(band_spans(y, height, count))
    ]


def total_area(cells: Sequence[Cell]) -> float:
    return sum(c.area for c in cells)
