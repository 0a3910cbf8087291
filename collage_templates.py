from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from collage_config import ALL_KINDS, COMPOSITE, DEFAULT_CONFIG, GRID, NESTED, SPLIT, STACKED, EngineConfig
from collage_geometry import Cell, cells_overlap, column_band, distribute_counts, inside_unit_square, row_band

logger = logging.getLogger(__name__)


class DescriptorError(ValueError):
    """A template whose cells do not form a valid partition for its photo count."""


@dataclass(frozen=True)
class LayoutDescriptor:
    kind: str
    name: str
    cells: Tuple[Cell, ...]

    @property
    def count(self) -> int:
        return len(self.cells)


def check_descriptor(desc: LayoutDescriptor, n: int | None = None) -> LayoutDescriptor:
    expected = desc.count if n is None else n
    indices = sorted(-1 if c.photo_index is None else c.photo_index for c in desc.cells)
    if indices != list(range(expected)):
        raise DescriptorError(f"{desc.name}: photo indices {indices} are not 0..{expected - 1}")

    for c in desc.cells:
        if c.width <= 0 or c.height <= 0:
            raise DescriptorError(f"{desc.name}: cell {c.photo_index} has no area")
        if not inside_unit_square(c):
            raise DescriptorError(f"{desc.name}: cell {c.photo_index} leaves the page")

    for a, b in itertools.combinations(desc.cells, 2):
        if cells_overlap(a, b):
            raise DescriptorError(f"{desc.name}: cells {a.photo_index} and {b.photo_index} overlap")
    return desc


def _ratio_suffix(ratio: float) -> str:
    return "" if abs(ratio - 0.5) < 1e-9 else f"@{ratio:.2f}"


# ---- grid ---------------------------------------------------------------


def grid_descriptor(rows: int, cols: int) -> LayoutDescriptor:
    cells: List[Cell] = []
    for r in range(rows):
        cells.extend(row_band(r / rows, 1.0 / rows, cols, r * cols))
    return LayoutDescriptor(GRID, f"grid-{rows}x{cols}", tuple(cells))


def grid_descriptors(n: int) -> List[LayoutDescriptor]:
    return [grid_descriptor(rows, n // rows) for rows in range(1, n + 1) if n % rows == 0]


# ---- split --------------------------------------------------------------


def hsplit_descriptor(top: int, bottom: int, ratio: float = 0.5) -> LayoutDescriptor:
    cells = row_band(0.0, ratio, top, 0) + row_band(ratio, 1.0 - ratio, bottom, top)
    return LayoutDescriptor(SPLIT, f"hsplit-{top}-{bottom}{_ratio_suffix(ratio)}", tuple(cells))


def vsplit_descriptor(left: int, right: int, ratio: float = 0.5) -> LayoutDescriptor:
    cells = column_band(0.0, ratio, left, 0) + column_band(ratio, 1.0 - ratio, right, left)
    return LayoutDescriptor(SPLIT, f"vsplit-{left}-{right}{_ratio_suffix(ratio)}", tuple(cells))


def split_descriptors(n: int, ratios: Sequence[float] = (0.5,)) -> List[LayoutDescriptor]:
    out: List[LayoutDescriptor] = []
    for ratio in ratios:
        for k in range(1, n):
            out.append(hsplit_descriptor(k, n - k, ratio))
        for k in range(1, n):
            out.append(vsplit_descriptor(k, n - k, ratio))
    return out


# ---- stacked ------------------------------------------------------------


def row_distributions(n: int) -> List[Tuple[int, ...]]:
    if n < 3:
        return []
    pairs = [(k, n - k) for k in range(1, n)]
    # most balanced first; sort is stable so ties keep ascending k
    pairs.sort(key=lambda d: abs(d[0] - d[1]))
    out: List[Tuple[int, ...]] = list(pairs)
    if n >= 4 and n % 3 != 0:
        out.extend(sorted(set(itertools.permutations(distribute_counts(n, 3)))))
    return out


def column_distributions(n: int, max_columns: int = 4) -> List[Tuple[int, ...]]:
    # even splits are uniform grids already
    return [
        tuple(distribute_counts(n, cols))
        for cols in range(2, min(n - 1, max_columns) + 1)
        if n % cols != 0
    ]


def row_stack_descriptor(distribution: Sequence[int]) -> LayoutDescriptor:
    rows = len(distribution)
    cells: List[Cell] = []
    for r, count in enumerate(distribution):
        cells.extend(row_band(r / rows, 1.0 / rows, count, len(cells)))
    name = "rows-" + "-".join(str(c) for c in distribution)
    return LayoutDescriptor(STACKED, name, tuple(cells))


def column_stack_descriptor(distribution: Sequence[int]) -> LayoutDescriptor:
    cols = len(distribution)
    cells: List[Cell] = []
    for c, count in enumerate(distribution):
        cells.extend(column_band(c / cols, 1.0 / cols, count, len(cells)))
    name = "cols-" + "-".join(str(c) for c in distribution)
    return LayoutDescriptor(STACKED, name, tuple(cells))


def stacked_descriptors(n: int, max_columns: int = 4) -> List[LayoutDescriptor]:
    out = [row_stack_descriptor(d) for d in row_distributions(n)]
    out.extend(column_stack_descriptor(d) for d in column_distributions(n, max_columns))
    return out


# ---- nested dominant ----------------------------------------------------


def nested_descriptors(n: int, side_ratio: float = 2.0 / 3.0, band_ratio: float = 0.5) -> List[LayoutDescriptor]:
    if n < 3:
        return []
    rest = n - 1
    left = [Cell(0.0, 0.0, side_ratio, 1.0, photo_index=0)]
    left += column_band(side_ratio, 1.0 - side_ratio, rest, 1)

    right = column_band(0.0, 1.0 - side_ratio, rest, 0)
    right.append(Cell(1.0 - side_ratio, 0.0, side_ratio, 1.0, photo_index=rest))

    top = [Cell(0.0, 0.0, 1.0, band_ratio, photo_index=0)]
    top += row_band(band_ratio, 1.0 - band_ratio, rest, 1)

    bottom = row_band(0.0, 1.0 - band_ratio, rest, 0)
    bottom.append(Cell(0.0, 1.0 - band_ratio, 1.0, band_ratio, photo_index=rest))

    return [
        LayoutDescriptor(NESTED, "dominant-left", tuple(left)),
        LayoutDescriptor(NESTED, "dominant-right", tuple(right)),
        LayoutDescriptor(NESTED, "dominant-top", tuple(top)),
        LayoutDescriptor(NESTED, "dominant-bottom", tuple(bottom)),
    ]


# ---- composite ----------------------------------------------------------

# name -> ((lattice columns, lattice rows), cells as lattice (x, y, w, h));
# the photo index of a cell is its position in the list
Lattice = Tuple[Tuple[int, int], Tuple[Tuple[int, int, int, int], ...]]

COMPOSITE_TABLE: Dict[int, Dict[str, Lattice]] = {
    5: {
        "two-top-one-plus-stacked": ((2, 4), ((0, 0, 1, 2), (1, 0, 1, 2), (0, 2, 1, 2), (1, 2, 1, 1), (1, 3, 1, 1))),
        "two-left-three-right": ((2, 6), ((0, 0, 1, 3), (0, 3, 1, 3), (1, 0, 1, 2), (1, 2, 1, 2), (1, 4, 1, 2))),
        "banner-three-banner": ((3, 10), ((0, 0, 3, 3), (0, 3, 1, 4), (1, 3, 1, 4), (2, 3, 1, 4), (0, 7, 3, 3))),
        "pinwheel": ((4, 4), ((0, 0, 3, 1), (3, 0, 1, 3), (0, 1, 1, 3), (1, 1, 2, 2), (1, 3, 3, 1))),
        "quad-beside-tall": ((4, 2), ((0, 0, 1, 1), (1, 0, 1, 1), (0, 1, 1, 1), (1, 1, 1, 1), (2, 0, 2, 2))),
        "tall-beside-quad": ((4, 2), ((0, 0, 2, 2), (2, 0, 1, 1), (3, 0, 1, 1), (2, 1, 1, 1), (3, 1, 1, 1))),
    },
    6: {
        "left-one-right-two-both-rows": (
            (2, 4),
            ((0, 0, 1, 2), (1, 0, 1, 1), (1, 1, 1, 1), (0, 2, 1, 2), (1, 2, 1, 1), (1, 3, 1, 1)),
        ),
        "left-two-right-one-both-rows": (
            (2, 4),
            ((0, 0, 1, 1), (0, 1, 1, 1), (1, 0, 1, 2), (0, 2, 1, 1), (0, 3, 1, 1), (1, 2, 1, 2)),
        ),
        # the second row mirrors the first
        "left-one-right-two-first-row": (
            (2, 4),
            ((0, 0, 1, 2), (1, 0, 1, 1), (1, 1, 1, 1), (0, 2, 1, 1), (0, 3, 1, 1), (1, 2, 1, 2)),
        ),
        "left-two-right-one-first-row": (
            (2, 4),
            ((0, 0, 1, 1), (0, 1, 1, 1), (1, 0, 1, 2), (0, 2, 1, 2), (1, 2, 1, 1), (1, 3, 1, 1)),
        ),
        "top-uniform-bottom-left-single": (
            (6, 4),
            ((0, 0, 2, 2), (2, 0, 2, 2), (4, 0, 2, 2), (0, 2, 3, 2), (3, 2, 3, 1), (3, 3, 3, 1)),
        ),
        "top-uniform-bottom-right-single": (
            (6, 4),
            ((0, 0, 2, 2), (2, 0, 2, 2), (4, 0, 2, 2), (0, 2, 3, 1), (0, 3, 3, 1), (3, 2, 3, 2)),
        ),
        "top-left-single-bottom-uniform": (
            (6, 4),
            ((0, 0, 3, 2), (3, 0, 3, 1), (3, 1, 3, 1), (0, 2, 2, 2), (2, 2, 2, 2), (4, 2, 2, 2)),
        ),
        "top-right-single-bottom-uniform": (
            (6, 4),
            ((0, 0, 3, 1), (0, 1, 3, 1), (3, 0, 3, 2), (0, 2, 2, 2), (2, 2, 2, 2), (4, 2, 2, 2)),
        ),
    },
    7: {
        "three-three-one": (
            (3, 3),
            ((0, 0, 1, 1), (1, 0, 1, 1), (2, 0, 1, 1), (0, 1, 1, 1), (1, 1, 1, 1), (2, 1, 1, 1), (0, 2, 3, 1)),
        ),
        "one-three-three": (
            (3, 3),
            ((0, 0, 3, 1), (0, 1, 1, 1), (1, 1, 1, 1), (2, 1, 1, 1), (0, 2, 1, 1), (1, 2, 1, 1), (2, 2, 1, 1)),
        ),
        # last row is centered and leaves the page corners empty
        "three-three-one-centered": (
            (12, 3),
            ((0, 0, 4, 1), (4, 0, 4, 1), (8, 0, 4, 1), (0, 1, 4, 1), (4, 1, 4, 1), (8, 1, 4, 1), (3, 2, 6, 1)),
        ),
        "two-two-two-one": (
            (2, 4),
            ((0, 0, 1, 1), (1, 0, 1, 1), (0, 1, 1, 1), (1, 1, 1, 1), (0, 2, 1, 1), (1, 2, 1, 1), (0, 3, 2, 1)),
        ),
        "one-two-two-two": (
            (2, 4),
            ((0, 0, 2, 1), (0, 1, 1, 1), (1, 1, 1, 1), (0, 2, 1, 1), (1, 2, 1, 1), (0, 3, 1, 1), (1, 3, 1, 1)),
        ),
        "tall-left-two-by-three": (
            (3, 3),
            ((0, 0, 1, 3), (1, 0, 1, 1), (2, 0, 1, 1), (1, 1, 1, 1), (2, 1, 1, 1), (1, 2, 1, 1), (2, 2, 1, 1)),
        ),
        "two-by-three-tall-right": (
            (3, 3),
            ((0, 0, 1, 1), (1, 0, 1, 1), (0, 1, 1, 1), (1, 1, 1, 1), (0, 2, 1, 1), (1, 2, 1, 1), (2, 0, 1, 3)),
        ),
        # two half-height rows of 1+2 / 2+1 pairs above a full-width banner
        "left-one-right-two-both-rows-banner": (
            (2, 6),
            ((0, 0, 1, 2), (1, 0, 1, 1), (1, 1, 1, 1), (0, 2, 1, 2), (1, 2, 1, 1), (1, 3, 1, 1), (0, 4, 2, 2)),
        ),
        "left-two-right-one-both-rows-banner": (
            (2, 6),
            ((0, 0, 1, 1), (0, 1, 1, 1), (1, 0, 1, 2), (0, 2, 1, 1), (0, 3, 1, 1), (1, 2, 1, 2), (0, 4, 2, 2)),
        ),
        "left-one-right-two-first-row-banner": (
            (2, 6),
            ((0, 0, 1, 2), (1, 0, 1, 1), (1, 1, 1, 1), (0, 2, 1, 1), (0, 3, 1, 1), (1, 2, 1, 2), (0, 4, 2, 2)),
        ),
        "left-two-right-one-first-row-banner": (
            (2, 6),
            ((0, 0, 1, 1), (0, 1, 1, 1), (1, 0, 1, 2), (0, 2, 1, 2), (1, 2, 1, 1), (1, 3, 1, 1), (0, 4, 2, 2)),
        ),
    },
    8: {
        "three-three-two-centered": (
            (6, 3),
            (
                (0, 0, 2, 1), (2, 0, 2, 1), (4, 0, 2, 1),
                (0, 1, 2, 1), (2, 1, 2, 1), (4, 1, 2, 1),
                (1, 2, 2, 1), (3, 2, 2, 1),
            ),
        ),
        "two-two-four": (
            (4, 3),
            (
                (0, 0, 2, 1), (2, 0, 2, 1),
                (0, 1, 2, 1), (2, 1, 2, 1),
                (0, 2, 1, 1), (1, 2, 1, 1), (2, 2, 1, 1), (3, 2, 1, 1),
            ),
        ),
        "two-four-two": (
            (4, 3),
            (
                (0, 0, 2, 1), (2, 0, 2, 1),
                (0, 1, 1, 1), (1, 1, 1, 1), (2, 1, 1, 1), (3, 1, 1, 1),
                (0, 2, 2, 1), (2, 2, 2, 1),
            ),
        ),
        "one-three-four": (
            (12, 3),
            (
                (0, 0, 12, 1),
                (0, 1, 4, 1), (4, 1, 4, 1), (8, 1, 4, 1),
                (0, 2, 3, 1), (3, 2, 3, 1), (6, 2, 3, 1), (9, 2, 3, 1),
            ),
        ),
        "big-three-three-big": (
            (2, 6),
            (
                (0, 0, 1, 3), (1, 0, 1, 1), (1, 1, 1, 1), (1, 2, 1, 1),
                (0, 3, 1, 1), (0, 4, 1, 1), (0, 5, 1, 1), (1, 3, 1, 3),
            ),
        ),
    },
    9: {
        "center-dominant-ring": (
            (4, 4),
            (
                (0, 0, 1, 1), (1, 0, 2, 1), (3, 0, 1, 1),
                (0, 1, 1, 2), (1, 1, 2, 2), (3, 1, 1, 2),
                (0, 3, 1, 1), (1, 3, 2, 1), (3, 3, 1, 1),
            ),
        ),
        "two-two-two-three": (
            (6, 4),
            (
                (0, 0, 3, 1), (3, 0, 3, 1),
                (0, 1, 3, 1), (3, 1, 3, 1),
                (0, 2, 3, 1), (3, 2, 3, 1),
                (0, 3, 2, 1), (2, 3, 2, 1), (4, 3, 2, 1),
            ),
        ),
        "three-two-four": (
            (12, 3),
            (
                (0, 0, 4, 1), (4, 0, 4, 1), (8, 0, 4, 1),
                (0, 1, 6, 1), (6, 1, 6, 1),
                (0, 2, 3, 1), (3, 2, 3, 1), (6, 2, 3, 1), (9, 2, 3, 1),
            ),
        ),
        "four-two-three": (
            (12, 3),
            (
                (0, 0, 3, 1), (3, 0, 3, 1), (6, 0, 3, 1), (9, 0, 3, 1),
                (0, 1, 6, 1), (6, 1, 6, 1),
                (0, 2, 4, 1), (4, 2, 4, 1), (8, 2, 4, 1),
            ),
        ),
        "one-four-four": (
            (4, 3),
            (
                (0, 0, 4, 1),
                (0, 1, 1, 1), (1, 1, 1, 1), (2, 1, 1, 1), (3, 1, 1, 1),
                (0, 2, 1, 1), (1, 2, 1, 1), (2, 2, 1, 1), (3, 2, 1, 1),
            ),
        ),
        "two-three-four": (
            (12, 3),
            (
                (0, 0, 6, 1), (6, 0, 6, 1),
                (0, 1, 4, 1), (4, 1, 4, 1), (8, 1, 4, 1),
                (0, 2, 3, 1), (3, 2, 3, 1), (6, 2, 3, 1), (9, 2, 3, 1),
            ),
        ),
        "four-three-two": (
            (12, 3),
            (
                (0, 0, 3, 1), (3, 0, 3, 1), (6, 0, 3, 1), (9, 0, 3, 1),
                (0, 1, 4, 1), (4, 1, 4, 1), (8, 1, 4, 1),
                (0, 2, 6, 1), (6, 2, 6, 1),
            ),
        ),
    },
}


def lattice_descriptor(name: str, lattice: Lattice) -> LayoutDescriptor:
    (cols, rows), rects = lattice
    cells = tuple(
        Cell(x / cols, y / rows, w / cols, h / rows, photo_index=i)
        for i, (x, y, w, h) in enumerate(rects)
    )
    return LayoutDescriptor(COMPOSITE, name, cells)


def _build_composites() -> Dict[int, Tuple[LayoutDescriptor, ...]]:
    built: Dict[int, Tuple[LayoutDescriptor, ...]] = {}
    for n, entries in COMPOSITE_TABLE.items():
        built[n] = tuple(check_descriptor(lattice_descriptor(name, lat), n) for name, lat in entries.items())
    return built


# validated once at import so a broken table entry fails immediately
_COMPOSITES = _build_composites()


def composite_descriptors(n: int) -> List[LayoutDescriptor]:
    return list(_COMPOSITES.get(n, ()))


# ---- enumeration --------------------------------------------------------


def descriptors_for_count(n: int, config: EngineConfig | None = None) -> List[LayoutDescriptor]:
    """Every descriptor applicable to ``n`` photos, in generation order."""
    if n <= 0:
        return []
    cfg = config or DEFAULT_CONFIG

    families = {
        GRID: lambda: grid_descriptors(n),
        STACKED: lambda: stacked_descriptors(n, cfg.max_stack_columns),
        SPLIT: lambda: split_descriptors(n, cfg.split_ratios),
        NESTED: lambda: nested_descriptors(n, cfg.side_ratio, cfg.band_ratio),
        COMPOSITE: lambda: composite_descriptors(n),
    }

    out: List[LayoutDescriptor] = []
    for kind in ALL_KINDS:
        if kind in cfg.families:
            out.extend(families[kind]())

    for desc in out:
        check_descriptor(desc, n)
    logger.debug("n=%d: %d descriptors from %s", n, len(out), ", ".join(cfg.families))
    return out
