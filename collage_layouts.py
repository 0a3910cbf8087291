from __future__ import annotations

import logging
from typing import List, Sequence

from collage_config import DEFAULT_CONFIG, EngineConfig
from collage_dedupe import annotate_duplicates, dedupe_strict, signature_at
from collage_geometry import Cell, LayoutCandidate, PageSize, Photo, position_key
from collage_scoring import rank_layouts
from collage_templates import LayoutDescriptor, descriptors_for_count

logger = logging.getLogger(__name__)


def order_photos(photos: Sequence[Photo]) -> List[Photo]:
    # landscape first; sorted() is stable so equal aspects keep input order
    return sorted(photos, key=lambda p: p.aspect, reverse=True)


def assign_photos(cells: Sequence[Cell], photos: Sequence[Photo]) -> List[Cell]:
    """Greedy aspect matching: the most landscape cell picks first.

    Each cell takes the remaining photo whose aspect ratio is closest to its own.
    Cells left over once the photos run out are dropped; surplus photos stay
    unused. The result is ordered top-to-bottom, left-to-right.
    """
    pool = list(photos)
    bound: List[Cell] = []
    for cell in sorted(cells, key=lambda c: c.aspect, reverse=True):
        if not pool:
            break
        best = min(range(len(pool)), key=lambda i: abs(pool[i].aspect - cell.aspect))
        bound.append(cell.bind(pool.pop(best)))
    bound.sort(key=position_key)
    return bound


def instantiate(
    descriptor: LayoutDescriptor,
    page: PageSize,
    photos: Sequence[Photo],
    optimize: bool = False,
) -> LayoutCandidate:
    scaled = [c.scaled(page) for c in descriptor.cells]

    if optimize:
        cells = assign_photos([c.unbound() for c in scaled], photos)
    else:
        cells = []
        for c in scaled:
            idx = c.photo_index
            if idx is None or idx >= len(photos):
                continue
            cells.append(c.bind(photos[idx]))

    if len(cells) < len(scaled):
        logger.debug("%s: %d of %d cells left without a photo", descriptor.name, len(scaled) - len(cells), len(scaled))

    return LayoutCandidate(
        kind=descriptor.kind,
        name=descriptor.name,
        page=page,
        cells=tuple(cells),
        optimized=optimize,
    )


def generate_candidates(
    photos: Sequence[Photo],
    page: PageSize,
    config: EngineConfig | None = None,
) -> List[LayoutCandidate]:
    cfg = config or DEFAULT_CONFIG
    ordered = order_photos(photos)
    modes = (True, False) if cfg.prefer_optimized else (False, True)

    out: List[LayoutCandidate] = []
    for desc in descriptors_for_count(len(ordered), cfg):
        for optimize in modes:
            out.append(instantiate(desc, page, ordered, optimize=optimize))
    return out


def generate_layouts(
    photos: Sequence[Photo],
    page: PageSize,
    config: EngineConfig | None = None,
    stats: dict[str, float] | None = None,
) -> List[LayoutCandidate]:
    """Ranked, structurally distinct layouts for ``photos`` on ``page``, best first."""
    if not photos or not page.is_valid:
        return []
    cfg = config or DEFAULT_CONFIG

    candidates = generate_candidates(photos, page, cfg)
    unique = dedupe_strict(candidates, signature_at(cfg.signature_precision))
    ranked = rank_layouts(unique, cfg.weights, stats)

    if stats is not None:
        stats["candidates"] = float(len(candidates))
        stats["unique"] = float(len(unique))
    logger.debug("%d photos: %d candidates, %d unique, %d ranked", len(photos), len(candidates), len(unique), len(ranked))
    return ranked


def generate_layout_variants(
    photos: Sequence[Photo],
    page: PageSize,
    config: EngineConfig | None = None,
    stats: dict[str, float] | None = None,
) -> List[LayoutCandidate]:
    """Every candidate, ranked; near-identical ones point at their first ranked twin.

    Duplicates are marked after ranking, so the entry a group points at is its
    best-scored member, not the one generated first. The variant listing
    shows each structure at its best.
    """
    if not photos or not page.is_valid:
        return []
    cfg = config or DEFAULT_CONFIG

    candidates = generate_candidates(photos, page, cfg)
    ranked = rank_layouts(candidates, cfg.weights, stats)
    if stats is not None:
        stats["candidates"] = float(len(candidates))
    return annotate_duplicates(ranked, signature_at(cfg.grouping_precision, grouping=True))
