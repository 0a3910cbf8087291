from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import List, Sequence

from collage_config import DEFAULT_WEIGHTS, ScoreWeights
from collage_geometry import Cell, LayoutCandidate, LayoutMetrics, total_area

logger = logging.getLogger(__name__)


def is_scorable(candidate: LayoutCandidate) -> bool:
    return bool(candidate.cells) and all(c.width > 0 and c.height > 0 for c in candidate.cells)


def utilization(candidate: LayoutCandidate) -> float:
    page = candidate.page
    if not page.is_valid:
        return 0.0
    # templates may overlap by a rounding hair
    return min(1.0, total_area(candidate.cells) / page.area)


def cell_crop(cell: Cell) -> float:
    """Fraction of the bound photo cut away when it is scaled to cover the cell."""
    photo = cell.photo
    if photo is None or photo.width <= 0 or photo.height <= 0:
        return 0.0
    cell_ar = cell.aspect
    photo_ar = photo.aspect
    if math.isclose(cell_ar, photo_ar, rel_tol=1e-9):
        return 0.0

    if cell_ar > photo_ar:
        # fill the width, the photo runs over top and bottom
        scaled_h = cell.width / photo_ar
        rate = (scaled_h - cell.height) / scaled_h
    else:
        scaled_w = cell.height * photo_ar
        rate = (scaled_w - cell.width) / scaled_w
    return max(0.0, min(1.0, rate))


def cropping_rate(candidate: LayoutCandidate) -> float:
    rates = [cell_crop(c) for c in candidate.cells if c.photo is not None]
    if not rates:
        return 0.0
    return sum(rates) / len(rates)


def size_balance(candidate: LayoutCandidate) -> float:
    areas = [c.area for c in candidate.cells]
    if not areas:
        return 0.0
    n = len(areas)
    avg = sum(areas) / n
    if avg <= 0:
        return 0.0
    var = sum((a - avg) ** 2 for a in areas) / n
    cv = math.sqrt(var) / avg
    return 1.0 - min(1.0, cv)


def measure(candidate: LayoutCandidate, weights: ScoreWeights = DEFAULT_WEIGHTS) -> LayoutMetrics:
    util = utilization(candidate)
    crop = cropping_rate(candidate)
    balance = size_balance(candidate)
    score = weights.utilization * util + weights.cropping * (1.0 - crop) + weights.balance * balance
    return LayoutMetrics(utilization=util, cropping_rate=crop, size_balance=balance, score=score)


def score_layout(candidate: LayoutCandidate, weights: ScoreWeights = DEFAULT_WEIGHTS) -> LayoutCandidate:
    metrics = measure(candidate, weights)
    return replace(candidate, score=metrics.score, metrics=metrics)


def rank_layouts(
    candidates: Sequence[LayoutCandidate],
    weights: ScoreWeights = DEFAULT_WEIGHTS,
    stats: dict[str, float] | None = None,
) -> List[LayoutCandidate]:
    """Score every valid candidate and return them best first.

    Candidates without cells or with a zero-area cell are left out and only
    counted (``stats["invalid"]``). Equal scores keep their input order.
    """
    scored: List[LayoutCandidate] = []
    invalid = 0
    for cand in candidates:
        if not is_scorable(cand):
            invalid += 1
            continue
        scored.append(score_layout(cand, weights))

    if invalid:
        logger.warning("excluded %d degenerate layout(s) from scoring", invalid)

    scored.sort(key=lambda c: c.score, reverse=True)

    if stats is not None:
        stats["scored"] = float(len(scored))
        stats["invalid"] = float(invalid)
    return scored
