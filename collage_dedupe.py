from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, List, Sequence

from collage_config import GROUPING_PRECISION, STRICT_PRECISION
from collage_geometry import LayoutCandidate

logger = logging.getLogger(__name__)

Signature = Callable[[LayoutCandidate], str]


def _position_sorted(candidate: LayoutCandidate, precision: int) -> str:
    rects = []
    for c in candidate.cells:
        x, y, w, h = (f"{v:.{precision}f}" for v in c.normalized(candidate.page))
        rects.append((y, x, w, h))
    # top-to-bottom, then left-to-right; compare the rounded values, not the text
    rects.sort(key=lambda r: tuple(float(v) for v in r))
    return "|".join(",".join(r) for r in rects)


def structural_signature(candidate: LayoutCandidate, precision: int = STRICT_PRECISION) -> str:
    """Geometry-only key: two candidates with equal keys look the same on the page.

    Photos, kind and name do not take part.
    """
    return _position_sorted(candidate, precision)


def grouping_signature(candidate: LayoutCandidate, precision: int = GROUPING_PRECISION) -> str:
    """Coarser key used to group near-identical layouts for display."""
    return _position_sorted(candidate, precision)


def signature_at(precision: int, grouping: bool = False) -> Signature:
    fn = grouping_signature if grouping else structural_signature
    return lambda cand: fn(cand, precision)


def dedupe_strict(candidates: Sequence[LayoutCandidate], signature: Signature = structural_signature) -> List[LayoutCandidate]:
    seen = set()
    out: List[LayoutCandidate] = []
    for cand in candidates:
        key = signature(cand)
        if key in seen:
            logger.debug("dropping %s (%s): same structure as an earlier layout", cand.name, cand.kind)
            continue
        seen.add(key)
        out.append(cand)

    dropped = len(candidates) - len(out)
    if dropped:
        logger.debug("dedupe removed %d of %d candidates", dropped, len(candidates))
    return out


def annotate_duplicates(candidates: Sequence[LayoutCandidate], signature: Signature = grouping_signature) -> List[LayoutCandidate]:
    first: Dict[str, int] = {}
    out: List[LayoutCandidate] = []
    for i, cand in enumerate(candidates):
        key = signature(cand)
        if key in first:
            out.append(replace(cand, duplicate_of=first[key]))
        else:
            first[key] = i
            out.append(replace(cand, duplicate_of=None))
    return out


def variant_groups(candidates: Sequence[LayoutCandidate], signature: Signature = grouping_signature) -> Dict[str, List[int]]:
    """signature -> indices into ``candidates``, in first-seen order."""
    groups: Dict[str, List[int]] = {}
    for i, cand in enumerate(candidates):
        groups.setdefault(signature(cand), []).append(i)
    return groups
