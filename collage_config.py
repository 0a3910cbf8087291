from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Tuple

GRID = "grid"
SPLIT = "split"
STACKED = "stacked"
NESTED = "nested"
COMPOSITE = "composite"

# generation order; dedupe keeps the first structurally identical candidate
ALL_KINDS: Tuple[str, ...] = (GRID, STACKED, SPLIT, NESTED, COMPOSITE)

STRICT_PRECISION = 6
GROUPING_PRECISION = 2


@dataclass(frozen=True)
class ScoreWeights:
    utilization: float = 0.4
    cropping: float = 0.4
    balance: float = 0.2

    def __post_init__(self) -> None:
        parts = (self.utilization, self.cropping, self.balance)
        if any(p < 0 for p in parts):
            raise ValueError("score weights must be non-negative")
        if not math.isclose(sum(parts), 1.0, abs_tol=1e-9):
            raise ValueError(f"score weights must sum to 1, got {sum(parts):.6f}")


DEFAULT_WEIGHTS = ScoreWeights()
# weighting used by the first release of the ranking
LEGACY_WEIGHTS = ScoreWeights(utilization=0.5, cropping=0.3, balance=0.2)


def parse_weights(value: str) -> ScoreWeights:
    parts = [p.strip() for p in value.replace(";", ",").split(",") if p.strip()]
    if len(parts) != 3:
        raise ValueError("--weights must be three numbers like 0.4,0.4,0.2")
    u, c, b = (float(p) for p in parts)
    return ScoreWeights(utilization=u, cropping=c, balance=b)


@dataclass(frozen=True)
class EngineConfig:
    weights: ScoreWeights = DEFAULT_WEIGHTS
    signature_precision: int = STRICT_PRECISION
    grouping_precision: int = GROUPING_PRECISION
    split_ratios: Tuple[float, ...] = (0.5,)
    side_ratio: float = 2.0 / 3.0
    band_ratio: float = 0.5
    max_stack_columns: int = 4
    prefer_optimized: bool = False
    families: Tuple[str, ...] = field(default=ALL_KINDS)

    def __post_init__(self) -> None:
        if self.signature_precision < 0 or self.grouping_precision < 0:
            raise ValueError("signature precision must be >= 0")
        if not self.split_ratios:
            raise ValueError("at least one split ratio is required")
        for r in (*self.split_ratios, self.side_ratio, self.band_ratio):
            if not 0.0 < r < 1.0:
                raise ValueError(f"ratio must be in (0, 1), got {r}")
        if self.max_stack_columns < 2:
            raise ValueError("max_stack_columns must be >= 2")
        unknown = [k for k in self.families if k not in ALL_KINDS]
        if unknown:
            raise ValueError(f"unknown layout families: {', '.join(unknown)}")


DEFAULT_CONFIG = EngineConfig()


def parse_families(value: str) -> Tuple[str, ...]:
    kinds = tuple(k.strip().lower() for k in value.split(",") if k.strip())
    if not kinds:
        raise ValueError("--families must list at least one of: " + ", ".join(ALL_KINDS))
    # keep generation order regardless of how the user listed them
    return tuple(k for k in ALL_KINDS if k in kinds) + tuple(k for k in kinds if k not in ALL_KINDS)
