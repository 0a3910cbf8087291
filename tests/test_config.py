import pytest

from collage_config import (
    ALL_KINDS,
    COMPOSITE,
    GRID,
    LEGACY_WEIGHTS,
    SPLIT,
    EngineConfig,
    ScoreWeights,
    parse_families,
    parse_weights,
)


def test_defaults():
    cfg = EngineConfig()
    assert cfg.weights == ScoreWeights(0.4, 0.4, 0.2)
    assert cfg.signature_precision == 6
    assert cfg.grouping_precision == 2
    assert cfg.families == ALL_KINDS
    assert LEGACY_WEIGHTS == ScoreWeights(0.5, 0.3, 0.2)


def test_parse_weights():
    assert parse_weights("0.5, 0.3, 0.2") == LEGACY_WEIGHTS
    with pytest.raises(ValueError):
        parse_weights("0.5,0.5")
    with pytest.raises(ValueError):
        parse_weights("0.6,0.6,0.2")
    with pytest.raises(ValueError):
        parse_weights("a,b,c")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"signature_precision": -1},
        {"split_ratios": ()},
        {"split_ratios": (1.0,)},
        {"side_ratio": 0.0},
        {"max_stack_columns": 1},
        {"families": ("grid", "hexagon")},
    ],
)
def test_invalid_engine_config(kwargs):
    with pytest.raises(ValueError):
        EngineConfig(**kwargs)


def test_parse_families_keeps_generation_order():
    assert parse_families("composite, grid,SPLIT") == (GRID, SPLIT, COMPOSITE)
    with pytest.raises(ValueError):
        parse_families(" , ")
    with pytest.raises(ValueError):
        EngineConfig(families=parse_families("grid,bogus"))
