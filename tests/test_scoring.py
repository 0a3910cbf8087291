import logging

import pytest

from collage_config import DEFAULT_WEIGHTS, LEGACY_WEIGHTS, ScoreWeights
from collage_geometry import Cell, PageSize, Photo
from collage_scoring import (
    cell_crop,
    cropping_rate,
    is_scorable,
    rank_layouts,
    score_layout,
    size_balance,
    utilization,
)

from conftest import make_candidate


def test_wide_cell_with_square_photo_crops_half():
    assert cell_crop(Cell(0, 0, 200, 100, photo=Photo(500, 500))) == pytest.approx(0.5)


def test_tall_cell_is_symmetric():
    assert cell_crop(Cell(0, 0, 100, 200, photo=Photo(500, 500))) == pytest.approx(0.5)


def test_matching_aspect_does_not_crop():
    assert cell_crop(Cell(0, 0, 400, 300, photo=Photo(1024, 768))) == 0.0
    assert cell_crop(Cell(0, 0, 400, 300)) == 0.0


def test_cropping_rate_averages_bound_cells(photo_cells):
    cells = photo_cells((0, 0, 200, 100), (0, 100, 100, 100), photo=Photo(1, 1))
    assert cropping_rate(make_candidate(cells, page=PageSize(200, 200))) == pytest.approx(0.25)
    assert cropping_rate(make_candidate([Cell(0, 0, 10, 10)])) == 0.0


def test_size_balance_uses_coefficient_of_variation():
    cells = [Cell(0, 0, 10, 10), Cell(10, 0, 30, 10)]
    assert size_balance(make_candidate(cells)) == pytest.approx(0.5)
    equal = [Cell(0, 0, 50, 100), Cell(50, 0, 50, 100)]
    assert size_balance(make_candidate(equal)) == pytest.approx(1.0)


def test_size_balance_floors_at_zero():
    cells = [Cell(0, 0, 1, 1)] * 3 + [Cell(0, 0, 100, 100)]
    assert size_balance(make_candidate(cells)) == 0.0


def test_utilization_is_clamped():
    full = make_candidate([Cell(0, 0, 100, 100), Cell(0, 0, 10, 10)])
    assert utilization(full) == 1.0
    half = make_candidate([Cell(0, 0, 50, 100)])
    assert utilization(half) == pytest.approx(0.5)


def test_score_combines_metrics():
    cand = make_candidate([Cell(0, 0, 100, 100, photo=Photo(2, 1))])
    scored = score_layout(cand, DEFAULT_WEIGHTS)

    m = scored.metrics
    assert m.utilization == pytest.approx(1.0)
    assert m.cropping_rate == pytest.approx(0.5)
    assert m.size_balance == pytest.approx(1.0)
    assert scored.score == pytest.approx(0.4 + 0.4 * 0.5 + 0.2)
    assert cand.score is None

    legacy = score_layout(cand, LEGACY_WEIGHTS)
    assert legacy.score == pytest.approx(0.5 + 0.3 * 0.5 + 0.2)


def test_degenerate_layouts_are_not_scorable():
    assert not is_scorable(make_candidate([]))
    assert not is_scorable(make_candidate([Cell(0, 0, 0, 10)]))
    assert is_scorable(make_candidate([Cell(0, 0, 1, 1)]))


def test_rank_excludes_invalid_and_counts_them(caplog):
    good = make_candidate([Cell(0, 0, 100, 100, photo=Photo(1, 1))], name="good")
    empty = make_candidate([], name="empty")
    flat = make_candidate([Cell(0, 0, 100, 0)], name="flat")
    stats = {}

    with caplog.at_level(logging.WARNING, logger="collage_scoring"):
        ranked = rank_layouts([empty, good, flat], stats=stats)

    assert [c.name for c in ranked] == ["good"]
    assert stats == {"scored": 1.0, "invalid": 2.0}
    assert "excluded 2" in caplog.text


def test_rank_orders_best_first_and_keeps_ties_stable():
    full = make_candidate([Cell(0, 0, 100, 100, photo=Photo(1, 1))], name="full")
    half_a = make_candidate([Cell(0, 0, 50, 100, photo=Photo(1, 2))], name="half-a")
    half_b = make_candidate([Cell(50, 0, 50, 100, photo=Photo(1, 2))], name="half-b")

    ranked = rank_layouts([half_a, full, half_b])

    assert [c.name for c in ranked] == ["full", "half-a", "half-b"]
    scores = [c.score for c in ranked]
    assert scores == sorted(scores, reverse=True)


def test_weights_must_sum_to_one():
    with pytest.raises(ValueError):
        ScoreWeights(0.5, 0.5, 0.5)
    with pytest.raises(ValueError):
        ScoreWeights(1.2, -0.2, 0.0)
    assert ScoreWeights(1.0, 0.0, 0.0).utilization == 1.0
