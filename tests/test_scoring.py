from __future__ import annotations

from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
import sys

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from targetscan.core.calibration import MIN_HALF_EXTENT, TargetCalibration
from targetscan.core.scoring import aggregate_cards, card_total, score, tetrathlon_points
from targetscan.core.target_spec import TETRATHLON_TARGET
from targetscan.core.types import Hole, Point2D


def _hole(i: int, s: int) -> Hole:
    return Hole(id=f"h{i}", position=Point2D(0.5, 0.5), score=s)


def test_target_spec_constants() -> None:
    assert TETRATHLON_TARGET.max_score == 10
    assert TETRATHLON_TARGET.max_card_total == 50
    assert TETRATHLON_TARGET.outer_edge == 1.0
    assert TETRATHLON_TARGET.to_dict()["points_per_raw_score"] == 10


@pytest.mark.parametrize("d, expected", [
    (0.1, 10), (0.3, 8), (0.5, 6), (0.7, 4), (0.9, 2), (1.2, 0),
])
def test_score_bands_on_default_calibration(d: float, expected: int) -> None:
    calib = TargetCalibration.default()
    p = Point2D(0.5 + 0.4 * d, 0.5)
    assert score(p, calib) == expected


def test_score_examples() -> None:
    calib = TargetCalibration.default()
    assert score(Point2D(0.5, 0.5), calib) == 10
    assert score(Point2D(0.0, 0.0), calib) == 0
    # (0.5, 0.95) sits on the rim up to float rounding
    assert score(Point2D(0.5, 0.95), calib) in (0, 2)


def test_rim_is_exclusive() -> None:
    calib = TargetCalibration.create(Point2D(0.5, 0.5), 0.25, 0.25)
    assert score(Point2D(0.75, 0.5), calib) == 0
    assert score(Point2D(0.5, 0.25), calib) == 0
    assert score(Point2D(0.7499, 0.5), calib) == 2


def test_calibration_clamps() -> None:
    calib = TargetCalibration.create(Point2D(1.4, -0.1), 0.0, 0.01)
    assert calib.center == Point2D(1.0, 0.0)
    assert calib.half_extent == (MIN_HALF_EXTENT, MIN_HALF_EXTENT)
    assert TargetCalibration.from_dict(calib.to_dict()) == calib


def test_card_and_competition_totals() -> None:
    card1 = [_hole(0, 10), _hole(1, 8), _hole(2, 0), _hole(3, 6), _hole(4, 2)]
    card2 = [_hole(5, 10), _hole(6, 10), _hole(7, 4)]
    assert card_total(card1) == 26
    assert tetrathlon_points(26) == 260

    comp = aggregate_cards([card1, card2])
    assert comp.card_totals == [26, 24]
    assert comp.raw_total == 50
    assert comp.points == 500

    empty = aggregate_cards([])
    assert empty.raw_total == 0 and empty.points == 0
