from __future__ import annotations

from pathlib import Path

import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
import sys

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from targetscan.core.calibration import TargetCalibration
from targetscan.core.pattern import (
    CenterAlignment,
    GroupingGrade,
    PatternSummary,
    analyze,
    circular_error_probable,
    clock_direction,
    grade_grouping,
)
from targetscan.core.types import Hole, Point2D


def _holes(points) -> list:
    return [Hole(id=f"h{i}", position=Point2D(x, y), score=0) for i, (x, y) in enumerate(points)]


def test_empty_input_is_neutral() -> None:
    calib = TargetCalibration.default()
    s = analyze([], calib)
    assert s.hole_count == 0
    assert s.centroid == calib.center
    assert s.grouping_grade is None and s.outlier_count == 0
    assert s.feedback == ()


def test_identical_holes_at_center() -> None:
    s = analyze(_holes([(0.5, 0.5)] * 5), TargetCalibration.default())
    assert s.hole_count == 5
    assert s.total_spread == 0.0
    assert s.grouping_grade is GroupingGrade.EXCELLENT
    assert s.center_alignment is CenterAlignment.WELL_ALIGNED
    assert s.outlier_ids == ()
    assert s.bias_direction is None
    assert s.feedback[0] == "Excellent grouping - very tight cluster"
    assert "Great shooting - centered and consistent!" in s.feedback


def test_single_outlier_is_reported() -> None:
    holes = _holes([(0.5, 0.5)] * 9 + [(0.9, 0.5)])
    s = analyze(holes, TargetCalibration.default())
    assert np.isclose(s.total_spread, 0.12)
    assert s.outlier_ids == ("h9",)
    assert "1 outlier shot(s) - check technique" in s.feedback
    assert np.isclose(s.extreme_spread, 0.4)


def test_outliers_never_exceed_half() -> None:
    rng = np.random.default_rng(3)
    calib = TargetCalibration.default()
    for n in (2, 3, 4, 6, 10):
        pts = rng.uniform(0.0, 1.0, size=(n, 2))
        s = analyze(_holes(pts.tolist()), calib)
        assert s.outlier_count < n / 2.0


@pytest.mark.parametrize("point, message, hour", [
    ((0.7, 0.5), "Shots pulling to the right", 3),
    ((0.3, 0.5), "Shots pulling to the left", 9),
    ((0.5, 0.7), "Shots trending low", 6),
    ((0.5, 0.3), "Shots trending high", 12),
])
def test_directional_bias(point, message, hour) -> None:
    s = analyze(_holes([point] * 5), TargetCalibration.default())
    assert message in s.feedback
    assert s.bias_direction == hour
    assert s.coaching is not None
    assert s.center_alignment is None


def test_small_offset_has_no_bias_feedback() -> None:
    s = analyze(_holes([(0.57, 0.5)] * 3), TargetCalibration.default())
    assert s.bias_direction is None
    assert not any("pulling" in m or "trending" in m for m in s.feedback)
    assert s.center_alignment is CenterAlignment.GOOD


def test_helpers() -> None:
    assert grade_grouping(0.0) is GroupingGrade.EXCELLENT
    assert grade_grouping(0.07) is GroupingGrade.GOOD
    assert grade_grouping(0.12) is GroupingGrade.FAIR
    assert grade_grouping(0.30) is GroupingGrade.WIDE
    assert clock_direction(0.1, -0.1) in (1, 2)
    assert clock_direction(-0.1, 0.1) in (7, 8)
    assert circular_error_probable([], 0.5) == 0.0
    assert circular_error_probable([0.4, 0.1, 0.3, 0.2], 0.5) == 0.3


def test_summary_dict_roundtrip() -> None:
    s = analyze(_holes([(0.5, 0.5), (0.6, 0.55), (0.45, 0.4)]), TargetCalibration.default())
    again = PatternSummary.from_dict(s.to_dict())
    assert again == s
