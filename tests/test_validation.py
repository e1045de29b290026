from __future__ import annotations

from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
import sys

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from targetscan.core.calibration import TargetCalibration
from targetscan.core.scoring import score
from targetscan.core.types import Hole, Point2D
from targetscan.core.validation import (
    VALID,
    IssueCode,
    ValidationResult,
    find_duplicates,
    spacing_warning,
    validate_calibration,
    validate_hole,
    validate_holes,
    validate_image_size,
    validate_scan,
)

CALIB = TargetCalibration.default()


def _hole(x: float, y: float, score_override=None, confidence: float = 1.0, hid: str = "h") -> Hole:
    p = Point2D(x, y)
    s = score(p, CALIB) if score_override is None else score_override
    return Hole(id=hid, position=p, score=s, confidence=confidence)


def test_clean_hole_is_valid() -> None:
    r = validate_hole(_hole(0.5, 0.5), CALIB)
    assert r == VALID
    assert r.is_valid and not r.has_warnings


def test_outside_target_warns_then_errors() -> None:
    # half extent 0.4 horizontally: x=0.95 is d=1.125, x=1.0 is d=1.25
    near = validate_hole(_hole(0.95, 0.5), CALIB)
    assert near.is_valid
    assert near.codes() == [IssueCode.SHOT_OUTSIDE_TARGET]

    tight = TargetCalibration.create(Point2D(0.5, 0.5), 0.2, 0.2)
    far = validate_hole(Hole(id="f", position=Point2D(0.9, 0.5), score=0), tight)
    assert not far.is_valid
    assert far.errors[0].code is IssueCode.INVALID_COORDINATES


def test_score_consistency() -> None:
    # centre hole is worth 10
    small_gap = validate_hole(_hole(0.5, 0.5, score_override=8), CALIB)
    assert small_gap.is_valid
    assert small_gap.codes() == [IssueCode.MANUAL_OVERRIDE]

    big_gap = validate_hole(_hole(0.5, 0.5, score_override=4), CALIB)
    assert [e.code for e in big_gap.errors] == [IssueCode.INVALID_SCORE]

    assert validate_hole(_hole(0.5, 0.5, score_override=0), CALIB).is_valid

    bogus = validate_hole(_hole(0.5, 0.5, score_override=7), CALIB)
    assert not bogus.is_valid
    assert "not a valid" in bogus.errors[0].message


def test_low_confidence_warning() -> None:
    r = validate_hole(_hole(0.5, 0.5, confidence=0.3), CALIB)
    assert r.is_valid
    assert r.warnings[0].code is IssueCode.LOW_CONFIDENCE
    assert "30%" in r.warnings[0].message


def test_non_finite_position_is_an_error() -> None:
    r = validate_hole(Hole(id="n", position=Point2D(float("nan"), 0.5), score=0), CALIB)
    assert [e.code for e in r.errors] == [IssueCode.INVALID_COORDINATES]


def test_empty_collection_is_valid() -> None:
    assert validate_holes([], CALIB, expected_count=5) == VALID


def test_count_and_duplicates() -> None:
    holes = [_hole(0.5, 0.5, hid="a"), _hole(0.51, 0.5, hid="b"), _hole(0.7, 0.6, hid="c")]
    assert find_duplicates(holes) == [(0, 1)]
    r = validate_holes(holes, CALIB, expected_count=5)
    assert r.is_valid
    messages = [w.message for w in r.warnings]
    assert "Expected 5 shots but found 3" in messages
    assert "Shots 1 and 2 may be duplicates (very close positions)" in messages


@pytest.mark.parametrize(
    "points, fragment",
    [
        ([(0.5, 0.5), (0.52, 0.5), (0.51, 0.52)], "clustered"),
        ([(0.1, 0.1), (0.9, 0.1), (0.5, 0.9)], "widely spread"),
        ([(0.5, 0.5), (0.52, 0.5), (0.5, 0.52), (0.52, 0.52), (0.51, 0.51),
          (0.53, 0.51), (0.51, 0.53), (0.53, 0.53), (0.9, 0.9)], "distant from group"),
    ],
)
def test_spacing_heuristics(points, fragment) -> None:
    holes = [_hole(x, y) for x, y in points]
    msg = spacing_warning(holes)
    assert msg is not None and fragment in msg


def test_spacing_needs_three_holes() -> None:
    assert spacing_warning([_hole(0.1, 0.1), _hole(0.9, 0.9)]) is None
    assert spacing_warning([_hole(0.4, 0.5), _hole(0.5, 0.5), _hole(0.6, 0.5)]) is None


def test_image_and_calibration_checks() -> None:
    assert validate_image_size(200, 200) == VALID
    small = validate_image_size(199, 640)
    assert small.errors[0].message == "Image too small (199 x 640, minimum 200)"

    tiny = validate_calibration(TargetCalibration.create(Point2D(0.5, 0.5), 0.1, 0.4))
    assert tiny.is_valid and tiny.codes() == [IssueCode.CALIBRATION_UNCERTAIN]
    assert validate_calibration(CALIB) == VALID


def test_validate_scan_combines_and_serializes() -> None:
    holes = [_hole(0.5, 0.5, confidence=0.2)]
    r = validate_scan((100, 100), holes, CALIB, expected_count=5)
    assert not r.is_valid
    assert set(r.codes()) == {IssueCode.IMAGE_TOO_SMALL, IssueCode.POSSIBLE_MISSED, IssueCode.LOW_CONFIDENCE}

    data = r.to_dict()
    assert data["is_valid"] is False
    assert ValidationResult.from_dict(data) == r

    merged = ValidationResult.combine([VALID, r, VALID])
    assert merged == r
