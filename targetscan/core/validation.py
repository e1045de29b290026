# -*- coding: utf-8 -*-
"""
Sanity checks run on a scan before its holes are analyzed or stored.

Findings come back as data: warnings never invalidate a scan, errors do.
Distances are in normalized image units, the same space the holes live in;
"outside the target" is measured in elliptical distance against the
calibration (1.0 = on the rim).
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from itertools import combinations
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .calibration import TargetCalibration
from .geometry import distance, elliptical_distance
from .scoring import score as band_score
from .target_spec import TETRATHLON_TARGET
from .types import Hole

MIN_IMAGE_DIMENSION = 200
DUPLICATE_DISTANCE = 0.02
OUTSIDE_WARN_DISTANCE = 1.0
OUTSIDE_ERROR_DISTANCE = 1.5
LOW_CONFIDENCE_LIMIT = 0.5
SCORE_TOLERANCE = 2
SMALL_TARGET_EXTENT = 0.15

# spacing heuristics over all pairwise distances
CLUSTERED_MEAN = 0.03
CLUSTERED_MAX = 0.05
SPREAD_MEAN = 0.5
FAR_SHOT_FACTOR = 3.0


class IssueCode(str, Enum):
    # warnings
    SHOT_OUTSIDE_TARGET = "shot_outside_target"
    LOW_CONFIDENCE = "low_confidence"
    UNUSUAL_SPACING = "unusual_spacing"
    OVERLAPPING_SHOTS = "overlapping_shots"
    POSSIBLE_MISSED = "possible_missed"
    MANUAL_OVERRIDE = "manual_override"
    CALIBRATION_UNCERTAIN = "calibration_uncertain"
    # errors
    INVALID_COORDINATES = "invalid_coordinates"
    INVALID_SCORE = "invalid_score"
    IMAGE_TOO_SMALL = "image_too_small"


@dataclass(frozen=True)
class ValidationIssue:
    code: IssueCode
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "field": self.field}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationIssue":
        return cls(IssueCode(data["code"]), str(data["message"]), data.get("field"))


@dataclass(frozen=True)
class ValidationResult:
    warnings: Tuple[ValidationIssue, ...] = ()
    errors: Tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def codes(self) -> List[IssueCode]:
        return [i.code for i in self.warnings + self.errors]

    @classmethod
    def combine(cls, results: Iterable["ValidationResult"]) -> "ValidationResult":
        warnings: List[ValidationIssue] = []
        errors: List[ValidationIssue] = []
        for r in results:
            warnings.extend(r.warnings)
            errors.extend(r.errors)
        return cls(tuple(warnings), tuple(errors))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "warnings": [w.to_dict() for w in self.warnings],
            "errors": [e.to_dict() for e in self.errors],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationResult":
        return cls(
            warnings=tuple(ValidationIssue.from_dict(w) for w in data.get("warnings", ())),
            errors=tuple(ValidationIssue.from_dict(e) for e in data.get("errors", ())),
        )


VALID = ValidationResult()


# --------------------- single hole ---------------------
def validate_hole(hole: Hole, calibration: TargetCalibration) -> ValidationResult:
    warnings: List[ValidationIssue] = []
    errors: List[ValidationIssue] = []
    p = hole.position

    if not (math.isfinite(p.x) and math.isfinite(p.y)):
        errors.append(ValidationIssue(IssueCode.INVALID_COORDINATES,
                                      "Shot position is not a finite coordinate", "position"))
        return ValidationResult((), tuple(errors))

    d = elliptical_distance(p, calibration.center, calibration.half_extent)
    if d > OUTSIDE_ERROR_DISTANCE:
        errors.append(ValidationIssue(IssueCode.INVALID_COORDINATES,
                                      "Shot position too far outside target boundary", "position"))
    elif d > OUTSIDE_WARN_DISTANCE:
        warnings.append(ValidationIssue(IssueCode.SHOT_OUTSIDE_TARGET,
                                        "Shot recorded outside target boundary", "position"))

    valid_scores = {s for _, s in TETRATHLON_TARGET.bands} | {TETRATHLON_TARGET.miss_score}
    if hole.score not in valid_scores:
        errors.append(ValidationIssue(IssueCode.INVALID_SCORE,
                                      f"Score {hole.score} is not a valid tetrathlon score", "score"))
    else:
        expected = band_score(p, calibration)
        if hole.score != expected and hole.score != TETRATHLON_TARGET.miss_score:
            if abs(hole.score - expected) > SCORE_TOLERANCE:
                errors.append(ValidationIssue(
                    IssueCode.INVALID_SCORE,
                    f"Score {hole.score} inconsistent with position (expected ~{expected})", "score"))
            else:
                warnings.append(ValidationIssue(
                    IssueCode.MANUAL_OVERRIDE,
                    "Score differs from calculated value (edge case or manual override)", "score"))

    if hole.confidence < LOW_CONFIDENCE_LIMIT:
        warnings.append(ValidationIssue(
            IssueCode.LOW_CONFIDENCE,
            f"Detection confidence is low ({hole.confidence * 100:.0f}%)", "confidence"))

    return ValidationResult(tuple(warnings), tuple(errors))


# --------------------- collections ---------------------
def find_duplicates(holes: Sequence[Hole], min_distance: float = DUPLICATE_DISTANCE) -> List[Tuple[int, int]]:
    """Index pairs of holes closer together than ``min_distance``."""
    return [(i, j) for (i, a), (j, b) in combinations(enumerate(holes), 2)
            if distance(a.position, b.position) < min_distance]


def spacing_warning(holes: Sequence[Hole]) -> Optional[str]:
    if len(holes) < 3:
        return None
    dists = [distance(a.position, b.position) for a, b in combinations(holes, 2)]
    mean_d = sum(dists) / len(dists)
    max_d = max(dists)
    if mean_d < CLUSTERED_MEAN and max_d < CLUSTERED_MAX:
        return "Shots are unusually clustered - verify detection accuracy"
    if mean_d > SPREAD_MEAN:
        return "Shots are widely spread - verify target alignment"
    if max_d > mean_d * FAR_SHOT_FACTOR:
        return "One or more shots significantly distant from group"
    return None


def validate_holes(holes: Sequence[Hole], calibration: TargetCalibration,
                   expected_count: Optional[int] = None) -> ValidationResult:
    """Checks over the whole set of holes; an empty set is valid."""
    if not holes:
        return VALID
    warnings: List[ValidationIssue] = []
    errors: List[ValidationIssue] = []

    if expected_count is not None and len(holes) != expected_count:
        warnings.append(ValidationIssue(
            IssueCode.POSSIBLE_MISSED,
            f"Expected {expected_count} shots but found {len(holes)}", "shot_count"))

    for i, j in find_duplicates(holes):
        warnings.append(ValidationIssue(
            IssueCode.OVERLAPPING_SHOTS,
            f"Shots {i + 1} and {j + 1} may be duplicates (very close positions)", "position"))

    for hole in holes:
        r = validate_hole(hole, calibration)
        warnings.extend(r.warnings)
        errors.extend(r.errors)

    msg = spacing_warning(holes)
    if msg:
        warnings.append(ValidationIssue(IssueCode.UNUSUAL_SPACING, msg, "position"))

    return ValidationResult(tuple(warnings), tuple(errors))


# --------------------- image / calibration ---------------------
def validate_image_size(width: int, height: int,
                        minimum: int = MIN_IMAGE_DIMENSION) -> ValidationResult:
    if width < minimum or height < minimum:
        return ValidationResult(errors=(ValidationIssue(
            IssueCode.IMAGE_TOO_SMALL,
            f"Image too small ({width} x {height}, minimum {minimum})", "image"),))
    return VALID


def validate_calibration(calibration: TargetCalibration) -> ValidationResult:
    w, h = calibration.half_extent
    if w < SMALL_TARGET_EXTENT or h < SMALL_TARGET_EXTENT:
        return ValidationResult(warnings=(ValidationIssue(
            IssueCode.CALIBRATION_UNCERTAIN,
            "Target appears small in frame - accuracy may be reduced", "half_extent"),))
    return VALID


def validate_scan(image_size: Optional[Tuple[int, int]], holes: Sequence[Hole],
                  calibration: TargetCalibration,
                  expected_count: Optional[int] = None) -> ValidationResult:
    results = []
    if image_size is not None:
        results.append(validate_image_size(*image_size))
    results.append(validate_calibration(calibration))
    results.append(validate_holes(holes, calibration, expected_count))
    return ValidationResult.combine(results)


__all__ = [
    "IssueCode",
    "MIN_IMAGE_DIMENSION",
    "VALID",
    "ValidationIssue",
    "ValidationResult",
    "find_duplicates",
    "spacing_warning",
    "validate_calibration",
    "validate_hole",
    "validate_holes",
    "validate_image_size",
    "validate_scan",
]
