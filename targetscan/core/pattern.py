# -*- coding: utf-8 -*-
"""Grouping, bias and outlier statistics over a scan's holes.

All thresholds here are fixed coaching constants in normalized image units.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from itertools import combinations
from typing import Any, Dict, Optional, Sequence, Tuple

from .calibration import TargetCalibration
from .geometry import centroid as mean_point, distance
from .types import Hole, Point2D

OUTLIER_FACTOR = 2.5
BIAS_THRESHOLD = 0.08
GROUPING_EDGES = (0.05, 0.10, 0.15)
WELL_ALIGNED_DISTANCE = 0.05
WELL_ALIGNED_SPREAD = 0.08
GOOD_ALIGNMENT_DISTANCE = 0.10


class GroupingGrade(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    WIDE = "Wide"


class CenterAlignment(str, Enum):
    WELL_ALIGNED = "well aligned"
    GOOD = "good alignment"


_GROUPING_MESSAGES = {
    GroupingGrade.EXCELLENT: "Excellent grouping - very tight cluster",
    GroupingGrade.GOOD: "Good grouping - consistent shots",
    GroupingGrade.FAIR: "Fair grouping - some spread",
    GroupingGrade.WIDE: "Wide spread - work on consistency",
}

_COACHING = {
    12: "Shots grouping high - check front sight alignment and trigger squeeze",
    6: "Shots grouping low - ensure proper sight picture and follow-through",
    3: "Shots pulling right - check grip pressure and trigger finger placement",
    9: "Shots pulling left - work on consistent grip and smooth trigger press",
    1: "High-right pattern - focus on grip steadiness and sight alignment",
    2: "High-right pattern - focus on grip steadiness and sight alignment",
    10: "High-left pattern - check for anticipation and grip tension",
    11: "High-left pattern - check for anticipation and grip tension",
    4: "Low-right pattern - maintain follow-through and sight picture",
    5: "Low-right pattern - maintain follow-through and sight picture",
    7: "Low-left pattern - classic anticipation or flinch, practice dry firing",
    8: "Low-left pattern - classic anticipation or flinch, practice dry firing",
}


@dataclass(frozen=True)
class PatternSummary:
    hole_count: int
    centroid: Point2D
    spread_x: float = 0.0
    spread_y: float = 0.0
    total_spread: float = 0.0
    horizontal_bias: float = 0.0
    vertical_bias: float = 0.0
    outlier_ids: Tuple[str, ...] = ()
    grouping_grade: Optional[GroupingGrade] = None
    center_alignment: Optional[CenterAlignment] = None
    extreme_spread: float = 0.0
    cep50: float = 0.0
    cep90: float = 0.0
    bias_direction: Optional[int] = None      # clock hour, 12 = high
    coaching: Optional[str] = None
    feedback: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def outlier_count(self) -> int:
        return len(self.outlier_ids)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hole_count": self.hole_count,
            "centroid": self.centroid.to_dict(),
            "spread_x": self.spread_x,
            "spread_y": self.spread_y,
            "total_spread": self.total_spread,
            "horizontal_bias": self.horizontal_bias,
            "vertical_bias": self.vertical_bias,
            "outlier_ids": list(self.outlier_ids),
            "outlier_count": self.outlier_count,
            "grouping_grade": self.grouping_grade.value if self.grouping_grade else None,
            "center_alignment": self.center_alignment.value if self.center_alignment else None,
            "extreme_spread": self.extreme_spread,
            "cep50": self.cep50,
            "cep90": self.cep90,
            "bias_direction": self.bias_direction,
            "coaching": self.coaching,
            "feedback": list(self.feedback),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatternSummary":
        grade = data.get("grouping_grade")
        align = data.get("center_alignment")
        return cls(
            hole_count=int(data["hole_count"]),
            centroid=Point2D.from_dict(data["centroid"]),
            spread_x=float(data.get("spread_x", 0.0)),
            spread_y=float(data.get("spread_y", 0.0)),
            total_spread=float(data.get("total_spread", 0.0)),
            horizontal_bias=float(data.get("horizontal_bias", 0.0)),
            vertical_bias=float(data.get("vertical_bias", 0.0)),
            outlier_ids=tuple(data.get("outlier_ids", ())),
            grouping_grade=GroupingGrade(grade) if grade else None,
            center_alignment=CenterAlignment(align) if align else None,
            extreme_spread=float(data.get("extreme_spread", 0.0)),
            cep50=float(data.get("cep50", 0.0)),
            cep90=float(data.get("cep90", 0.0)),
            bias_direction=data.get("bias_direction"),
            coaching=data.get("coaching"),
            feedback=tuple(data.get("feedback", ())),
        )


def grade_grouping(total_spread: float) -> GroupingGrade:
    excellent, good, fair = GROUPING_EDGES
    if total_spread < excellent:
        return GroupingGrade.EXCELLENT
    if total_spread < good:
        return GroupingGrade.GOOD
    if total_spread < fair:
        return GroupingGrade.FAIR
    return GroupingGrade.WIDE


def clock_direction(dx: float, dy: float) -> int:
    """Clock hour of an image-space offset (y down), 12 straight up."""
    angle = math.degrees(math.atan2(-dy, dx))
    adjusted = (90.0 - angle + 360.0) % 360.0
    hour = int(round(adjusted / 30.0)) % 12
    return 12 if hour == 0 else hour


def circular_error_probable(distances: Sequence[float], percentile: float) -> float:
    if not distances:
        return 0.0
    ordered = sorted(distances)
    idx = min(int(len(ordered) * percentile), len(ordered) - 1)
    return float(ordered[idx])


def analyze(holes: Sequence[Hole], calibration: TargetCalibration) -> PatternSummary:
    if not holes:
        return PatternSummary(hole_count=0, centroid=calibration.center)

    n = len(holes)
    pts = [h.position for h in holes]
    c = mean_point(pts)
    spread_x = math.sqrt(sum((p.x - c.x) ** 2 for p in pts) / n)
    spread_y = math.sqrt(sum((p.y - c.y) ** 2 for p in pts) / n)
    total = math.hypot(spread_x, spread_y)
    h_bias = c.x - calibration.center.x
    v_bias = c.y - calibration.center.y

    dists = [distance(p, c) for p in pts]
    outliers = tuple(h.id for h, d in zip(holes, dists) if d > OUTLIER_FACTOR * total)
    if len(outliers) >= n / 2.0:
        outliers = ()

    grade = grade_grouping(total)
    off_center = math.hypot(h_bias, v_bias)
    if off_center < WELL_ALIGNED_DISTANCE and total < WELL_ALIGNED_SPREAD:
        alignment: Optional[CenterAlignment] = CenterAlignment.WELL_ALIGNED
    elif off_center < GOOD_ALIGNMENT_DISTANCE:
        alignment = CenterAlignment.GOOD
    else:
        alignment = None

    direction = clock_direction(h_bias, v_bias) if off_center > BIAS_THRESHOLD else None

    feedback = [_GROUPING_MESSAGES[grade]]
    if h_bias > BIAS_THRESHOLD:
        feedback.append("Shots pulling to the right")
    elif h_bias < -BIAS_THRESHOLD:
        feedback.append("Shots pulling to the left")
    if v_bias > BIAS_THRESHOLD:
        feedback.append("Shots trending low")
    elif v_bias < -BIAS_THRESHOLD:
        feedback.append("Shots trending high")
    if outliers:
        feedback.append(f"{len(outliers)} outlier shot(s) - check technique")
    if alignment is CenterAlignment.WELL_ALIGNED:
        feedback.append("Great shooting - centered and consistent!")
    elif alignment is CenterAlignment.GOOD:
        feedback.append("Good center alignment")

    return PatternSummary(
        hole_count=n,
        centroid=c,
        spread_x=spread_x,
        spread_y=spread_y,
        total_spread=total,
        horizontal_bias=h_bias,
        vertical_bias=v_bias,
        outlier_ids=outliers,
        grouping_grade=grade,
        center_alignment=alignment,
        extreme_spread=max((distance(a, b) for a, b in combinations(pts, 2)), default=0.0),
        cep50=circular_error_probable(dists, 0.50),
        cep90=circular_error_probable(dists, 0.90),
        bias_direction=direction,
        coaching=_COACHING.get(direction) if direction else None,
        feedback=tuple(feedback),
    )


__all__ = [
    "CenterAlignment",
    "GroupingGrade",
    "PatternSummary",
    "analyze",
    "circular_error_probable",
    "clock_direction",
    "grade_grouping",
]
