# targetscan/core/types.py
# -*- coding: utf-8 -*-

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple

Pt = Tuple[float, float]

# Minimum normalized gap kept between a moved corner and the opposite corners.
MIN_CORNER_GAP = 0.05


def _clamp01(v: float) -> float:
    return min(1.0, max(0.0, float(v)))


@dataclass(frozen=True)
class Point2D:
    """Normalized image coordinate; origin top-left, x right, y down."""

    x: float
    y: float

    def clamped(self) -> "Point2D":
        return Point2D(_clamp01(self.x), _clamp01(self.y))

    def as_tuple(self) -> Pt:
        return (float(self.x), float(self.y))

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Point2D":
        return cls(float(data["x"]), float(data["y"]))


class Corner(str, Enum):
    TOP_LEFT = "top_left"
    TOP_RIGHT = "top_right"
    BOTTOM_LEFT = "bottom_left"
    BOTTOM_RIGHT = "bottom_right"


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners normalized to the source image."""

    top_left: Point2D
    top_right: Point2D
    bottom_left: Point2D
    bottom_right: Point2D

    @classmethod
    def full(cls) -> "Quadrilateral":
        return cls.from_rect(0.0, 0.0, 1.0, 1.0)

    @classmethod
    def from_rect(cls, x: float, y: float, w: float, h: float) -> "Quadrilateral":
        return cls(
            top_left=Point2D(x, y),
            top_right=Point2D(x + w, y),
            bottom_left=Point2D(x, y + h),
            bottom_right=Point2D(x + w, y + h),
        )

    @classmethod
    def from_points(cls, pts) -> "Quadrilateral":
        """Build from ``[tl, tr, br, bl]`` (the order ``order_quad`` returns)."""
        tl, tr, br, bl = [Point2D(float(p[0]), float(p[1])) for p in pts]
        return cls(top_left=tl, top_right=tr, bottom_left=bl, bottom_right=br)

    def corners(self) -> Tuple[Point2D, Point2D, Point2D, Point2D]:
        """Clockwise order: tl, tr, br, bl."""
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    def corner(self, which: Corner) -> Point2D:
        return getattr(self, Corner(which).value)

    def clamped(self) -> "Quadrilateral":
        return Quadrilateral(
            top_left=self.top_left.clamped(),
            top_right=self.top_right.clamped(),
            bottom_left=self.bottom_left.clamped(),
            bottom_right=self.bottom_right.clamped(),
        )

    def move_corner(self, which: Corner, point: Point2D) -> "Quadrilateral":
        """Return a copy with one corner moved.

        The new point is clamped into the unit square and then pushed back so it
        stays left/right and above/below the corners across from it, which keeps
        the outline from folding over itself.
        """
        which = Corner(which)
        p = point.clamped()
        x, y = p.x, p.y
        g = MIN_CORNER_GAP
        if which in (Corner.TOP_LEFT, Corner.BOTTOM_LEFT):
            x = min(x, min(self.top_right.x, self.bottom_right.x) - g)
        else:
            x = max(x, max(self.top_left.x, self.bottom_left.x) + g)
        if which in (Corner.TOP_LEFT, Corner.TOP_RIGHT):
            y = min(y, min(self.bottom_left.y, self.bottom_right.y) - g)
        else:
            y = max(y, max(self.top_left.y, self.top_right.y) + g)
        return replace(self, **{which.value: Point2D(_clamp01(x), _clamp01(y))})

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {c.value: self.corner(c).to_dict() for c in Corner}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quadrilateral":
        return cls(**{c.value: Point2D.from_dict(data[c.value]) for c in Corner})


class HoleSource(str, Enum):
    MANUAL_ADD = "manualAdd"
    DETECTOR_ACCEPTED = "detectorAccepted"
    DETECTOR_FLAGGED = "detectorFlagged"


@dataclass(frozen=True)
class Hole:
    id: str
    position: Point2D
    score: int
    confidence: float = 1.0
    radius: float = 0.02
    needs_review: bool = False
    review_reason: Optional[str] = None
    source: HoleSource = HoleSource.MANUAL_ADD
    was_user_corrected: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "position": self.position.to_dict(),
            "score": int(self.score),
            "confidence": float(self.confidence),
            "radius": float(self.radius),
            "needs_review": bool(self.needs_review),
            "review_reason": self.review_reason,
            "source": self.source.value,
            "was_user_corrected": bool(self.was_user_corrected),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Hole":
        return cls(
            id=str(data["id"]),
            position=Point2D.from_dict(data["position"]),
            score=int(data["score"]),
            confidence=float(data.get("confidence", 1.0)),
            radius=float(data.get("radius", 0.02)),
            needs_review=bool(data.get("needs_review", False)),
            review_reason=data.get("review_reason"),
            source=HoleSource(data.get("source", HoleSource.MANUAL_ADD.value)),
            was_user_corrected=bool(data.get("was_user_corrected", False)),
        )


@dataclass(frozen=True)
class HoleCandidate:
    """Detector proposal; ``radius`` is normalized to the shorter image side."""

    position: Point2D
    confidence: float
    radius: float
    flagged_reason: Optional[str] = None
    debug: Dict[str, Any] = field(default_factory=dict, compare=False)


class EditAction(str, Enum):
    ADD = "add"
    MOVE = "move"
    DELETE = "delete"
    CONFIRM = "confirm"


@dataclass(frozen=True)
class EditEvent:
    action: EditAction
    hole_id: str
    position: Point2D
    previous_position: Optional[Point2D]
    timestamp_offset: float
    drag_distance: Optional[float]
    sequence_number: int
    total_holes_at_time: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "hole_id": self.hole_id,
            "position": self.position.to_dict(),
            "previous_position": self.previous_position.to_dict() if self.previous_position else None,
            "timestamp_offset": float(self.timestamp_offset),
            "drag_distance": None if self.drag_distance is None else float(self.drag_distance),
            "sequence_number": int(self.sequence_number),
            "total_holes_at_time": int(self.total_holes_at_time),
        }


@dataclass(frozen=True)
class AdoptionRecord:
    timestamp_offset: float
    candidate_count: int
    accepted: int
    flagged: int
    detector: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp_offset": float(self.timestamp_offset),
            "candidate_count": int(self.candidate_count),
            "accepted": int(self.accepted),
            "flagged": int(self.flagged),
            "detector": self.detector,
        }
