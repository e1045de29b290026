# -*- coding: utf-8 -*-
"""Append-only log of ledger edits, kept as labeled data for detector work."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .types import AdoptionRecord, EditAction, EditEvent, Hole, HoleSource, Point2D

Clock = Callable[[], float]


class EditEventRecorder:
    """Owns the user-edit log and, separately, the detector-adoption log.

    Entries are frozen and only ever appended; ``events`` returns a tuple copy.
    """

    def __init__(self, clock: Clock = time.monotonic):
        self._clock = clock
        self._start = clock()
        self._events: List[EditEvent] = []
        self._adoptions: List[AdoptionRecord] = []

    def elapsed(self) -> float:
        return float(self._clock() - self._start)

    def record(self, action: EditAction, hole_id: str, position: Point2D, total_holes: int,
               previous_position: Optional[Point2D] = None,
               drag_distance: Optional[float] = None) -> EditEvent:
        event = EditEvent(
            action=EditAction(action),
            hole_id=hole_id,
            position=position,
            previous_position=previous_position,
            timestamp_offset=self.elapsed(),
            drag_distance=drag_distance,
            sequence_number=len(self._events),
            total_holes_at_time=int(total_holes),
        )
        self._events.append(event)
        return event

    def record_adoption(self, candidate_count: int, accepted: int, flagged: int,
                        detector: str = "") -> AdoptionRecord:
        rec = AdoptionRecord(self.elapsed(), int(candidate_count), int(accepted), int(flagged), detector)
        self._adoptions.append(rec)
        return rec

    @property
    def events(self) -> Tuple[EditEvent, ...]:
        return tuple(self._events)

    @property
    def adoptions(self) -> Tuple[AdoptionRecord, ...]:
        return tuple(self._adoptions)

    def __len__(self) -> int:
        return len(self._events)


@dataclass(frozen=True)
class HoleAnnotation:
    id: str
    x: float
    y: float
    diameter: float
    score: int
    confidence: float
    source: str
    needs_review: bool
    was_auto_detected: bool
    was_user_corrected: bool

    @classmethod
    def from_hole(cls, hole: Hole) -> "HoleAnnotation":
        return cls(
            id=hole.id,
            x=float(hole.position.x),
            y=float(hole.position.y),
            diameter=float(hole.radius * 2.0),
            score=int(hole.score),
            confidence=float(hole.confidence),
            source=hole.source.value,
            needs_review=bool(hole.needs_review),
            was_auto_detected=hole.source is not HoleSource.MANUAL_ADD,
            was_user_corrected=bool(hole.was_user_corrected),
        )


@dataclass(frozen=True)
class TrainingExport:
    session_id: str
    annotations: Tuple[HoleAnnotation, ...]
    events: Tuple[EditEvent, ...]
    adoptions: Tuple[AdoptionRecord, ...] = field(default_factory=tuple)
    image_size: Optional[Tuple[int, int]] = None

    @classmethod
    def build(cls, session_id: str, holes: Sequence[Hole], recorder: EditEventRecorder,
              image_size: Optional[Tuple[int, int]] = None) -> "TrainingExport":
        return cls(
            session_id=session_id,
            annotations=tuple(HoleAnnotation.from_hole(h) for h in holes),
            events=recorder.events,
            adoptions=recorder.adoptions,
            image_size=image_size,
        )

    def annotation_records(self) -> List[Dict[str, Any]]:
        return [dict(session_id=self.session_id, **asdict(a)) for a in self.annotations]

    def event_records(self) -> List[Dict[str, Any]]:
        rows = []
        for e in self.events:
            rows.append({
                "session_id": self.session_id,
                "sequence_number": e.sequence_number,
                "action": e.action.value,
                "hole_id": e.hole_id,
                "x": e.position.x,
                "y": e.position.y,
                "previous_x": e.previous_position.x if e.previous_position else None,
                "previous_y": e.previous_position.y if e.previous_position else None,
                "timestamp_offset": e.timestamp_offset,
                "drag_distance": e.drag_distance,
                "total_holes_at_time": e.total_holes_at_time,
            })
        return rows

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "image_size": list(self.image_size) if self.image_size else None,
            "annotations": self.annotation_records(),
            "events": [e.to_dict() for e in self.events],
            "adoptions": [a.to_dict() for a in self.adoptions],
        }


__all__ = ["EditEventRecorder", "HoleAnnotation", "TrainingExport"]
