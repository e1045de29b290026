# -*- coding: utf-8 -*-
"""
HoleLedger: the authoritative set of marked holes for one scan.

Every hole score is derived from the current calibration; there is no way to set
one directly. All writes go through a single lock so the re-score + re-sort
step is never observed half done.
"""
from __future__ import annotations

import itertools
import logging
import threading
import uuid
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .calibration import TargetCalibration
from .geometry import distance
from .recorder import EditEventRecorder
from .scoring import score
from .types import EditAction, Hole, HoleCandidate, HoleSource, Point2D


class SessionFinalizedError(RuntimeError):
    """Raised when a finalized (read-only) ledger is asked to change."""


def _new_id() -> str:
    return uuid.uuid4().hex


class HoleLedger:
    def __init__(self, calibration: Optional[TargetCalibration] = None,
                 recorder: Optional[EditEventRecorder] = None,
                 id_factory: Callable[[], str] = _new_id):
        self._lock = threading.RLock()
        self._calibration = calibration if calibration is not None else TargetCalibration.default()
        self._recorder = recorder if recorder is not None else EditEventRecorder()
        self._new_id = id_factory
        self._holes: List[Hole] = []
        self._order: Dict[str, int] = {}
        self._counter = itertools.count()
        self._frozen = False

    # ---- read side ----
    @property
    def calibration(self) -> TargetCalibration:
        return self._calibration

    @property
    def recorder(self) -> EditEventRecorder:
        return self._recorder

    @property
    def holes(self) -> Tuple[Hole, ...]:
        with self._lock:
            return tuple(self._holes)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def view(self) -> Tuple[Tuple[Hole, ...], TargetCalibration]:
        """Holes and calibration read together under the write lock."""
        with self._lock:
            return tuple(self._holes), self._calibration

    def get(self, hole_id: str) -> Optional[Hole]:
        with self._lock:
            idx = self._index(hole_id)
            return None if idx is None else self._holes[idx]

    def __len__(self) -> int:
        with self._lock:
            return len(self._holes)

    def __iter__(self):
        return iter(self.holes)

    # ---- internals ----
    def _index(self, hole_id: str) -> Optional[int]:
        for i, h in enumerate(self._holes):
            if h.id == hole_id:
                return i
        return None

    def _check_writable(self) -> None:
        if self._frozen:
            raise SessionFinalizedError("ledger is finalized; holes can no longer change")

    def _resort(self) -> None:
        self._holes.sort(key=lambda h: (-h.score, self._order[h.id]))

    def _insert(self, hole: Hole) -> None:
        self._order[hole.id] = next(self._counter)
        self._holes.append(hole)

    # ---- user edits ----
    def add(self, position: Point2D) -> Hole:
        with self._lock:
            self._check_writable()
            p = position.clamped()
            hole = Hole(id=self._new_id(), position=p, score=score(p, self._calibration),
                        confidence=1.0, source=HoleSource.MANUAL_ADD)
            self._insert(hole)
            self._resort()
            self._recorder.record(EditAction.ADD, hole.id, p, len(self._holes))
            return hole

    def move(self, hole_id: str, new_position: Point2D) -> Optional[Hole]:
        with self._lock:
            self._check_writable()
            idx = self._index(hole_id)
            if idx is None:
                return None
            old = self._holes[idx]
            p = new_position.clamped()
            moved = replace(old, position=p, score=score(p, self._calibration),
                            was_user_corrected=old.was_user_corrected or old.source is not HoleSource.MANUAL_ADD)
            self._holes[idx] = moved
            self._resort()
            self._recorder.record(EditAction.MOVE, hole_id, p, len(self._holes),
                                  previous_position=old.position,
                                  drag_distance=distance(old.position, p))
            return moved

    def delete(self, hole_id: str) -> Optional[Hole]:
        with self._lock:
            self._check_writable()
            idx = self._index(hole_id)
            if idx is None:
                return None
            removed = self._holes.pop(idx)
            del self._order[hole_id]
            self._recorder.record(EditAction.DELETE, hole_id, removed.position, len(self._holes))
            return removed

    def confirm(self, hole_id: str) -> Optional[Hole]:
        """Accept a flagged detector hole as-is (clears its review flag)."""
        with self._lock:
            self._check_writable()
            idx = self._index(hole_id)
            if idx is None:
                return None
            hole = replace(self._holes[idx], needs_review=False)
            self._holes[idx] = hole
            self._recorder.record(EditAction.CONFIRM, hole_id, hole.position, len(self._holes))
            return hole

    # ---- calibration ----
    def recalibrate(self, calibration: TargetCalibration) -> None:
        """Swap calibration and re-score every hole. Not an edit, so nothing is logged."""
        with self._lock:
            self._check_writable()
            rescored = [replace(h, score=score(h.position, calibration)) for h in self._holes]
            self._calibration = calibration
            self._holes = rescored
            self._resort()

    def set_center(self, center: Point2D) -> None:
        with self._lock:
            self.recalibrate(self._calibration.with_center(center))

    def set_half_extent(self, width: float, height: float) -> None:
        with self._lock:
            self.recalibrate(self._calibration.with_half_extent(width, height))

    def reset_calibration(self) -> None:
        self.recalibrate(TargetCalibration.default())

    # ---- detector output ----
    def adopt_candidates(self, candidates: Iterable[HoleCandidate], detector: str = "") -> List[Hole]:
        """Fold classified detector candidates in as provisional holes.

        A candidate carrying a ``flagged_reason`` becomes a flagged hole awaiting
        review. Adoption is logged in the recorder's adoption log only.
        """
        candidates = list(candidates)
        with self._lock:
            self._check_writable()
            adopted = []
            for cand in candidates:
                p = cand.position.clamped()
                flagged = cand.flagged_reason is not None
                hole = Hole(
                    id=self._new_id(),
                    position=p,
                    score=score(p, self._calibration),
                    confidence=min(1.0, max(0.0, float(cand.confidence))),
                    radius=float(cand.radius),
                    needs_review=flagged,
                    review_reason=cand.flagged_reason,
                    source=HoleSource.DETECTOR_FLAGGED if flagged else HoleSource.DETECTOR_ACCEPTED,
                )
                self._insert(hole)
                adopted.append(hole)
            self._resort()
            n_flagged = sum(1 for h in adopted if h.needs_review)
            self._recorder.record_adoption(len(adopted), len(adopted) - n_flagged, n_flagged, detector)
            logging.info("[Ledger] adopted %d candidates (%d flagged)", len(adopted), n_flagged)
            return adopted

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True


__all__ = ["HoleLedger", "SessionFinalizedError"]
