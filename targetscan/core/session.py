# -*- coding: utf-8 -*-
"""
ScanSession: one corrected target photo, its calibration, its hole ledger and
edit log, from correction until finalize().

Correction and detection are coroutines that push the heavy lifting onto a
worker thread and only touch session state once that work has returned, so a
cancelled task leaves the session exactly as it was.
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import numpy as np

from .calibration import TargetCalibration, estimate_calibration
from .detection import DEFAULT_DETECTOR_CONFIG, DetectionAdapter, DetectionOutcome, DetectorConfig, HoleDetector
from .ledger import HoleLedger, SessionFinalizedError
from .pattern import PatternSummary, analyze
from .perspective import DEFAULT_CORRECTION_CONFIG, CorrectionConfig, CorrectionResult, correct_perspective
from .recorder import EditEventRecorder, TrainingExport
from .scoring import card_total
from .target_spec import TETRATHLON_TARGET
from .types import Hole, Quadrilateral
from .validation import VALID, ValidationResult, validate_scan

SNAPSHOT_VERSION = 1


class SessionState(str, Enum):
    AWAITING_IMAGE = "awaiting_image"
    REVIEWING = "reviewing"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class SessionSnapshot:
    """Serializable, read-only record of a finalized scan."""

    session_id: str
    holes: Tuple[Hole, ...]
    calibration: TargetCalibration
    pattern_summary: PatternSummary
    image_size: Optional[Tuple[int, int]] = None
    validation: ValidationResult = VALID

    @property
    def total(self) -> int:
        return card_total(self.holes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SNAPSHOT_VERSION,
            "session_id": self.session_id,
            "image_size": list(self.image_size) if self.image_size else None,
            "holes": [h.to_dict() for h in self.holes],
            "calibration": self.calibration.to_dict(),
            "pattern_summary": self.pattern_summary.to_dict(),
            "validation": self.validation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionSnapshot":
        try:
            size = data.get("image_size")
            return cls(
                session_id=str(data["session_id"]),
                holes=tuple(Hole.from_dict(h) for h in data["holes"]),
                calibration=TargetCalibration.from_dict(data["calibration"]),
                pattern_summary=PatternSummary.from_dict(data["pattern_summary"]),
                image_size=(int(size[0]), int(size[1])) if size else None,
                validation=ValidationResult.from_dict(data.get("validation") or {}),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"malformed session snapshot: {exc}") from exc


class ScanSession:
    def __init__(self, session_id: Optional[str] = None, clock=time.monotonic,
                 correction_config: CorrectionConfig = DEFAULT_CORRECTION_CONFIG,
                 detector_config: DetectorConfig = DEFAULT_DETECTOR_CONFIG):
        self.session_id = session_id or uuid.uuid4().hex
        self.correction_config = correction_config
        self.detector_config = detector_config
        self.recorder = EditEventRecorder(clock=clock)
        self.ledger = HoleLedger(recorder=self.recorder)
        self._image: Optional[np.ndarray] = None
        self._correction: Optional[CorrectionResult] = None
        self._snapshot: Optional[SessionSnapshot] = None

    # ---- state ----
    @property
    def state(self) -> SessionState:
        if self._snapshot is not None:
            return SessionState.FINALIZED
        if self._image is None:
            return SessionState.AWAITING_IMAGE
        return SessionState.REVIEWING

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def correction(self) -> Optional[CorrectionResult]:
        return self._correction

    @property
    def calibration(self) -> TargetCalibration:
        return self.ledger.calibration

    @property
    def holes(self) -> Tuple[Hole, ...]:
        return self.ledger.holes

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        if self._image is None:
            return None
        return int(self._image.shape[1]), int(self._image.shape[0])

    def _check_open(self) -> None:
        if self._snapshot is not None:
            raise SessionFinalizedError(f"session {self.session_id} is finalized")

    # ---- async stages ----
    async def apply_correction(self, source: np.ndarray, quad: Quadrilateral,
                               prefer_perspective: bool = True, orientation: int = 1,
                               auto_calibrate: bool = False) -> CorrectionResult:
        self._check_open()
        cfg = self.correction_config

        def _work():
            res = correct_perspective(source, quad, prefer_perspective=prefer_perspective,
                                      orientation=orientation, cfg=cfg)
            calib = estimate_calibration(res.image) if auto_calibrate else TargetCalibration.default()
            return res, calib

        result, calibration = await asyncio.to_thread(_work)
        self._check_open()
        self._image = result.image
        self._correction = result
        self.ledger.recalibrate(calibration)
        logging.info("[Session] %s corrected via %s -> %dx%d",
                     self.session_id, result.method, result.width, result.height)
        return result

    async def run_detection(self, detector: HoleDetector,
                            config: Optional[DetectorConfig] = None) -> DetectionOutcome:
        self._check_open()
        if self._image is None:
            return DetectionOutcome(detector=getattr(detector, "name", ""), failure="no corrected image")
        adapter = DetectionAdapter(detector, config or self.detector_config)
        return await adapter.populate(self.ledger, self._image)

    @classmethod
    async def from_capture(cls, source: np.ndarray, quad: Quadrilateral, prefer_perspective: bool = True,
                           orientation: int = 1, auto_calibrate: bool = False, **kwargs) -> "ScanSession":
        session = cls(**kwargs)
        await session.apply_correction(source, quad, prefer_perspective=prefer_perspective,
                                       orientation=orientation, auto_calibrate=auto_calibrate)
        return session

    # ---- derived views ----
    def pattern_summary(self) -> PatternSummary:
        holes, calibration = self.ledger.view()
        return analyze(holes, calibration)

    def total(self) -> int:
        return card_total(self.ledger.holes)

    def validate(self, expected_count: Optional[int] = None) -> ValidationResult:
        """Warnings and errors for the current holes; never raises on bad data."""
        holes, calibration = self.ledger.view()
        return validate_scan(self.image_size, holes, calibration, expected_count)

    def training_export(self) -> TrainingExport:
        return TrainingExport.build(self.session_id, self.ledger.holes, self.recorder, self.image_size)

    # ---- finalize ----
    def finalize(self) -> SessionSnapshot:
        """Freeze the ledger and return the persistence snapshot. Idempotent."""
        if self._snapshot is not None:
            return self._snapshot
        self.ledger.freeze()
        holes, calibration = self.ledger.view()
        self._snapshot = SessionSnapshot(
            session_id=self.session_id,
            holes=holes,
            calibration=calibration,
            pattern_summary=analyze(holes, calibration),
            image_size=self.image_size,
            validation=validate_scan(self.image_size, holes, calibration,
                                     expected_count=TETRATHLON_TARGET.shots_per_card),
        )
        logging.info("[Session] %s finalized with %d holes, total %d",
                     self.session_id, len(self._snapshot.holes), self._snapshot.total)
        for issue in self._snapshot.validation.errors:
            logging.warning("[Session] %s validation error: %s", self.session_id, issue.message)
        return self._snapshot


__all__ = ["ScanSession", "SessionSnapshot", "SessionState", "SNAPSHOT_VERSION"]
