from __future__ import annotations

import asyncio
from pathlib import Path

import cv2
import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
import sys

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from targetscan.core.calibration import TargetCalibration, estimate_calibration
from targetscan.core.detection import BlobHoleDetector, HoleDetector
from targetscan.core.ledger import SessionFinalizedError
from targetscan.core.session import ScanSession, SessionSnapshot, SessionState
from targetscan.core.types import EditAction, HoleCandidate, Point2D, Quadrilateral


def _oval_image() -> np.ndarray:
    img = np.full((200, 200, 3), 255, np.uint8)
    cv2.ellipse(img, (100, 100), (60, 70), 0, 0, 360, (0, 0, 0), -1)
    return img


class OneHole(HoleDetector):
    name = "one"

    def detect(self, image):
        return [HoleCandidate(Point2D(0.5, 0.5), 0.95, 0.02)]


def test_new_session_awaits_image() -> None:
    session = ScanSession(session_id="s1")
    assert session.state is SessionState.AWAITING_IMAGE
    assert session.image_size is None
    outcome = asyncio.run(session.run_detection(OneHole()))
    assert outcome.failure is not None
    assert len(session.holes) == 0


def test_apply_correction_commits_image_and_default_calibration() -> None:
    img = np.zeros((80, 100, 3), np.uint8)
    session = ScanSession()
    res = asyncio.run(session.apply_correction(img, Quadrilateral.full()))
    assert res.method == "crop"
    assert session.state is SessionState.REVIEWING
    assert session.image_size == (100, 80)
    assert session.correction is res
    assert session.calibration == TargetCalibration.default()


def test_estimate_calibration_finds_oval() -> None:
    calib = estimate_calibration(_oval_image())
    assert calib.center.x == pytest.approx(0.5, abs=0.02)
    assert calib.center.y == pytest.approx(0.5, abs=0.02)
    assert calib.half_extent[0] == pytest.approx(0.3, abs=0.02)
    assert calib.half_extent[1] == pytest.approx(0.35, abs=0.02)

    blank = np.full((100, 100), 255, np.uint8)
    assert estimate_calibration(blank) == TargetCalibration.default()


def test_from_capture_with_auto_calibration() -> None:
    session = asyncio.run(ScanSession.from_capture(_oval_image(), Quadrilateral.full(), auto_calibrate=True))
    assert session.calibration.half_extent[0] == pytest.approx(0.3, abs=0.02)


def test_cancelled_correction_leaves_session_unchanged() -> None:
    session = ScanSession()
    img = np.zeros((400, 400, 3), np.uint8)

    async def scenario():
        task = asyncio.ensure_future(session.apply_correction(img, Quadrilateral.full()))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())
    assert session.state is SessionState.AWAITING_IMAGE
    assert session.correction is None


def test_detection_then_edit_then_finalize() -> None:
    session = ScanSession(session_id="scan-1")
    asyncio.run(session.apply_correction(np.full((100, 100, 3), 255, np.uint8), Quadrilateral.full()))
    outcome = asyncio.run(session.run_detection(OneHole()))
    assert len(outcome.candidates) == 1
    extra = session.ledger.add(Point2D(0.6, 0.5))
    assert session.total() == 18

    export = session.training_export()
    assert export.session_id == "scan-1"
    assert len(export.annotations) == 2
    assert [e.action for e in export.events] == [EditAction.ADD]
    assert export.to_dict()["adoptions"][0]["candidate_count"] == 1

    snap = session.finalize()
    assert session.state is SessionState.FINALIZED
    assert snap.total == 18
    assert snap.pattern_summary.hole_count == 2
    assert session.finalize() is snap

    with pytest.raises(SessionFinalizedError):
        session.ledger.move(extra.id, Point2D(0.1, 0.1))
    with pytest.raises(SessionFinalizedError):
        asyncio.run(session.run_detection(OneHole()))
    with pytest.raises(SessionFinalizedError):
        asyncio.run(session.apply_correction(np.zeros((10, 10, 3), np.uint8), Quadrilateral.full()))


def test_snapshot_roundtrip_and_validation() -> None:
    session = ScanSession(session_id="snap")
    asyncio.run(session.apply_correction(np.full((60, 60, 3), 255, np.uint8), Quadrilateral.full()))
    session.ledger.add(Point2D(0.5, 0.5))
    session.ledger.add(Point2D(0.7, 0.55))
    snap = session.finalize()

    again = SessionSnapshot.from_dict(snap.to_dict())
    assert again == snap
    assert again.image_size == (60, 60)

    with pytest.raises(ValueError):
        SessionSnapshot.from_dict({"session_id": "x"})


def test_blob_detection_through_session() -> None:
    img = np.full((300, 300, 3), 255, np.uint8)
    cv2.circle(img, (150, 150), 6, (0, 0, 0), -1)
    session = ScanSession()
    asyncio.run(session.apply_correction(img, Quadrilateral.full()))
    outcome = asyncio.run(session.run_detection(BlobHoleDetector()))
    assert outcome.failure is None
    assert len(session.holes) == 1
    assert session.holes[0].score == 10


def test_session_ledger_shares_its_recorder() -> None:
    ticks = iter([0.0, 2.5])
    session = ScanSession(clock=lambda: next(ticks))
    assert session.ledger.recorder is session.recorder
    session.ledger.add(Point2D(0.5, 0.5))
    events = session.training_export().events
    assert len(events) == 1
    assert events[0].timestamp_offset == 2.5


def test_validate_reports_without_blocking_finalize() -> None:
    session = ScanSession(session_id="checked")
    asyncio.run(session.apply_correction(np.full((300, 300, 3), 255, np.uint8), Quadrilateral.full()))
    session.ledger.add(Point2D(0.5, 0.5))
    session.ledger.add(Point2D(0.505, 0.5))

    result = session.validate(expected_count=5)
    assert result.is_valid
    codes = {c.value for c in result.codes()}
    assert codes == {"possible_missed", "overlapping_shots"}

    snap = session.finalize()
    assert snap.validation.is_valid
    assert snap.validation.warnings == result.warnings
    assert SessionSnapshot.from_dict(snap.to_dict()).validation == snap.validation

    legacy = snap.to_dict()
    del legacy["validation"]
    assert SessionSnapshot.from_dict(legacy).validation.warnings == ()


def test_small_image_is_flagged_in_snapshot() -> None:
    session = ScanSession()
    asyncio.run(session.apply_correction(np.full((120, 300, 3), 255, np.uint8), Quadrilateral.full()))
    snap = session.finalize()
    assert not snap.validation.is_valid
    assert [e.code.value for e in snap.validation.errors] == ["image_too_small"]
