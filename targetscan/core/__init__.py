from .types import (
	Corner,
	EditAction,
	EditEvent,
	Hole,
	HoleCandidate,
	HoleSource,
	Point2D,
	Quadrilateral,
)
from .target_spec import TETRATHLON_TARGET, TargetSpec
from .calibration import DEFAULT_CALIBRATION, TargetCalibration, estimate_calibration
from .scoring import CompetitionScore, aggregate_cards, card_total, score, tetrathlon_points
from .perspective import (
	CorrectionConfig,
	CorrectionResult,
	DEFAULT_CORRECTION_CONFIG,
	HIGH_QUALITY_CORRECTION_CONFIG,
	assess_perspective,
	correct_perspective,
	create_correction_config,
)
from .recorder import EditEventRecorder, TrainingExport
from .ledger import HoleLedger, SessionFinalizedError
from .detection import (
	BlobHoleDetector,
	DEFAULT_DETECTOR_CONFIG,
	DetectError,
	DetectionAdapter,
	DetectionOutcome,
	DetectorConfig,
	HIGH_PRECISION_DETECTOR_CONFIG,
	HIGH_RECALL_DETECTOR_CONFIG,
	HoleDetector,
	create_detector_config,
)
from .pattern import PatternSummary, analyze
from .validation import IssueCode, ValidationIssue, ValidationResult, validate_hole, validate_holes, validate_scan
from .session import ScanSession, SessionSnapshot, SessionState

__all__ = [
	"BlobHoleDetector",
	"CompetitionScore",
	"Corner",
	"CorrectionConfig",
	"CorrectionResult",
	"DEFAULT_CALIBRATION",
	"DEFAULT_CORRECTION_CONFIG",
	"DEFAULT_DETECTOR_CONFIG",
	"DetectError",
	"DetectionAdapter",
	"DetectionOutcome",
	"DetectorConfig",
	"EditAction",
	"EditEvent",
	"EditEventRecorder",
	"HIGH_PRECISION_DETECTOR_CONFIG",
	"HIGH_QUALITY_CORRECTION_CONFIG",
	"HIGH_RECALL_DETECTOR_CONFIG",
	"Hole",
	"HoleCandidate",
	"HoleDetector",
	"HoleLedger",
	"HoleSource",
	"IssueCode",
	"PatternSummary",
	"Point2D",
	"Quadrilateral",
	"ScanSession",
	"SessionFinalizedError",
	"SessionSnapshot",
	"SessionState",
	"TETRATHLON_TARGET",
	"TargetCalibration",
	"TargetSpec",
	"TrainingExport",
	"ValidationIssue",
	"ValidationResult",
	"aggregate_cards",
	"analyze",
	"assess_perspective",
	"card_total",
	"correct_perspective",
	"create_correction_config",
	"create_detector_config",
	"estimate_calibration",
	"score",
	"tetrathlon_points",
	"validate_hole",
	"validate_holes",
	"validate_scan",
]
