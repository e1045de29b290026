# -*- coding: utf-8 -*-
"""
Hole-candidate detection: a pluggable detector interface, a classical blob
detector that implements it, and the adapter that runs a detector off the
caller's thread and folds its output into a HoleLedger.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .types import HoleCandidate, Point2D

LOW_CONFIDENCE = "Low confidence score"
UNUSUAL_SIZE = "Unusual hole size"


class DetectError(Exception):
    """Raised by a HoleDetector that could not produce candidates."""


@dataclass
class DetectorConfig:
    # Expected hole size, normalized to the shorter image side
    expected_radius: float = 0.02
    size_tolerance_min: float = 0.33
    size_tolerance_max: float = 3.0

    # Classification
    auto_accept_threshold: float = 0.85

    # Preprocessing
    clahe_clip_limit: float = 2.0
    clahe_tile_grid: Tuple[int, int] = (8, 8)
    blur_kernel: Tuple[int, int] = (3, 3)

    # Blob detector
    blob_dark: bool = True
    blob_min_circularity: float = 0.45
    blob_min_convexity: float = 0.45
    blob_min_inertia: float = 0.04
    blob_min_threshold: float = 5.0
    blob_max_threshold: float = 220.0
    blob_threshold_step: float = 5.0
    blob_min_dist: float = 10.0

    # Refinement
    refine_win_scale: float = 3.0
    refine_win_min: float = 12.0
    refine_segment_ksize: int = 3
    refine_open_kernel: Tuple[int, int] = (3, 3)


def create_detector_config(**overrides) -> DetectorConfig:
    """Create a DetectorConfig with selective overrides for convenient tuning."""
    cfg = DetectorConfig()
    for key, value in overrides.items():
        if not hasattr(cfg, key):
            raise AttributeError(f"Unknown detector config field: {key}")
        setattr(cfg, key, value)
    return cfg


DEFAULT_DETECTOR_CONFIG = DetectorConfig()

HIGH_RECALL_DETECTOR_CONFIG = create_detector_config(
    auto_accept_threshold=0.80,
    blob_min_circularity=0.35,
    blob_min_convexity=0.35,
    blob_threshold_step=4.0,
)

HIGH_PRECISION_DETECTOR_CONFIG = create_detector_config(
    auto_accept_threshold=0.90,
    blob_min_circularity=0.60,
)


# --------------------- detector interface ---------------------
class HoleDetector(ABC):
    """Anything that turns a corrected target image into hole candidates.

    ``detect`` may be a plain or an ``async`` method. It raises DetectError (or
    anything else) on failure; the adapter treats failure as "no candidates".
    """

    name = "detector"

    @abstractmethod
    def detect(self, image: np.ndarray) -> List[HoleCandidate]:
        raise NotImplementedError


# --------------------- blob detector ---------------------
def make_blob_detector(cfg: DetectorConfig, min_area: float, max_area: float):
    p = cv2.SimpleBlobDetector_Params()
    p.minThreshold = float(cfg.blob_min_threshold)
    p.maxThreshold = float(cfg.blob_max_threshold)
    p.thresholdStep = float(cfg.blob_threshold_step)
    p.filterByArea = True; p.minArea = float(min_area); p.maxArea = float(max_area)
    p.filterByCircularity = True; p.minCircularity = float(cfg.blob_min_circularity)
    p.filterByInertia = True; p.minInertiaRatio = float(cfg.blob_min_inertia)
    p.filterByConvexity = True; p.minConvexity = float(cfg.blob_min_convexity)
    p.filterByColor = True; p.blobColor = 0 if cfg.blob_dark else 255
    p.minDistBetweenBlobs = float(cfg.blob_min_dist)
    return cv2.SimpleBlobDetector_create(p)


def segment_component(patch, seed, cfg: DetectorConfig = DEFAULT_DETECTOR_CONFIG):
    """Outer contour of the dark component under ``seed`` (or nearest to it)."""
    ksize = max(1, int(cfg.refine_segment_ksize))
    if ksize % 2 == 0:
        ksize += 1
    g = cv2.GaussianBlur(patch, (ksize, ksize), 0)
    mode = cv2.THRESH_BINARY_INV if cfg.blob_dark else cv2.THRESH_BINARY
    _, th = cv2.threshold(g, 0, 255, mode + cv2.THRESH_OTSU)
    kernel_size = tuple(int(max(1, k)) for k in cfg.refine_open_kernel)
    kernel_size = tuple(k + (k % 2 == 0) for k in kernel_size)
    th = cv2.morphologyEx(th, cv2.MORPH_OPEN,
                          cv2.getStructuringElement(cv2.MORPH_ELLIPSE, kernel_size), 1)
    H, W = th.shape
    sx = int(np.clip(round(seed[0]), 0, W - 1)); sy = int(np.clip(round(seed[1]), 0, H - 1))
    num, lab, _, _ = cv2.connectedComponentsWithStats(th, 8)
    if num <= 1:
        return None
    lbl = lab[sy, sx]
    if lbl == 0:
        ys, xs = np.nonzero(th)
        if len(xs) == 0:
            return None
        j = int(np.argmin((xs - sx) ** 2 + (ys - sy) ** 2))
        lbl = lab[ys[j], xs[j]]
    mask = np.zeros_like(th); mask[lab == lbl] = 255
    cnts, _ = cv2.findContours(mask, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    if not cnts:
        return None
    return max(cnts, key=cv2.contourArea)


def circularity(cnt) -> float:
    area = float(cv2.contourArea(cnt))
    peri = float(cv2.arcLength(cnt, True))
    if peri < 1e-6:
        return 0.0
    return float(min(1.0, 4.0 * np.pi * area / (peri * peri)))


class BlobHoleDetector(HoleDetector):
    """Dark-blob detector: CLAHE + SimpleBlobDetector, refined per blob on a local patch.

    Confidence is the circularity of the refined contour.
    """

    name = "blob"

    def __init__(self, config: DetectorConfig = DEFAULT_DETECTOR_CONFIG):
        self.config = config

    def _prepare(self, image: np.ndarray) -> np.ndarray:
        cfg = self.config
        if image is None or image.size == 0:
            raise DetectError("empty image")
        gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        if gray.dtype != np.uint8:
            gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
        tile_grid = tuple(max(1, int(round(v))) for v in cfg.clahe_tile_grid)
        clahe = cv2.createCLAHE(clipLimit=cfg.clahe_clip_limit, tileGridSize=tile_grid)
        bx, by = (int(k) + (int(k) % 2 == 0) for k in cfg.blur_kernel)
        return cv2.GaussianBlur(clahe.apply(gray), (bx, by), 0)

    def detect(self, image: np.ndarray) -> List[HoleCandidate]:
        cfg = self.config
        pre = self._prepare(image)
        h, w = pre.shape
        short = float(min(h, w))
        r_exp = cfg.expected_radius * short
        r_lo = r_exp * cfg.size_tolerance_min
        r_hi = r_exp * cfg.size_tolerance_max
        det = make_blob_detector(cfg, np.pi * r_lo * r_lo, np.pi * r_hi * r_hi)
        kps = det.detect(pre)
        logging.debug("[Detect] %d raw blobs (r %.1f-%.1f px)", len(kps), r_lo, r_hi)

        out: List[HoleCandidate] = []
        for kp in kps:
            x0, y0 = kp.pt
            r0 = kp.size * 0.5
            win = int(max(cfg.refine_win_min, cfg.refine_win_scale * r0))
            x1 = max(0, int(x0 - win)); x2 = min(w, int(x0 + win) + 1)
            y1 = max(0, int(y0 - win)); y2 = min(h, int(y0 + win) + 1)
            cnt = segment_component(pre[y1:y2, x1:x2], (x0 - x1, y0 - y1), cfg)
            cx, cy, r, conf = x0, y0, r0, 0.5
            if cnt is not None and len(cnt) >= 5:
                m = cv2.moments(cnt)
                if abs(m["m00"]) > 1e-6:
                    cx = x1 + m["m10"] / m["m00"]
                    cy = y1 + m["m01"] / m["m00"]
                    pts = cnt.reshape(-1, 2).astype(np.float32) + np.array([x1, y1], np.float32)
                    r = float(np.median(np.hypot(pts[:, 0] - cx, pts[:, 1] - cy)))
                    conf = circularity(cnt)
            out.append(HoleCandidate(
                position=Point2D(float(cx) / w, float(cy) / h),
                confidence=float(conf),
                radius=float(r) / short,
                debug={"blob_size": float(kp.size)},
            ))
        return out


# --------------------- classification ---------------------
def classify_candidate(cand: HoleCandidate, cfg: DetectorConfig = DEFAULT_DETECTOR_CONFIG) -> HoleCandidate:
    """Attach a review reason when a candidate is not safe to auto-accept."""
    if cand.flagged_reason:
        return cand
    if cand.confidence < cfg.auto_accept_threshold:
        return replace(cand, flagged_reason=LOW_CONFIDENCE)
    lo = cfg.expected_radius * cfg.size_tolerance_min
    hi = cfg.expected_radius * cfg.size_tolerance_max
    if not (lo <= cand.radius <= hi):
        return replace(cand, flagged_reason=UNUSUAL_SIZE)
    return cand


@dataclass
class DetectionOutcome:
    candidates: List[HoleCandidate] = field(default_factory=list)
    detector: str = ""
    failure: Optional[str] = None

    @property
    def accepted(self) -> List[HoleCandidate]:
        return [c for c in self.candidates if c.flagged_reason is None]

    @property
    def flagged(self) -> List[HoleCandidate]:
        return [c for c in self.candidates if c.flagged_reason is not None]


class DetectionAdapter:
    """Runs a HoleDetector asynchronously and classifies what it returns."""

    def __init__(self, detector: HoleDetector, config: DetectorConfig = DEFAULT_DETECTOR_CONFIG):
        self.detector = detector
        self.config = config

    async def detect(self, image: np.ndarray) -> DetectionOutcome:
        name = getattr(self.detector, "name", type(self.detector).__name__)
        try:
            if inspect.iscoroutinefunction(self.detector.detect):
                raw = await self.detector.detect(image)
            else:
                raw = await asyncio.to_thread(self.detector.detect, image)
        except DetectError as exc:
            logging.warning("[Detect] %s failed: %s", name, exc)
            return DetectionOutcome(detector=name, failure=str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            logging.warning("[Detect] %s raised %s: %s", name, type(exc).__name__, exc)
            return DetectionOutcome(detector=name, failure=f"{type(exc).__name__}: {exc}")

        candidates = [classify_candidate(c, self.config) for c in (raw or [])]
        outcome = DetectionOutcome(candidates=candidates, detector=name)
        logging.info("[Detect] %s: %d candidates, %d flagged",
                     name, len(candidates), len(outcome.flagged))
        return outcome

    async def populate(self, ledger, image: np.ndarray) -> DetectionOutcome:
        """Detect and adopt into ``ledger``.

        Nothing is adopted if the task is cancelled or the ledger was frozen meanwhile.
        """
        outcome = await self.detect(image)
        if ledger.frozen:
            logging.warning("[Detect] ledger finalized during detection, %d candidates dropped",
                            len(outcome.candidates))
            return outcome
        if outcome.candidates:
            ledger.adopt_candidates(outcome.candidates, detector=outcome.detector)
        return outcome


__all__ = [
    "BlobHoleDetector",
    "DEFAULT_DETECTOR_CONFIG",
    "DetectError",
    "DetectionAdapter",
    "DetectionOutcome",
    "DetectorConfig",
    "HIGH_PRECISION_DETECTOR_CONFIG",
    "HIGH_RECALL_DETECTOR_CONFIG",
    "HoleDetector",
    "LOW_CONFIDENCE",
    "UNUSUAL_SIZE",
    "classify_candidate",
    "create_detector_config",
    "make_blob_detector",
    "segment_component",
]
