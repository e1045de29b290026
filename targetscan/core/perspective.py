# -*- coding: utf-8 -*-
"""
Perspective correction: user quadrilateral in the source photo -> upright rectangle.
Always returns an image; a degenerate or singular warp falls back to a bounding-box crop.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .geometry import corner_angles_deg, edge_lengths, polygon_area, quad_to_pixels
from .types import Quadrilateral


@dataclass
class CorrectionConfig:
    right_angle_tol_deg: float = 2.0
    side_ratio_tol: float = 0.02
    min_output_dim: int = 1
    min_warp_area_px: float = 1.0
    singular_eps: float = 1e-9
    warp_interp: int = cv2.INTER_LINEAR
    warp_border: int = cv2.BORDER_REPLICATE


def create_correction_config(**overrides) -> CorrectionConfig:
    """Create a CorrectionConfig with selective overrides."""
    cfg = CorrectionConfig()
    for key, value in overrides.items():
        if not hasattr(cfg, key):
            raise AttributeError(f"Unknown correction config field: {key}")
        setattr(cfg, key, value)
    return cfg


DEFAULT_CORRECTION_CONFIG = CorrectionConfig()

HIGH_QUALITY_CORRECTION_CONFIG = create_correction_config(warp_interp=cv2.INTER_CUBIC)


@dataclass
class CorrectionResult:
    image: np.ndarray
    width: int
    height: int
    method: str                                   # "crop" | "perspective" | "crop_fallback"
    homography: Optional[List[List[float]]] = None
    crop_box: Optional[Tuple[int, int, int, int]] = None   # x0, y0, x1, y1


@dataclass(frozen=True)
class PerspectiveAssessment:
    keystone_ratio: float

    @property
    def severity(self) -> str:
        if 0.95 < self.keystone_ratio < 1.05:
            return "negligible"
        if 0.85 < self.keystone_ratio < 1.15:
            return "minor"
        return "significant"

    @property
    def warning(self) -> Optional[str]:
        if self.severity == "significant":
            return "Target appears tilted. Hold camera directly above for best accuracy."
        return None


# --------------------- orientation ---------------------
def normalize_orientation(image: np.ndarray, orientation: int = 1) -> np.ndarray:
    """Rotate/flip pixel data so it matches an EXIF ``Orientation`` tag (1-8)."""
    if orientation in (None, 1):
        return image
    if orientation == 2:
        return np.ascontiguousarray(image[:, ::-1])
    if orientation == 3:
        return np.ascontiguousarray(np.rot90(image, 2))
    if orientation == 4:
        return np.ascontiguousarray(image[::-1, :])
    if orientation == 5:
        return np.ascontiguousarray(np.swapaxes(image, 0, 1))
    if orientation == 6:
        return np.ascontiguousarray(np.rot90(image, -1))
    if orientation == 7:
        return np.ascontiguousarray(np.rot90(np.swapaxes(image, 0, 1), 2))
    if orientation == 8:
        return np.ascontiguousarray(np.rot90(image, 1))
    logging.warning("[Perspective] unknown orientation tag %s, leaving pixels as-is", orientation)
    return image


# --------------------- quad checks ---------------------
def output_size(quad_px: np.ndarray) -> Tuple[int, int]:
    top, right, bottom, left = edge_lengths(quad_px)
    return int(round(max(top, bottom))), int(round(max(left, right)))


def is_rectangular(quad_px: np.ndarray, cfg: CorrectionConfig = DEFAULT_CORRECTION_CONFIG) -> bool:
    angles = corner_angles_deg(quad_px)
    if any(abs(a - 90.0) > cfg.right_angle_tol_deg for a in angles):
        return False
    top, right, bottom, left = edge_lengths(quad_px)
    for a, b in ((top, bottom), (left, right)):
        longest = max(a, b)
        if longest <= 0 or abs(a - b) / longest > cfg.side_ratio_tol:
            return False
    return True


def assess_perspective(quad: Quadrilateral, width: int, height: int) -> PerspectiveAssessment:
    top, _, bottom, _ = edge_lengths(quad_to_pixels(quad.clamped(), width, height))
    if bottom <= 1e-9:
        return PerspectiveAssessment(keystone_ratio=math.inf if top > 0 else 1.0)
    return PerspectiveAssessment(keystone_ratio=top / bottom)


# --------------------- crop / warp ---------------------
def crop_by_bounds(image: np.ndarray, quad_px: np.ndarray):
    h, w = image.shape[:2]
    if h == 0 or w == 0:
        return image.copy(), (0, 0, w, h)
    xs = quad_px[:, 0]; ys = quad_px[:, 1]
    x0 = int(np.clip(round(float(xs.min())), 0, w - 1))
    y0 = int(np.clip(round(float(ys.min())), 0, h - 1))
    x1 = int(np.clip(round(float(xs.max())), x0 + 1, w))
    y1 = int(np.clip(round(float(ys.max())), y0 + 1, h))
    return image[y0:y1, x0:x1].copy(), (x0, y0, x1, y1)


def warp_by_quad(image: np.ndarray, quad_px: np.ndarray, size: Tuple[int, int],
                 cfg: CorrectionConfig = DEFAULT_CORRECTION_CONFIG):
    """Resample the quad interior onto a ``size`` (W, H) rectangle.

    Corners are given as pixel edges; OpenCV addresses pixel centers, hence the
    half-pixel shift on both sides. Returns ``(None, None)`` when the projective
    transform cannot be solved.
    """
    W, H = size
    src = (np.asarray(quad_px, np.float64) - 0.5).astype(np.float32)
    dst = np.array([[-0.5, -0.5], [W - 0.5, -0.5], [W - 0.5, H - 0.5], [-0.5, H - 0.5]], np.float32)
    try:
        Hm = cv2.getPerspectiveTransform(src, dst)
    except cv2.error as exc:
        logging.warning("[Perspective] transform solve failed: %s", exc)
        return None, None
    if not np.all(np.isfinite(Hm)) or abs(float(np.linalg.det(Hm))) < cfg.singular_eps:
        return None, None
    rect = cv2.warpPerspective(image, Hm, (W, H), flags=cfg.warp_interp, borderMode=cfg.warp_border)
    return rect, Hm


def correct_perspective(image: np.ndarray, quad: Quadrilateral, prefer_perspective: bool = True,
                        orientation: int = 1,
                        cfg: CorrectionConfig = DEFAULT_CORRECTION_CONFIG) -> CorrectionResult:
    image = normalize_orientation(image, orientation)
    h, w = image.shape[:2]
    quad_px = quad_to_pixels(quad.clamped(), w, h)

    if not prefer_perspective or is_rectangular(quad_px, cfg):
        rect, box = crop_by_bounds(image, quad_px)
        return CorrectionResult(rect, rect.shape[1], rect.shape[0], "crop", crop_box=box)

    W, H = output_size(quad_px)
    if min(W, H) < cfg.min_output_dim or polygon_area(quad_px) < cfg.min_warp_area_px:
        logging.warning("[Perspective] degenerate quad (%dx%d), falling back to crop", W, H)
        rect, box = crop_by_bounds(image, quad_px)
        return CorrectionResult(rect, rect.shape[1], rect.shape[0], "crop_fallback", crop_box=box)

    rect, Hm = warp_by_quad(image, quad_px, (W, H), cfg)
    if rect is None:
        logging.warning("[Perspective] singular transform, falling back to crop")
        rect, box = crop_by_bounds(image, quad_px)
        return CorrectionResult(rect, rect.shape[1], rect.shape[0], "crop_fallback", crop_box=box)

    logging.debug("[Perspective] warped %dx%d -> %dx%d", w, h, W, H)
    return CorrectionResult(rect, W, H, "perspective", homography=np.asarray(Hm, np.float64).tolist())


__all__ = [
    "CorrectionConfig",
    "CorrectionResult",
    "DEFAULT_CORRECTION_CONFIG",
    "HIGH_QUALITY_CORRECTION_CONFIG",
    "PerspectiveAssessment",
    "assess_perspective",
    "correct_perspective",
    "create_correction_config",
    "crop_by_bounds",
    "is_rectangular",
    "normalize_orientation",
    "output_size",
    "warp_by_quad",
]
