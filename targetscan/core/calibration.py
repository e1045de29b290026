# -*- coding: utf-8 -*-
"""Scoring-zone anchor (center + elliptical half-extent) and automatic estimation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import cv2
import numpy as np

from .types import Point2D

MIN_HALF_EXTENT = 0.05


@dataclass(frozen=True)
class TargetCalibration:
    """Center and half-extent of the outer scoring ellipse, normalized to the corrected image.

    Every instance is clamped on construction: center into [0, 1], each
    half-extent to at least ``MIN_HALF_EXTENT``.
    """

    center: Point2D = Point2D(0.5, 0.5)
    half_extent: Tuple[float, float] = (0.4, 0.45)

    def __post_init__(self):
        center = self.center if isinstance(self.center, Point2D) else Point2D(*self.center)
        w, h = self.half_extent
        object.__setattr__(self, "center", center.clamped())
        object.__setattr__(self, "half_extent", (max(MIN_HALF_EXTENT, float(w)), max(MIN_HALF_EXTENT, float(h))))

    @classmethod
    def create(cls, center: Point2D, width: float, height: float) -> "TargetCalibration":
        return cls(center=center, half_extent=(width, height))

    @classmethod
    def default(cls) -> "TargetCalibration":
        return cls()

    def with_center(self, center: Point2D) -> "TargetCalibration":
        return TargetCalibration.create(center, *self.half_extent)

    def with_half_extent(self, width: float, height: float) -> "TargetCalibration":
        return TargetCalibration.create(self.center, width, height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "center": self.center.to_dict(),
            "half_extent": {"width": float(self.half_extent[0]), "height": float(self.half_extent[1])},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TargetCalibration":
        ext = data["half_extent"]
        return cls.create(Point2D.from_dict(data["center"]), float(ext["width"]), float(ext["height"]))


DEFAULT_CALIBRATION = TargetCalibration()


def estimate_calibration(image: np.ndarray, fallback: TargetCalibration = DEFAULT_CALIBRATION,
                         min_size: float = 0.1, aspect_range: Tuple[float, float] = (0.4, 1.3),
                         shape_range: Tuple[float, float] = (0.7, 1.5)) -> TargetCalibration:
    """Look for the printed target oval in a corrected image.

    Takes the largest closed contour whose bounding box covers at least
    ``min_size`` of each image dimension, has a width/height ratio inside
    ``aspect_range`` and whose contour area is within ``shape_range`` of the
    area of its fitted ellipse. Returns ``fallback`` when nothing qualifies.
    """
    if image is None or image.size == 0:
        return fallback
    gray = image if image.ndim == 2 else cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
    if gray.dtype != np.uint8:
        gray = cv2.normalize(gray, None, 0, 255, cv2.NORM_MINMAX).astype(np.uint8)
    h, w = gray.shape
    g = cv2.GaussianBlur(gray, (0, 0), 1.5)
    _, th = cv2.threshold(g, 0, 255, cv2.THRESH_BINARY_INV + cv2.THRESH_OTSU)
    th = cv2.morphologyEx(th, cv2.MORPH_CLOSE, cv2.getStructuringElement(cv2.MORPH_ELLIPSE, (7, 7)))
    cnts, _ = cv2.findContours(th, cv2.RETR_LIST, cv2.CHAIN_APPROX_NONE)

    best: Optional[Tuple[float, TargetCalibration]] = None
    for cnt in cnts:
        if len(cnt) < 5:
            continue
        x, y, bw, bh = cv2.boundingRect(cnt)
        if bw < min_size * w or bh < min_size * h:
            continue
        if bw >= w - 2 and bh >= h - 2:
            continue  # frame border, not the target
        aspect = bw / float(max(1, bh))
        if not (aspect_range[0] < aspect < aspect_range[1]):
            continue
        (cx, cy), (ax1, ax2), _ = cv2.fitEllipse(cnt)
        ell_area = np.pi * 0.25 * ax1 * ax2
        if ell_area < 1.0:
            continue
        shape_ratio = cv2.contourArea(cnt) / ell_area
        if not (shape_range[0] < shape_ratio < shape_range[1]):
            continue
        area = float(bw * bh)
        if best is None or area > best[0]:
            calib = TargetCalibration.create(
                Point2D(cx / w, cy / h), 0.5 * bw / w, 0.5 * bh / h)
            best = (area, calib)

    if best is None:
        logging.info("[Calibration] no target oval found, using default calibration")
        return fallback
    logging.debug("[Calibration] estimated %s", best[1])
    return best[1]


__all__ = ["TargetCalibration", "DEFAULT_CALIBRATION", "MIN_HALF_EXTENT", "estimate_calibration"]
