# -*- coding: utf-8 -*-
"""Point/quad math shared by the corrector, ledger and analyzer."""

from __future__ import annotations

import math
from typing import Sequence, Tuple

import numpy as np

from .types import Point2D, Quadrilateral


def lerp(a: Point2D, b: Point2D, t: float) -> Point2D:
    return Point2D(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def distance(a: Point2D, b: Point2D) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def elliptical_distance(p: Point2D, center: Point2D, half_extent: Tuple[float, float]) -> float:
    """Distance from ``center`` measured in units of the ellipse half-axes (1.0 = on the rim)."""
    hw, hh = half_extent
    dx = (p.x - center.x) / hw
    dy = (p.y - center.y) / hh
    return math.sqrt(dx * dx + dy * dy)


def centroid(points: Sequence[Point2D]) -> Point2D:
    n = len(points)
    return Point2D(sum(p.x for p in points) / n, sum(p.y for p in points) / n)


# --------------------- quad helpers (pixel space) ---------------------
def order_quad(pts4):
    """Sort four arbitrary points into tl, tr, br, bl."""
    pts4 = np.asarray(pts4, np.float32)
    s = pts4.sum(1); d = np.diff(pts4, axis=1).reshape(-1)
    tl = pts4[np.argmin(s)]; br = pts4[np.argmax(s)]
    tr = pts4[np.argmin(d)]; bl = pts4[np.argmax(d)]
    return np.array([tl, tr, br, bl], np.float32)


def quad_to_pixels(quad: Quadrilateral, width: int, height: int) -> np.ndarray:
    """Pixel-edge coordinates of ``quad`` in clockwise (tl, tr, br, bl) order."""
    return np.array([[p.x * width, p.y * height] for p in quad.corners()], np.float64)


def edge_lengths(quad_px: np.ndarray) -> Tuple[float, float, float, float]:
    """Lengths of top, right, bottom, left edges."""
    q = np.asarray(quad_px, np.float64)
    top = float(np.linalg.norm(q[1] - q[0]))
    right = float(np.linalg.norm(q[2] - q[1]))
    bottom = float(np.linalg.norm(q[2] - q[3]))
    left = float(np.linalg.norm(q[3] - q[0]))
    return top, right, bottom, left


def corner_angles_deg(quad_px: np.ndarray) -> Tuple[float, float, float, float]:
    q = np.asarray(quad_px, np.float64)
    out = []
    for i in range(4):
        v1 = q[(i - 1) % 4] - q[i]
        v2 = q[(i + 1) % 4] - q[i]
        n1 = np.linalg.norm(v1); n2 = np.linalg.norm(v2)
        if n1 < 1e-9 or n2 < 1e-9:
            out.append(0.0)
            continue
        c = np.clip(np.dot(v1, v2) / (n1 * n2), -1.0, 1.0)
        out.append(float(np.degrees(np.arccos(c))))
    return tuple(out)


def polygon_area(quad_px: np.ndarray) -> float:
    q = np.asarray(quad_px, np.float64)
    x = q[:, 0]; y = q[:, 1]
    return float(0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


__all__ = [
    "lerp",
    "distance",
    "elliptical_distance",
    "centroid",
    "order_quad",
    "quad_to_pixels",
    "edge_lengths",
    "corner_angles_deg",
    "polygon_area",
]
