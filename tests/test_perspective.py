from __future__ import annotations

from pathlib import Path

import cv2
import numpy as np
import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
import sys

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from targetscan.core.geometry import quad_to_pixels
from targetscan.core.perspective import (
    HIGH_QUALITY_CORRECTION_CONFIG,
    assess_perspective,
    correct_perspective,
    create_correction_config,
    crop_by_bounds,
    normalize_orientation,
    warp_by_quad,
)
from targetscan.core.types import Point2D, Quadrilateral


def _image(h: int = 64, w: int = 80) -> np.ndarray:
    rng = np.random.default_rng(7)
    return rng.integers(0, 255, size=(h, w, 3), dtype=np.uint8)


def test_rectangular_quad_is_a_plain_crop() -> None:
    img = _image()
    quad = Quadrilateral.from_rect(0.25, 0.25, 0.5, 0.5)

    res = correct_perspective(img, quad)
    assert res.method == "crop"
    assert res.crop_box == (20, 16, 60, 48)
    assert (res.width, res.height) == (40, 32)
    assert np.array_equal(res.image, img[16:48, 20:60])


def test_warp_of_axis_aligned_rectangle_matches_crop() -> None:
    img = _image()
    quad_px = quad_to_pixels(Quadrilateral.from_rect(0.25, 0.25, 0.5, 0.5), 80, 64)
    rect, Hm = warp_by_quad(img, quad_px, (40, 32))
    assert rect is not None and Hm is not None
    assert rect.shape == (32, 40, 3)
    crop, _ = crop_by_bounds(img, quad_px)
    diff = np.abs(rect.astype(np.int16) - crop.astype(np.int16))
    assert diff.max() <= 1


def test_keystoned_quad_is_warped() -> None:
    img = _image(120, 160)
    quad = Quadrilateral(
        top_left=Point2D(0.3, 0.1),
        top_right=Point2D(0.7, 0.1),
        bottom_left=Point2D(0.1, 0.9),
        bottom_right=Point2D(0.9, 0.9),
    )
    res = correct_perspective(img, quad)
    assert res.method == "perspective"
    assert res.homography is not None
    assert res.image.shape[:2] == (res.height, res.width)
    assert res.width == 128

    cropped = correct_perspective(img, quad, prefer_perspective=False)
    assert cropped.method == "crop"
    assert cropped.crop_box == (16, 12, 144, 108)


@pytest.mark.parametrize("quad", [
    Quadrilateral.from_rect(0.4, 0.4, 0.0, 0.0),
    Quadrilateral(
        top_left=Point2D(0.1, 0.1),
        top_right=Point2D(0.5, 0.5),
        bottom_left=Point2D(0.3, 0.3),
        bottom_right=Point2D(0.9, 0.9),
    ),
])
def test_degenerate_quad_falls_back_to_crop(quad: Quadrilateral) -> None:
    img = _image()
    res = correct_perspective(img, quad)
    assert res.method == "crop_fallback"
    assert res.image.size > 0
    assert res.crop_box is not None


def test_out_of_range_quad_is_clamped() -> None:
    img = _image()
    quad = Quadrilateral.from_rect(-0.5, -0.5, 2.0, 2.0)
    res = correct_perspective(img, quad)
    assert res.method == "crop"
    assert np.array_equal(res.image, img)


def test_normalize_orientation() -> None:
    a = np.array([[1, 2, 3], [4, 5, 6]], np.uint8)
    assert np.array_equal(normalize_orientation(a, 1), a)
    assert np.array_equal(normalize_orientation(a, 3), [[6, 5, 4], [3, 2, 1]])
    assert np.array_equal(normalize_orientation(a, 6), [[4, 1], [5, 2], [6, 3]])
    assert np.array_equal(normalize_orientation(a, 8), [[3, 6], [2, 5], [1, 4]])
    assert np.array_equal(normalize_orientation(a, 2), [[3, 2, 1], [6, 5, 4]])
    assert np.array_equal(normalize_orientation(a, 99), a)


def test_orientation_applied_before_correction() -> None:
    img = _image(40, 60)
    res = correct_perspective(img, Quadrilateral.full(), orientation=6)
    assert (res.width, res.height) == (40, 60)


def test_assess_perspective() -> None:
    assert assess_perspective(Quadrilateral.full(), 100, 100).severity == "negligible"

    slight = Quadrilateral(
        top_left=Point2D(0.05, 0.0), top_right=Point2D(0.95, 0.0),
        bottom_left=Point2D(0.0, 1.0), bottom_right=Point2D(1.0, 1.0),
    )
    a = assess_perspective(slight, 100, 100)
    assert a.severity == "minor"
    assert a.warning is None

    steep = Quadrilateral(
        top_left=Point2D(0.35, 0.0), top_right=Point2D(0.65, 0.0),
        bottom_left=Point2D(0.0, 1.0), bottom_right=Point2D(1.0, 1.0),
    )
    a = assess_perspective(steep, 100, 100)
    assert a.severity == "significant"
    assert a.warning is not None


def test_correction_config_factory() -> None:
    cfg = create_correction_config(right_angle_tol_deg=5.0)
    assert cfg.right_angle_tol_deg == 5.0
    assert HIGH_QUALITY_CORRECTION_CONFIG.warp_interp == cv2.INTER_CUBIC
    with pytest.raises(AttributeError):
        create_correction_config(no_such_field=1)
