# -*- coding: utf-8 -*-
"""Image I/O helpers used by the session tools and the CLI."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from targetscan.core.perspective import normalize_orientation

PathLike = Union[str, Path]

EXIF_ORIENTATION_TAG = 0x0112


class ImageError(str, Enum):
    NOT_FOUND = "not_found"
    UNDECODABLE = "undecodable"


@dataclass
class ImageReadResult:
    image: Optional[np.ndarray] = None
    error: Optional[ImageError] = None
    orientation: int = 1

    @property
    def ok(self) -> bool:
        return self.image is not None


def _exif_orientation(im) -> int:
    value = im.getexif().get(EXIF_ORIENTATION_TAG, 1)
    try:
        value = int(value)
    except (TypeError, ValueError):
        return 1
    return value if 1 <= value <= 8 else 1


def read_orientation(path: PathLike) -> int:
    """EXIF orientation tag of ``path`` (1 when absent or unreadable)."""
    try:
        with Image.open(path) as im:
            return _exif_orientation(im)
    except (OSError, UnidentifiedImageError):
        return 1


def read_image_robust(path: PathLike) -> ImageReadResult:
    """Read a BGR uint8 image with its pixels already upright.

    Parameters
    ----------
    path:
        Input filepath. Pillow is tried first because it exposes the EXIF
        orientation; OpenCV is the fallback for formats Pillow cannot open
        (OpenCV applies the orientation tag itself).

    Returns
    -------
    ImageReadResult
        ``image`` on success, otherwise ``error`` set to
        :class:`ImageError.NOT_FOUND` or :class:`ImageError.UNDECODABLE`.
    """

    fp = Path(path)
    if not fp.is_file():
        logging.warning("[Images] %s does not exist", fp)
        return ImageReadResult(error=ImageError.NOT_FOUND)

    try:
        with Image.open(fp) as im:
            orientation = _exif_orientation(im)
            rgb = np.array(im.convert("RGB"))
        bgr = cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)
        return ImageReadResult(image=normalize_orientation(bgr, orientation), orientation=orientation)
    except Exception as exc:  # pylint: disable=broad-except
        logging.warning("[Images] Pillow failed to read %s: %s", fp, exc)

    img = cv2.imread(str(fp), cv2.IMREAD_COLOR)
    if img is not None and img.size > 0:
        return ImageReadResult(image=img)

    logging.warning("[Images] could not decode %s", fp)
    return ImageReadResult(error=ImageError.UNDECODABLE)


__all__ = ["ImageError", "ImageReadResult", "read_image_robust", "read_orientation"]
