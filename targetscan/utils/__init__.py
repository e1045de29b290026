# -*- coding: utf-8 -*-
"""Utility helpers shared by the scoring tools."""

from .images import ImageError, ImageReadResult, read_image_robust, read_orientation

__all__ = [
    "ImageError",
    "ImageReadResult",
    "read_image_robust",
    "read_orientation",
]
