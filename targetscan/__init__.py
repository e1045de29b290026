# -*- coding: utf-8 -*-
"""Photo-based scoring of tetrathlon pistol target cards."""

__version__ = "0.1.0"
