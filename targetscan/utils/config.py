# -*- coding: utf-8 -*-
"""YAML overrides for the correction and detector configs.

A config file looks like::

    correction:
      warp_interp: 2          # cv2.INTER_CUBIC
    detector:
      auto_accept_threshold: 0.9
      clahe_tile_grid: [8, 8]

Unknown keys raise ``AttributeError`` from the config factories.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from targetscan.core.detection import DetectorConfig, create_detector_config
from targetscan.core.perspective import CorrectionConfig, create_correction_config

PathLike = Union[str, Path]


def _section(data: Mapping[str, Any], key: str) -> Dict[str, Any]:
    sec = data.get(key) or {}
    if not isinstance(sec, Mapping):
        raise ValueError(f"config section '{key}' must be a mapping, got {type(sec).__name__}")
    out = {}
    for k, v in sec.items():
        # YAML has no tuples; the configs store kernel sizes and grids as tuples
        out[str(k)] = tuple(v) if isinstance(v, list) else v
    return out


def configs_from_dict(data: Optional[Mapping[str, Any]]) -> Tuple[CorrectionConfig, DetectorConfig]:
    data = data or {}
    if not isinstance(data, Mapping):
        raise ValueError("config document must be a mapping")
    return (
        create_correction_config(**_section(data, "correction")),
        create_detector_config(**_section(data, "detector")),
    )


def load_config_file(path: PathLike) -> Tuple[CorrectionConfig, DetectorConfig]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    return configs_from_dict(data)


__all__ = ["configs_from_dict", "load_config_file"]
