# -*- coding: utf-8 -*-
"""File writers for finalized scans: JSON snapshots and CSV training tables."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

import pandas as pd

from targetscan.core.recorder import TrainingExport
from targetscan.core.session import SessionSnapshot

PathLike = Union[str, Path]

ANNOTATION_COLUMNS = [
    "session_id", "id", "x", "y", "diameter", "score", "confidence",
    "source", "needs_review", "was_auto_detected", "was_user_corrected",
]
EVENT_COLUMNS = [
    "session_id", "sequence_number", "action", "hole_id", "x", "y",
    "previous_x", "previous_y", "timestamp_offset", "drag_distance", "total_holes_at_time",
]


def write_training_table(export: TrainingExport, path: PathLike,
                         events_path: Optional[PathLike] = None) -> pd.DataFrame:
    """Write one CSV row per hole; optionally the edit log to ``events_path``."""
    df = pd.DataFrame(export.annotation_records(), columns=ANNOTATION_COLUMNS)
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logging.info("[Export] %d annotations -> %s", len(df), path)
    if events_path is not None:
        ev = pd.DataFrame(export.event_records(), columns=EVENT_COLUMNS)
        Path(events_path).parent.mkdir(parents=True, exist_ok=True)
        ev.to_csv(events_path, index=False)
        logging.info("[Export] %d edit events -> %s", len(ev), events_path)
    return df


def write_snapshot(snapshot: SessionSnapshot, path: PathLike) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(snapshot.to_dict(), f, ensure_ascii=False, indent=2)


def read_snapshot(path: PathLike) -> SessionSnapshot:
    """Load a snapshot written by :func:`write_snapshot`.

    Raises ``ValueError`` for content that is not a snapshot.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}: not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError(f"{path}: snapshot must be a JSON object")
    return SessionSnapshot.from_dict(data)


__all__ = ["read_snapshot", "write_snapshot", "write_training_table"]
