# -*- coding: utf-8 -*-
"""Per-shot scoring and competition-card aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from .calibration import TargetCalibration
from .geometry import elliptical_distance
from .target_spec import TETRATHLON_TARGET
from .types import Hole, Point2D


def score(position: Point2D, calibration: TargetCalibration) -> int:
    """Band score for ``position``; edges are exclusive, so d == 1.0 is a miss."""
    d = elliptical_distance(position, calibration.center, calibration.half_extent)
    for edge, value in TETRATHLON_TARGET.bands:
        if d < edge:
            return value
    return TETRATHLON_TARGET.miss_score


@dataclass(frozen=True)
class CompetitionScore:
    card_totals: List[int]
    raw_total: int
    points: int


def card_total(holes: Sequence[Hole]) -> int:
    return sum(h.score for h in holes if h.score > TETRATHLON_TARGET.miss_score)


def tetrathlon_points(raw_total: int) -> int:
    return int(raw_total) * TETRATHLON_TARGET.points_per_raw_score


def aggregate_cards(cards: Sequence[Sequence[Hole]]) -> CompetitionScore:
    """Sum scoring holes per card and convert the raw total to tetrathlon points.

    Missed shots are kept on the cards as markers but do not count. The shot
    count per card is not enforced here.
    """
    totals = [card_total(card) for card in cards]
    raw = sum(totals)
    return CompetitionScore(card_totals=totals, raw_total=raw, points=tetrathlon_points(raw))


__all__ = ["score", "card_total", "tetrathlon_points", "aggregate_cards", "CompetitionScore"]
