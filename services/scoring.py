"""Score arithmetic shared by aggregation and difficulty selection."""
from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from .types import ScoreBand

LOW_BAND_CEILING = 60
HIGH_BAND_FLOOR = 80


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def mean(scores: Iterable[float]) -> float:
    """Arithmetic mean, ``0.0`` for an empty input."""

    values = list(scores)
    if not values:
        return 0.0
    return sum(values) / len(values)


def score_band(score: float) -> ScoreBand:
    if score < LOW_BAND_CEILING:
        return "low"
    if score < HIGH_BAND_FLOOR:
        return "mid"
    return "high"


__all__ = ["HIGH_BAND_FLOOR", "LOW_BAND_CEILING", "mean", "round_half_up", "score_band"]
