"""Adaptive difficulty instruction derived from recent feedback."""
from __future__ import annotations

from typing import Dict, Sequence

from pydantic import BaseModel

from .scoring import mean, score_band
from .types import FeedbackRecord, ScoreBand

DEFAULT_WINDOW = 3

INSTRUCTIONS: Dict[ScoreBand, str] = {
    "low": "focuses on fundamental concepts and builds confidence",
    "mid": "challenges the user with more complex scenarios",
    "high": "tests advanced concepts and problem-solving abilities",
}


class DifficultySignal(BaseModel):
    average_score: float
    band: ScoreBand
    instruction: str
    window: int


def select_instruction(records: Sequence[FeedbackRecord], window: int = DEFAULT_WINDOW) -> DifficultySignal:
    """Pick the next-question instruction from the last ``window`` records.

    ``records`` are oldest first. An empty window averages to 0 and lands in
    the lowest band.
    """

    recent = list(records)[-window:] if window > 0 else []
    average = mean(record.overall_score for record in recent)
    band = score_band(average)
    return DifficultySignal(average_score=average, band=band, instruction=INSTRUCTIONS[band], window=len(recent))


__all__ = ["DEFAULT_WINDOW", "DifficultySignal", "INSTRUCTIONS", "select_instruction"]
