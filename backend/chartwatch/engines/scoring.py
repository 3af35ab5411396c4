"""
ChartWatch — Confidence Scorer

Weighted composite of named sub-scores, plus the tiered sub-score helpers
shared by the validators. Every helper returns a value in [0, 1]; missing or
non-finite inputs fall back to ``NEUTRAL_SCORE``.
"""

from __future__ import annotations

import math
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel

from chartwatch.engines.trend import TrendReading
from chartwatch.models import TrendDirection

NEUTRAL_SCORE = 0.5

# Comparisons against configured tolerances are inclusive
EPSILON = 1e-9

_SIMILARITY_TIERS = ((0.02, 1.0), (0.04, 0.9), (0.06, 0.8), (0.08, 0.7), (0.10, 0.65))


def clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, value))


def within(value: float, limit: float) -> bool:
    return value <= limit + EPSILON


def at_least(value: float, minimum: float) -> bool:
    return value + EPSILON >= minimum


class ConfidenceScorer:
    """Combine sub-scores with a weight table that sums to 1."""

    def __init__(self, weights: BaseModel | Mapping[str, float]):
        table = weights.model_dump() if isinstance(weights, BaseModel) else dict(weights)
        total = sum(table.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Score weights must sum to 1.0, got {total:.4f}")
        self.weights = table

    def score(self, sub_scores: Mapping[str, Optional[float]]) -> float:
        total = 0.0
        for name, weight in self.weights.items():
            total += weight * _sanitize(sub_scores.get(name))
        return round(clamp(total), 2)


def _sanitize(value: Optional[float]) -> float:
    if value is None or not math.isfinite(value):
        return NEUTRAL_SCORE
    return clamp(value)


# ──────────────────────────────────────────────
# Sub-score Helpers
# ──────────────────────────────────────────────

def similarity_score(difference: float, tolerance: float) -> float:
    """Tiered score for the relative gap between same-role extremes."""
    for limit, score in _SIMILARITY_TIERS:
        if within(difference, limit) and within(difference, tolerance):
            return score
    return 0.6 if within(difference, tolerance) else 0.0


def depth_score(depth: float, minimum: float) -> float:
    """Tiered score for an intermediate reversal relative to its minimum."""
    if minimum <= 0:
        return 1.0
    if at_least(depth, minimum * 1.5):
        return 1.0
    if at_least(depth, minimum * 1.25):
        return 0.9
    if at_least(depth, minimum):
        return 0.8
    return 0.0


def volume_decay_score(earlier: float, later: float) -> float:
    """Volume on a retest relative to the first test of the level."""
    if not earlier or earlier <= 0 or later is None or later < 0:
        return NEUTRAL_SCORE
    ratio = later / earlier
    if 0.4 < ratio < 0.8:
        return 0.9
    if ratio < 1.0:
        return 0.7
    if ratio < 1.2:
        return 0.5
    return 0.3


def volume_sequence_score(volumes: Sequence[float]) -> float:
    """Mean decay score across consecutive tests."""
    pairs = list(zip(volumes, volumes[1:]))
    if not pairs:
        return NEUTRAL_SCORE
    return sum(volume_decay_score(a, b) for a, b in pairs) / len(pairs)


def trend_alignment_score(reading: TrendReading, expected: TrendDirection) -> float:
    """Reversal patterns need a prior trend to reverse."""
    if reading.direction is expected:
        return 0.6 + 0.4 * reading.strength
    if reading.direction is TrendDirection.SIDEWAYS:
        return 0.5
    return 0.2


def head_volume_score(left_volume: float, head_volume: float, right_volume: float) -> float:
    """Head volume above the left shoulder, right shoulder volume fading."""
    if not head_volume or head_volume <= 0:
        return NEUTRAL_SCORE
    if head_volume > left_volume and right_volume < head_volume:
        return max(1.0 - right_volume / head_volume, 0.3)
    return 0.3
