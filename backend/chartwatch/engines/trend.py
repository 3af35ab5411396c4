"""
ChartWatch — Trend Analyzer

Classifies the trend leading into a pattern with an ordinary least-squares
fit of close against bar index.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from chartwatch.config import TrendConfig
from chartwatch.engines.candles import CandleSeries
from chartwatch.models import TrendDirection


@dataclass(frozen=True)
class TrendReading:
    direction: TrendDirection
    normalized_slope: float
    strength: float

    @classmethod
    def sideways(cls) -> "TrendReading":
        return cls(TrendDirection.SIDEWAYS, 0.0, 0.0)


class TrendAnalyzer:
    """OLS trend over the bars preceding a start index."""

    def __init__(self, config: Optional[TrendConfig] = None):
        self.config = config or TrendConfig()

    def analyze(self, series: CandleSeries, start_index: int, lookback: Optional[int] = None) -> TrendReading:
        lookback = lookback or self.config.lookback
        lo = max(0, start_index - lookback)
        idx = np.flatnonzero(series.valid[lo:start_index]) + lo
        if idx.size < 3:
            return TrendReading.sideways()

        y = series.closes[idx]
        avg = float(y.mean())
        # A constant window fits a zero slope exactly; polyfit only gets close
        if avg <= 0 or np.ptp(y) == 0:
            return TrendReading.sideways()

        slope = float(np.polyfit(idx.astype(float), y, 1)[0])
        normalized = slope * idx.size / avg
        strength = min(abs(normalized) / self.config.strength_cap, 1.0)

        if abs(normalized) < self.config.sideways_threshold:
            direction = TrendDirection.SIDEWAYS
        elif normalized > 0:
            direction = TrendDirection.UPTREND
        else:
            direction = TrendDirection.DOWNTREND
        return TrendReading(direction, normalized, strength)
