"""
ChartWatch — Volatility Estimator

ATR ratio (average true range over average mid-price) and close-to-close
return volatility. Both feed threshold adjustments: the ATR ratio around a
candidate pattern, the return volatility for the series as a whole.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from chartwatch.config import VolatilityConfig
from chartwatch.engines.candles import CandleSeries
from chartwatch.models import VolatilityRegime

# Returned when the window holds fewer than two usable bars
NEUTRAL_VOLATILITY = 0.01


class VolatilityEstimator:
    """Dimensionless volatility measures over a candle series."""

    def __init__(self, config: Optional[VolatilityConfig] = None):
        self.config = config or VolatilityConfig()

    def atr_ratio(
        self,
        series: CandleSeries,
        end_index: Optional[int] = None,
        period: Optional[int] = None,
    ) -> float:
        """ATR over the ``period`` bars ending at ``end_index`` / mean mid-price."""
        n = len(series)
        if n == 0:
            return NEUTRAL_VOLATILITY
        period = period or self.config.atr_period
        end = n - 1 if end_index is None else min(end_index, n - 1)
        start = max(0, end - period)

        highs = series.highs[start:end + 1]
        lows = series.lows[start:end + 1]
        closes = series.closes[start:end + 1]
        valid = series.valid[start:end + 1]

        # True range needs the bar and its predecessor
        pair = valid[1:] & valid[:-1]
        if not pair.any():
            return NEUTRAL_VOLATILITY

        prev_close = closes[:-1]
        h, l = highs[1:], lows[1:]
        tr = np.maximum(h - l, np.maximum(np.abs(h - prev_close), np.abs(l - prev_close)))
        atr = float(tr[pair].mean())

        mid = float(series.mids[start:end + 1][valid].mean())
        if not np.isfinite(mid) or mid <= 0:
            return NEUTRAL_VOLATILITY
        return atr / mid

    def regime(self, ratio: float) -> VolatilityRegime:
        if ratio > self.config.high_threshold:
            return VolatilityRegime.HIGH
        if ratio < self.config.low_threshold:
            return VolatilityRegime.LOW
        return VolatilityRegime.NORMAL

    def return_volatility(self, series: CandleSeries) -> float:
        """Population std of close-to-close returns over the trailing lookback."""
        closes = series.closes[series.valid][-self.config.return_lookback:]
        if closes.size < 3:
            return 0.0
        returns = np.diff(closes) / closes[:-1]
        return float(np.std(returns))

    def series_regime(self, series: CandleSeries) -> VolatilityRegime:
        vol = self.return_volatility(series)
        if vol > self.config.high_return_volatility:
            return VolatilityRegime.HIGH
        if 0 < vol < self.config.low_return_volatility:
            return VolatilityRegime.LOW
        return VolatilityRegime.NORMAL
