"""
ChartWatch — Turning Point Extractor

Finds local peaks (highs) and troughs (lows) with a centred rolling window.
The window adapts to series length and volatility, and shrinks on retry
when a pattern needs more points than the first pass produced.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import structlog
from numpy.lib.stride_tricks import sliding_window_view

from chartwatch.config import TurningPointConfig
from chartwatch.engines.candles import CandleSeries, TurningPoint
from chartwatch.engines.volatility import VolatilityEstimator
from chartwatch.models import PointRole, VolatilityRegime

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TurningPoints:
    peaks: tuple[TurningPoint, ...]
    troughs: tuple[TurningPoint, ...]
    window: int

    def of_role(self, role: PointRole) -> tuple[TurningPoint, ...]:
        return self.peaks if role is PointRole.PEAK else self.troughs


class TurningPointExtractor:
    """Adaptive peak / trough detection."""

    def __init__(
        self,
        config: Optional[TurningPointConfig] = None,
        volatility: Optional[VolatilityEstimator] = None,
    ):
        self.config = config or TurningPointConfig()
        self.volatility = volatility or VolatilityEstimator()

    @staticmethod
    def base_window(length: int) -> int:
        """Window size from series length alone."""
        if length < 50:
            return max(2, int(length * 0.05))
        if length < 200:
            return max(3, int(length * 0.04))
        return max(5, int(length * 0.03))

    def adaptive_window(self, series: CandleSeries) -> int:
        window = float(self.base_window(len(series)))
        regime = self.volatility.regime(
            self.volatility.atr_ratio(series, period=max(len(series) - 1, 1))
        )
        if regime is VolatilityRegime.HIGH:
            window *= self.config.high_volatility_scale
        elif regime is VolatilityRegime.LOW:
            window *= self.config.low_volatility_scale
        return int(min(max(round(window), self.config.min_window), self.config.max_window))

    def find(self, series: CandleSeries, window: int) -> TurningPoints:
        """Single pass at a fixed window."""
        n = len(series)
        span = 2 * window + 1
        if window < 1 or n < span:
            return TurningPoints((), (), window)

        valid = series.valid
        highs = np.where(valid, series.highs, -np.inf)
        lows = np.where(valid, series.lows, np.inf)

        centre = slice(window, n - window)
        window_max = sliding_window_view(highs, span).max(axis=1)
        window_min = sliding_window_view(lows, span).min(axis=1)
        local_mean = _rolling_nanmean(series.mids, span)

        is_peak = valid[centre] & (highs[centre] >= window_max)
        is_trough = valid[centre] & (lows[centre] <= window_min)

        peaks = self._collect(series, np.flatnonzero(is_peak), window, local_mean, PointRole.PEAK)
        troughs = self._collect(series, np.flatnonzero(is_trough), window, local_mean, PointRole.TROUGH)
        return TurningPoints(peaks, troughs, window)

    def extract(
        self,
        series: CandleSeries,
        window: Optional[int] = None,
        min_peaks: int = 0,
        min_troughs: int = 0,
    ) -> TurningPoints:
        """Extract turning points, shrinking the window until the counts suffice."""
        window = window or self.adaptive_window(series)
        while True:
            points = self.find(series, window)
            if len(points.peaks) >= min_peaks and len(points.troughs) >= min_troughs:
                return points
            if window <= self.config.min_window:
                log.debug(
                    "turning_points_insufficient",
                    window=window,
                    peaks=len(points.peaks),
                    troughs=len(points.troughs),
                )
                return points
            window -= 1

    def _collect(
        self,
        series: CandleSeries,
        offsets: np.ndarray,
        window: int,
        local_mean: np.ndarray,
        role: PointRole,
    ) -> tuple[TurningPoint, ...]:
        points = []
        for k in offsets:
            i = int(k) + window
            mean = local_mean[k]
            price = series.highs[i] if role is PointRole.PEAK else series.lows[i]
            significance = abs(price - mean) / mean if mean > 0 else 0.0
            if significance <= self.config.min_significance:
                continue
            points.append(TurningPoint(
                index=i,
                role=role,
                price=float(price),
                volume=int(series.volumes[i]),
                date=series.dates[i],
                significance=round(float(significance), 6),
            ))
        return tuple(points)


def _rolling_nanmean(values: np.ndarray, span: int) -> np.ndarray:
    """Centred-window mean ignoring NaN, one entry per full window."""
    view = sliding_window_view(values, span)
    counts = np.sum(~np.isnan(view), axis=1)
    sums = np.nansum(view, axis=1)
    return np.divide(sums, counts, out=np.zeros_like(sums), where=counts > 0)
