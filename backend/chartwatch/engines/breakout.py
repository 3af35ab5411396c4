"""
ChartWatch — Breakout Detector

Scans forward from the last pattern point for a close beyond the neckline.

Outcomes, strongest first:
  confirmed — a close crosses the neckline by the regime threshold
  partial   — a wick pierces that level, or price moves >3% away from the
              last pattern point without a qualifying close
  forming   — nothing yet, but the pattern ends near the last bar
  none      — reject the candidate
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np

from chartwatch.config import BreakoutConfig
from chartwatch.engines.candles import CandleSeries, TurningPoint
from chartwatch.models import BreakoutStatus, Direction, KeyPoint, NecklineModel, VolatilityRegime

# Used when the trailing average volume is zero or unavailable
NEUTRAL_VOLUME_RATIO = 1.0

CONFIRMED_STRENGTH = 0.7
CONFIRMED_VOLUME_STRENGTH = 0.85
CONFIRMED_HIGH_VOLUME_STRENGTH = 1.0
PARTIAL_TOUCH_STRENGTH = 0.5
PARTIAL_MOVE_STRENGTH = 0.4
FORMING_BASE_STRENGTH = 0.15
FORMING_PROXIMITY_STRENGTH = 0.25


@dataclass(frozen=True)
class BreakoutSignal:
    status: BreakoutStatus
    index: Optional[int] = None
    date: Optional[str] = None
    price: Optional[float] = None
    volume: Optional[int] = None
    volume_ratio: float = NEUTRAL_VOLUME_RATIO
    strength: float = 0.0
    neckline_value: Optional[float] = None

    @property
    def found(self) -> bool:
        return self.status is not BreakoutStatus.NONE

    def to_key_point(self) -> KeyPoint:
        return KeyPoint(
            date=self.date,
            price=self.price,
            volume=self.volume,
            index=self.index,
            status=self.status,
            volume_ratio=round(self.volume_ratio, 2),
        )


NO_BREAKOUT = BreakoutSignal(BreakoutStatus.NONE)


class BreakoutDetector:
    """Neckline breakout search shared by every validator."""

    def __init__(self, config: Optional[BreakoutConfig] = None):
        self.config = config or BreakoutConfig()

    def detect(
        self,
        series: CandleSeries,
        last_point: TurningPoint,
        neckline: NecklineModel,
        direction: Direction,
        regime: VolatilityRegime = VolatilityRegime.NORMAL,
        first_index: Optional[int] = None,
        allow_forming: bool = False,
    ) -> BreakoutSignal:
        cfg = self.config
        n = len(series)
        last = last_point.index
        threshold = cfg.threshold_for(regime)
        bearish = direction is Direction.BEARISH
        avg_volume = series.mean_volume(last - cfg.volume_lookback, last)

        touch: Optional[int] = None
        for k in range(last + 1, min(n, last + 1 + cfg.search_window)):
            if not series.valid[k]:
                continue
            line = neckline.value_at(k)
            level = line * (1 - threshold) if bearish else line * (1 + threshold)
            close = series.closes[k]
            if (close < level) if bearish else (close > level):
                ratio = self._volume_ratio(series.volumes[k], avg_volume)
                return self._signal(series, BreakoutStatus.CONFIRMED, k, float(close), ratio,
                                    self._confirmed_strength(ratio), line)
            pierced = series.lows[k] < level if bearish else series.highs[k] > level
            if touch is None and pierced:
                touch = k

        if touch is not None:
            ratio = self._volume_ratio(series.volumes[touch], avg_volume)
            return self._signal(series, BreakoutStatus.PARTIAL, touch, float(series.closes[touch]),
                                ratio, PARTIAL_TOUCH_STRENGTH, neckline.value_at(touch))

        move = self._post_pattern_move(series, last_point, bearish)
        if move is not None:
            k, price = move
            ratio = self._volume_ratio(series.volumes[k], avg_volume)
            return self._signal(series, BreakoutStatus.PARTIAL, k, price, ratio,
                                PARTIAL_MOVE_STRENGTH, neckline.value_at(k))

        if allow_forming:
            return self._forming(series, last, neckline, first_index, avg_volume)
        return NO_BREAKOUT

    # ── Helpers ──

    def _post_pattern_move(
        self, series: CandleSeries, last_point: TurningPoint, bearish: bool
    ) -> Optional[tuple[int, float]]:
        """Largest move away from the last pattern point within the short window."""
        cfg = self.config
        last = last_point.index
        if last + cfg.partial_move_min_bars >= len(series):
            return None
        stop = min(len(series), last + 1 + cfg.partial_move_window)
        role = last_point.role.opposite
        extreme = series.extreme_between(last + 1, stop, role)
        if extreme is None or last_point.price <= 0:
            return None
        if bearish:
            move = (last_point.price - extreme.price) / last_point.price
        else:
            move = (extreme.price - last_point.price) / last_point.price
        if move > cfg.partial_move:
            return extreme.index, extreme.price
        return None

    def _forming(
        self,
        series: CandleSeries,
        last: int,
        neckline: NecklineModel,
        first_index: Optional[int],
        avg_volume: Optional[float],
    ) -> BreakoutSignal:
        cfg = self.config
        n = len(series)
        tail = series.last_valid_index
        if tail is None or tail <= last:
            return NO_BREAKOUT
        span = last - (first_index if first_index is not None else last)
        near_end = min(cfg.forming_tail_bars, round(span * cfg.forming_tail_fraction))
        # Only a pattern ending in the last ``near_end`` bars can still be forming
        if last < n - near_end:
            return NO_BREAKOUT

        line = neckline.value_at(tail)
        close = float(series.closes[tail])
        proximity = abs(close - line) / line if line > 0 else 1.0
        factor = max(0.0, 1.0 - proximity * 20)
        ratio = self._volume_ratio(series.volumes[tail], avg_volume)
        return self._signal(series, BreakoutStatus.FORMING, tail, close, ratio,
                            FORMING_BASE_STRENGTH + FORMING_PROXIMITY_STRENGTH * factor, line)

    @staticmethod
    def _volume_ratio(volume: float, avg_volume: Optional[float]) -> float:
        if not avg_volume or avg_volume <= 0 or not np.isfinite(volume):
            return NEUTRAL_VOLUME_RATIO
        return float(volume / avg_volume)

    @staticmethod
    def _confirmed_strength(volume_ratio: float) -> float:
        if volume_ratio > 1.5:
            return CONFIRMED_HIGH_VOLUME_STRENGTH
        if volume_ratio > 1.0:
            return CONFIRMED_VOLUME_STRENGTH
        return CONFIRMED_STRENGTH

    @staticmethod
    def _signal(
        series: CandleSeries,
        status: BreakoutStatus,
        index: int,
        price: float,
        volume_ratio: float,
        strength: float,
        neckline_value: float,
    ) -> BreakoutSignal:
        return BreakoutSignal(
            status=status,
            index=index,
            date=series.dates[index],
            price=price,
            volume=int(series.volumes[index]),
            volume_ratio=volume_ratio,
            strength=strength,
            neckline_value=neckline_value,
        )
