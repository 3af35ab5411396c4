"""
ChartWatch — Candle Series

Numeric, index-preserving view over a candle sequence. Engines work on the
numpy arrays held here rather than on per-candle objects.

A candle that is missing a field, carries a non-finite or non-positive
price, has ``high < low`` or an unparseable date keeps its position but is
flagged invalid; every engine skips invalid bars.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from chartwatch.exceptions import InvalidCandlesError
from chartwatch.models import Candle, KeyPoint, PointRole

_PRICE_FIELDS = ("open", "high", "low", "close")


@dataclass(frozen=True)
class TurningPoint:
    """A local extreme: high for peaks, low for troughs."""
    index: int
    role: PointRole
    price: float
    volume: int
    date: str
    significance: float = 0.0

    def to_key_point(self) -> KeyPoint:
        return KeyPoint(date=self.date, price=self.price, volume=self.volume, index=self.index)


class CandleSeries:
    """Column arrays plus a validity mask for a candle sequence."""

    def __init__(
        self,
        dates: Sequence[Optional[str]],
        opens: np.ndarray,
        highs: np.ndarray,
        lows: np.ndarray,
        closes: np.ndarray,
        volumes: np.ndarray,
        timestamps: pd.DatetimeIndex,
    ):
        self.dates = list(dates)
        self.opens = opens
        self.highs = highs
        self.lows = lows
        self.closes = closes
        self.volumes = volumes
        self.timestamps = timestamps

        finite = (
            np.isfinite(opens) & np.isfinite(highs) & np.isfinite(lows)
            & np.isfinite(closes) & np.isfinite(volumes)
        )
        with np.errstate(invalid="ignore"):
            sane = (lows > 0) & (highs >= lows) & (volumes >= 0)
        self.valid = finite & sane & ~np.asarray(timestamps.isna())

        ordered = timestamps[self.valid].asi8
        if ordered.size > 1 and (np.diff(ordered) <= 0).any():
            raise InvalidCandlesError("Candle dates must be strictly increasing")

        self.mids = np.where(self.valid, (highs + lows) / 2, np.nan)

    # ── Construction ──

    @classmethod
    def from_records(cls, records: Iterable[Any]) -> "CandleSeries":
        """Build from Candle models, mappings or attribute objects."""
        if isinstance(records, CandleSeries):
            return records
        rows = list(records)
        columns = {name: np.full(len(rows), np.nan) for name in (*_PRICE_FIELDS, "volume")}
        dates: list[Optional[str]] = []

        for i, row in enumerate(rows):
            dates.append(_coerce_date(_field(row, "date")))
            for name in columns:
                columns[name][i] = _coerce_float(_field(row, name))

        timestamps = pd.to_datetime(
            pd.Series(dates, dtype=object), errors="coerce", utc=True, format="ISO8601"
        )
        return cls(
            dates=dates,
            opens=columns["open"],
            highs=columns["high"],
            lows=columns["low"],
            closes=columns["close"],
            volumes=columns["volume"],
            timestamps=pd.DatetimeIndex(timestamps),
        )

    # ── Queries ──

    def __len__(self) -> int:
        return len(self.dates)

    @property
    def valid_count(self) -> int:
        return int(self.valid.sum())

    @property
    def last_valid_index(self) -> Optional[int]:
        idx = np.flatnonzero(self.valid)
        return int(idx[-1]) if idx.size else None

    def point(self, index: int, role: PointRole) -> TurningPoint:
        """Bar-level point: the high for a peak, the low for a trough."""
        price = self.highs[index] if role is PointRole.PEAK else self.lows[index]
        return TurningPoint(
            index=index,
            role=role,
            price=float(price),
            volume=int(self.volumes[index]),
            date=self.dates[index],
        )

    def extreme_between(self, start: int, stop: int, role: PointRole) -> Optional[TurningPoint]:
        """Highest high (peak) or lowest low (trough) of valid bars in ``[start, stop)``."""
        start = max(start, 0)
        stop = min(stop, len(self))
        if stop <= start:
            return None
        mask = self.valid[start:stop]
        if not mask.any():
            return None
        if role is PointRole.PEAK:
            offset = int(np.argmax(np.where(mask, self.highs[start:stop], -np.inf)))
        else:
            offset = int(np.argmin(np.where(mask, self.lows[start:stop], np.inf)))
        return self.point(start + offset, role)

    def mean_volume(self, start: int, stop: int) -> Optional[float]:
        start = max(start, 0)
        window = self.volumes[start:stop][self.valid[start:stop]]
        if window.size == 0:
            return None
        return float(window.mean())

    def days_between(self, first: int, last: int) -> int:
        delta = self.timestamps[last] - self.timestamps[first]
        return int(round(delta.total_seconds() / 86400))

    def to_candles(self) -> list[Candle]:
        """Valid bars as Candle models."""
        return [
            Candle(
                date=self.dates[i],
                open=float(self.opens[i]),
                high=float(self.highs[i]),
                low=float(self.lows[i]),
                close=float(self.closes[i]),
                volume=int(self.volumes[i]),
            )
            for i in np.flatnonzero(self.valid)
        ]


# ── Helpers ──────────────────────────────────────


def next_day(date_str: str) -> str:
    """Calendar day after an ISO date, formatted ``YYYY-MM-DD``."""
    return (pd.Timestamp(date_str) + pd.Timedelta(days=1)).strftime("%Y-%m-%d")


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _coerce_float(value: Any) -> float:
    if value is None:
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def _coerce_date(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    text = str(value).strip()
    return text or None
