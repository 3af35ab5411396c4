"""
ChartWatch — Input Validators

Validation helpers for analysis requests: tickers, date ranges and pattern
identifiers. Raise ValueError on invalid input so callers can report it as a
bad request.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from chartwatch.exceptions import UnknownPatternError
from chartwatch.models import PatternType

# Equities (AAPL, BRK.B), indices (^GSPC), crypto/FX pairs (BTC-USD, EURUSD=X), futures (ES=F)
_TICKER_RE = re.compile(r"^\^?[A-Z0-9]{1,10}([.\-][A-Z0-9]{1,5})?(=[A-Z])?$")


def validate_ticker(raw: str) -> str:
    """Clean and validate a ticker symbol.

    >>> validate_ticker(' aapl ')
    'AAPL'
    >>> validate_ticker('^gspc')
    '^GSPC'
    """
    ticker = raw.strip().upper()
    if not ticker:
        raise ValueError("Ticker cannot be empty")
    if not _TICKER_RE.match(ticker):
        raise ValueError(f"Invalid ticker '{ticker}'")
    return ticker


def validate_date_range(
    start: Optional[str | datetime] = None,
    end: Optional[str | datetime] = None,
    max_days: int = 365 * 10,
    default_days: int = 365,
) -> tuple[datetime, datetime]:
    """Validate and normalize a date range.

    - Accepts ISO-8601 strings or datetime objects.
    - If *start* is None, defaults to *default_days* before *end*.
    - If *end* is None, defaults to now.
    - Raises ValueError if the range is reversed or exceeds *max_days*.

    Returns (start_dt, end_dt) as timezone-aware UTC datetimes.
    """
    end_dt = datetime.now(timezone.utc) if end is None else _to_datetime(end)
    start_dt = end_dt - timedelta(days=default_days) if start is None else _to_datetime(start)

    if start_dt > end_dt:
        raise ValueError(
            f"Start date ({start_dt.date()}) must be before end date ({end_dt.date()})"
        )
    span = (end_dt - start_dt).days
    if span > max_days:
        raise ValueError(f"Date range of {span} days exceeds maximum of {max_days} days")
    return start_dt, end_dt


def validate_pattern(raw: str | PatternType) -> PatternType:
    """Resolve a pattern identifier such as ``double-top`` or ``double_top``."""
    if isinstance(raw, PatternType):
        return raw
    key = raw.strip().lower().replace("_", "-").replace(" ", "-")
    try:
        return PatternType(key)
    except ValueError:
        raise UnknownPatternError(raw) from None


# ── Helpers ──────────────────────────────────────


def _to_datetime(value: str | datetime) -> datetime:
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"Cannot parse date string: '{value}'. Expected ISO-8601 format.")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
