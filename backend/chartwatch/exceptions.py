"""
ChartWatch — Exceptions

Detection outcomes are never exceptions: a missing pattern is a typed
``NotDetected`` result. These errors cover bad caller input and failures
of the upstream market-data source.
"""

from __future__ import annotations


class ChartWatchError(Exception):
    """Base class for all ChartWatch errors."""


class InvalidCandlesError(ChartWatchError, ValueError):
    """Raised when the candle sequence violates the input contract."""


class UnknownPatternError(ChartWatchError, ValueError):
    """Raised when a pattern identifier is not one of the supported types."""

    def __init__(self, pattern: str):
        self.pattern = pattern
        super().__init__(f"Unknown pattern type '{pattern}'")


class DataFetchError(ChartWatchError):
    """Raised when market data for a ticker cannot be retrieved."""

    def __init__(self, ticker: str, detail: str):
        self.ticker = ticker
        self.detail = detail
        super().__init__(f"Failed to fetch data for '{ticker}': {detail}")
