"""
ChartWatch — yfinance Data Client

Daily OHLCV candles for pattern analysis. Wraps yfinance with our Pydantic
models; failures surface as ``DataFetchError`` so callers can report them as
input errors.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta

import structlog
import yfinance as yf

from chartwatch.exceptions import DataFetchError
from chartwatch.models import Candle

log = structlog.get_logger(__name__)


class YFinanceClient:
    """Wrapper around yfinance delivering typed Candle models."""

    def get_daily_candles(self, ticker: str, start: datetime, end: datetime) -> list[Candle]:
        """Fetch daily candles for ``[start, end]`` (both dates inclusive)."""
        try:
            df = yf.Ticker(ticker).history(
                start=start.strftime("%Y-%m-%d"),
                end=(end + timedelta(days=1)).strftime("%Y-%m-%d"),
                interval="1d",
                auto_adjust=False,
            )
        except Exception as e:
            log.warning("yfinance_history_failed", ticker=ticker, error=str(e))
            raise DataFetchError(ticker, str(e)) from e

        if df is None or df.empty:
            raise DataFetchError(ticker, "no data returned for the requested range")

        candles = []
        skipped = 0
        for idx, row in df.iterrows():
            values = [row.get(col) for col in ("Open", "High", "Low", "Close", "Volume")]
            if any(v is None or (isinstance(v, float) and math.isnan(v)) for v in values):
                skipped += 1
                continue
            candles.append(
                Candle(
                    date=idx.strftime("%Y-%m-%d"),
                    open=round(float(row["Open"]), 4),
                    high=round(float(row["High"]), 4),
                    low=round(float(row["Low"]), 4),
                    close=round(float(row["Close"]), 4),
                    volume=int(row["Volume"]),
                )
            )

        log.info(
            "yfinance_candles_fetched",
            ticker=ticker,
            candles=len(candles),
            skipped=skipped,
        )
        return candles
