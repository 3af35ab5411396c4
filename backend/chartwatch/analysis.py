"""
ChartWatch — Pattern Analysis Service

Fetch → detect → overlay for a single ticker and pattern. This is the entry
point a request handler or the CLI script calls; bad input raises
ValueError, upstream data failures raise DataFetchError.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog

from chartwatch.config import Settings, get_settings
from chartwatch.data.yfinance_client import YFinanceClient
from chartwatch.engines.candles import CandleSeries
from chartwatch.engines.overlays import build_pattern_lines
from chartwatch.engines.pattern_engine import PatternEngine
from chartwatch.models import AnalysisResult, DateRange, PatternResult, PatternType
from chartwatch.observability import traced
from chartwatch.utils.validators import validate_date_range, validate_pattern, validate_ticker

log = structlog.get_logger(__name__)


class PatternAnalysisService:
    """Ticker-level pattern analysis."""

    def __init__(
        self,
        engine: Optional[PatternEngine] = None,
        client: Optional[YFinanceClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.engine = engine or PatternEngine()
        self.client = client or YFinanceClient()
        self.settings = settings or get_settings()

    @traced("analysis.analyze")
    def analyze(
        self,
        ticker: str,
        start: Optional[str | datetime] = None,
        end: Optional[str | datetime] = None,
        pattern: str | PatternType = PatternType.DOUBLE_TOP,
    ) -> AnalysisResult:
        ticker = validate_ticker(ticker)
        pattern_type = validate_pattern(pattern)
        start_dt, end_dt = validate_date_range(
            start,
            end,
            max_days=self.settings.max_lookback_days,
            default_days=self.settings.default_lookback_days,
        )
        date_range = DateRange(start=start_dt.strftime("%Y-%m-%d"), end=end_dt.strftime("%Y-%m-%d"))

        candles = self.client.get_daily_candles(ticker, start_dt, end_dt)
        series = CandleSeries.from_records(candles)
        outcome = self.engine.detect(series, pattern_type)
        chart_data = series.to_candles()

        if isinstance(outcome, PatternResult):
            log.info(
                "pattern_detected",
                ticker=ticker,
                pattern=pattern_type.value,
                confidence=outcome.confidence,
                breakout=outcome.breakout_status.value,
            )
            return AnalysisResult(
                success=True,
                pattern=pattern_type,
                ticker=ticker,
                date_range=date_range,
                pattern_data=outcome,
                chart_data=chart_data,
                pattern_lines=build_pattern_lines(outcome),
            )

        log.info("pattern_not_detected", ticker=ticker, pattern=pattern_type.value, reason=outcome.reason)
        return AnalysisResult(
            success=False,
            pattern=pattern_type,
            ticker=ticker,
            date_range=date_range,
            chart_data=chart_data,
            message=f"Pattern not detected in the given date range: {outcome.reason}",
        )
