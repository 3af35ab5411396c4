#!/usr/bin/env python3
"""
ChartWatch — Pattern Scanner

Fetches daily candles for one or more tickers and scans them for reversal
patterns, logging one line per detection.

Usage:
    python -m scripts.scan_patterns --tickers AAPL MSFT
    python -m scripts.scan_patterns --tickers ^GSPC --start 2023-01-01 --end 2023-12-31 \
        --patterns double-top head-and-shoulders --json
"""

from __future__ import annotations

import argparse
import json
import sys

import structlog

log = structlog.get_logger("scan_patterns")


def scan(tickers: list[str], start: str | None, end: str | None, patterns: list[str]) -> dict:
    """Run the analysis service for every ticker/pattern pair.

    Returns:
        Dict keyed by ticker, each mapping pattern → AnalysisResult dict.
        Tickers whose data could not be fetched map to an ``error`` entry.
    """
    from chartwatch.analysis import PatternAnalysisService
    from chartwatch.exceptions import DataFetchError

    service = PatternAnalysisService()
    report: dict[str, dict] = {}

    for i, ticker in enumerate(tickers, 1):
        log.info("scanning", ticker=ticker, progress=f"{i}/{len(tickers)}")
        report[ticker] = {}
        for pattern in patterns:
            try:
                result = service.analyze(ticker, start, end, pattern)
            except DataFetchError as exc:
                log.error("fetch_failed", ticker=ticker, error=str(exc))
                report[ticker] = {"error": str(exc)}
                break

            report[ticker][pattern] = result.to_dict()
            if result.success:
                data = result.pattern_data
                log.info(
                    "detected",
                    ticker=ticker,
                    pattern=pattern,
                    confidence=data.confidence,
                    neckline=round(data.neckline_level, 2),
                    target=round(data.price_target, 2),
                    breakout=data.breakout_status.value,
                )

    return report


def main():
    from chartwatch.models import PatternType
    from chartwatch.observability import configure_logging

    parser = argparse.ArgumentParser(description="Scan tickers for reversal chart patterns")
    parser.add_argument("--tickers", nargs="+", required=True, help="Ticker symbols to scan")
    parser.add_argument("--start", default=None, help="Start date (ISO-8601, default: one year ago)")
    parser.add_argument("--end", default=None, help="End date (ISO-8601, default: today)")
    parser.add_argument(
        "--patterns",
        nargs="+",
        default=[p.value for p in PatternType],
        choices=[p.value for p in PatternType],
        help="Patterns to scan for (default: all)",
    )
    parser.add_argument("--json", action="store_true", help="Print the full report as JSON")
    parser.add_argument("--log-level", default=None, help="Override CHARTWATCH_LOG_LEVEL")
    args = parser.parse_args()

    configure_logging(level=args.log_level)
    try:
        report = scan(args.tickers, args.start, args.end, args.patterns)
    except ValueError as exc:
        log.error("invalid_request", error=str(exc))
        sys.exit(2)

    if args.json:
        print(json.dumps(report, indent=2))

    if any("error" in entry for entry in report.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
