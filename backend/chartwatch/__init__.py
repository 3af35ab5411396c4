"""
ChartWatch — Reversal chart pattern detection over daily OHLCV candles.
"""

__version__ = "0.1.0"
