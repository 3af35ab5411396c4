"""
ChartWatch — Logging & Timing

structlog setup plus lightweight timing spans around engine calls.

Usage::

    configure_logging()

    with trace_span("pattern_engine.detect", pattern="double-top"):
        result = engine.detect(candles, PatternType.DOUBLE_TOP)
"""

from __future__ import annotations

import functools
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Optional

import structlog

from chartwatch.config import get_settings

logger = structlog.get_logger(__name__)


# ──────────────────────────────────────────────
# Configuration
# ──────────────────────────────────────────────

def configure_logging(level: Optional[str] = None, json_logs: Optional[bool] = None) -> None:
    """Configure structlog processors and the minimum log level.

    Falls back to ``Settings.log_level`` / ``Settings.log_json`` when the
    arguments are omitted.
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level '{level_name}'")

    use_json = settings.log_json if json_logs is None else json_logs
    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=True,
    )
    logger.debug("logging_configured", level=level_name, json=use_json)


# ──────────────────────────────────────────────
# Timing Spans
# ──────────────────────────────────────────────

@contextmanager
def trace_span(name: str, **context: Any):
    """Time a block and log its duration.

    Emits ``trace_span_end`` at debug level, and ``trace_span_slow`` as a
    warning when the block exceeds ``Settings.slow_span_ms``.
    """
    start = time.perf_counter()
    extra = {"span_name": name, **context}
    logger.debug("trace_span_start", **extra)
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug("trace_span_end", elapsed_ms=round(elapsed_ms, 2), **extra)
        if elapsed_ms > get_settings().slow_span_ms:
            logger.warning("trace_span_slow", elapsed_ms=round(elapsed_ms, 2), **extra)


def traced(name: Optional[str] = None):
    """Decorator form of :func:`trace_span`.

    Usage:
        @traced("analysis.analyze")
        def analyze(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        span_name = name or f"{func.__module__}.{func.__qualname__}"

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            with trace_span(span_name):
                return func(*args, **kwargs)

        return wrapper

    return decorator
