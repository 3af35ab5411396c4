"""
ChartWatch — Pattern Detection Engine

Orchestrates detection of six reversal formations over daily candles:

  Double Top / Double Bottom
  Triple Top / Triple Bottom
  Head & Shoulders / Inverse Head & Shoulders

For each pattern type: extract turning points, enumerate chronological
candidate tuples of the pattern's point role, validate each one, and keep
the highest-confidence result. A candidate above the high-confidence
threshold ends the search early; ties keep the first candidate generated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Iterable, Iterator, Mapping, Optional, Sequence

import structlog

from chartwatch.config import DetectionConfig, build_detection_config
# Validator modules register themselves on import
from chartwatch.engines import double_patterns, head_and_shoulders, triple_patterns  # noqa: F401
from chartwatch.engines.candles import CandleSeries, TurningPoint
from chartwatch.engines.turning_points import TurningPointExtractor, TurningPoints
from chartwatch.engines.validation import (
    PatternCandidate,
    PatternContext,
    PatternValidator,
    get_validator,
    registered_patterns,
)
from chartwatch.engines.volatility import VolatilityEstimator
from chartwatch.models import (
    Direction,
    DetectionOutcome,
    NotDetected,
    PatternResult,
    PatternType,
    PointRole,
)
from chartwatch.observability import trace_span

log = structlog.get_logger(__name__)


@dataclass
class PatternScanResult:
    """Outcome of scanning one series for every pattern type."""
    results: dict[PatternType, DetectionOutcome] = field(default_factory=dict)

    @property
    def detected(self) -> list[PatternResult]:
        return [r for r in self.results.values() if isinstance(r, PatternResult)]

    @property
    def bullish_count(self) -> int:
        return sum(1 for r in self.detected if _direction(r.pattern_type) is Direction.BULLISH)

    @property
    def bearish_count(self) -> int:
        return sum(1 for r in self.detected if _direction(r.pattern_type) is Direction.BEARISH)

    @property
    def overall_bias(self) -> str:
        if self.bullish_count > self.bearish_count:
            return "bullish"
        if self.bearish_count > self.bullish_count:
            return "bearish"
        return "neutral"

    def to_dict(self) -> dict:
        return {
            "patterns": {p.value: r.to_dict() for p, r in self.results.items()},
            "patternCount": len(self.detected),
            "bullishCount": self.bullish_count,
            "bearishCount": self.bearish_count,
            "overallBias": self.overall_bias,
        }


class PatternEngine:
    """Reversal pattern detector.

    Usage:
        engine = PatternEngine()
        result = engine.detect_double_top(candles)
        scan = engine.scan_all(candles)
    """

    def __init__(self, config: Optional[DetectionConfig] = None):
        self.config = config or build_detection_config()

    # ──────────────────────────────────────────
    # Public API
    # ──────────────────────────────────────────

    def detect(
        self,
        candles: Iterable[Any],
        pattern_type: PatternType | str,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> DetectionOutcome:
        """Detect the best instance of one pattern type."""
        validator_cls = get_validator(pattern_type)
        pattern_type = validator_cls.pattern_type
        series = CandleSeries.from_records(candles)
        config = self.config.with_overrides(overrides)

        with trace_span("pattern_engine.detect", pattern=pattern_type.value, candles=len(series)):
            return self._detect(series, validator_cls, config)

    def detect_double_top(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.DOUBLE_TOP, overrides)

    def detect_double_bottom(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.DOUBLE_BOTTOM, overrides)

    def detect_triple_top(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.TRIPLE_TOP, overrides)

    def detect_triple_bottom(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.TRIPLE_BOTTOM, overrides)

    def detect_head_and_shoulders(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.HEAD_AND_SHOULDERS, overrides)

    def detect_inverse_head_and_shoulders(self, candles, overrides=None) -> DetectionOutcome:
        return self.detect(candles, PatternType.INVERSE_HEAD_AND_SHOULDERS, overrides)

    def scan_all(
        self,
        candles: Iterable[Any],
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> PatternScanResult:
        """Run every registered pattern over the same series."""
        series = CandleSeries.from_records(candles)
        scan = PatternScanResult()
        for pattern_type in registered_patterns():
            scan.results[pattern_type] = self.detect(series, pattern_type, overrides)
        log.info(
            "pattern_scan_complete",
            candles=len(series),
            detected=[r.pattern_type.value for r in scan.detected],
            bias=scan.overall_bias,
        )
        return scan

    # ──────────────────────────────────────────
    # Search
    # ──────────────────────────────────────────

    def _detect(
        self,
        series: CandleSeries,
        validator_cls: type[PatternValidator],
        config: DetectionConfig,
    ) -> DetectionOutcome:
        pattern_type = validator_cls.pattern_type
        pattern_config = config.for_pattern(pattern_type)

        if series.valid_count < pattern_config.min_candles:
            return NotDetected(
                pattern_type=pattern_type,
                reason=(
                    f"insufficient data: need at least {pattern_config.min_candles} "
                    f"candles, got {series.valid_count}"
                ),
            )

        regime = VolatilityEstimator(config.volatility).series_regime(series)
        config = config.adjusted_for(pattern_type, regime)
        context = PatternContext.build(series, config)

        role = validator_cls.role
        extractor = TurningPointExtractor(config.turning_points, context.volatility)
        if role is PointRole.PEAK:
            points = extractor.extract(series, min_peaks=validator_cls.arity)
        else:
            points = extractor.extract(series, min_troughs=validator_cls.arity)
        candidates_pool = points.of_role(role)
        if len(candidates_pool) < validator_cls.arity:
            return NotDetected(
                pattern_type=pattern_type,
                reason=(
                    f"insufficient points: found {len(candidates_pool)} {role.value}s, "
                    f"need {validator_cls.arity}"
                ),
            )

        validator = validator_cls(context)
        best: Optional[PatternResult] = None
        evaluated = 0

        for candidate in self._candidates(series, points, validator_cls, config):
            if evaluated >= config.max_candidates:
                log.warning(
                    "candidate_cap_reached",
                    pattern=pattern_type.value,
                    max_candidates=config.max_candidates,
                )
                break
            evaluated += 1
            result = validator.validate(candidate)
            if result is None:
                continue
            if best is None or result.confidence > best.confidence:
                best = result
            if result.confidence > config.high_confidence_threshold:
                break

        log.debug(
            "pattern_search_done",
            pattern=pattern_type.value,
            regime=regime.value,
            window=points.window,
            peaks=len(points.peaks),
            troughs=len(points.troughs),
            evaluated=evaluated,
            rejections=dict(validator.rejections),
            confidence=best.confidence if best else None,
        )

        if best is None:
            return NotDetected(
                pattern_type=pattern_type,
                reason=f"no valid {pattern_type.display_name.lower()} pattern found",
                candidates_evaluated=evaluated,
            )
        return best

    @staticmethod
    def _candidates(
        series: CandleSeries,
        points: TurningPoints,
        validator_cls: type[PatternValidator],
        config: DetectionConfig,
    ) -> Iterator[PatternCandidate]:
        """Chronological tuples of same-role points within the spacing bounds."""
        pattern_config = config.for_pattern(validator_cls.pattern_type)
        role = validator_cls.role
        pool = points.of_role(role)
        opposite = points.of_role(role.opposite)

        for combo in combinations(pool, validator_cls.arity):
            if not _spaced(combo, pattern_config.min_distance, pattern_config.max_distance):
                continue
            anchor = _anchor(series, combo[0], opposite)
            if anchor is None:
                continue
            yield PatternCandidate(points=combo, anchor=anchor)


# ── Helpers ──────────────────────────────────────


def _spaced(points: Sequence[TurningPoint], min_gap: int, max_gap: int) -> bool:
    return all(min_gap <= b.index - a.index <= max_gap for a, b in zip(points, points[1:]))


def _anchor(
    series: CandleSeries,
    first: TurningPoint,
    opposite: Sequence[TurningPoint],
) -> Optional[TurningPoint]:
    """Nearest opposite-role turning point before ``first``, else the bar extreme."""
    for point in reversed(opposite):
        if point.index < first.index:
            return point
    return series.extreme_between(0, first.index, first.role.opposite)


def _direction(pattern_type: PatternType) -> Direction:
    return get_validator(pattern_type).direction
