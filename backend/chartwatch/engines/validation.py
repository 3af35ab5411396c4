"""
ChartWatch — Pattern Validator Contract

Shared machinery for the six formation validators:

    1. spacing between consecutive points
    2. level similarity of same-role points (volatility-adjusted)
    3. intermediate reversal depth
    4. neckline construction
    5. breakout search
    6. composite confidence
    7. height / target / timespan metrics

Validators are registered per ``PatternType`` with ``@register_validator`` and
looked up by the orchestrator through ``get_validator``. Every check fails
fast: a rejected candidate returns ``None`` and bumps a per-reason counter.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Type

from chartwatch.config import DetectionConfig, PatternConfig
from chartwatch.engines.breakout import BreakoutDetector, BreakoutSignal
from chartwatch.engines.candles import CandleSeries, TurningPoint
from chartwatch.engines.scoring import ConfidenceScorer, at_least, clamp, within
from chartwatch.engines.trend import TrendAnalyzer
from chartwatch.engines.volatility import VolatilityEstimator
from chartwatch.exceptions import UnknownPatternError
from chartwatch.models import (
    BreakoutStatus,
    Direction,
    KeyPoint,
    NecklineModel,
    PatternResult,
    PatternType,
    PointRole,
    TrendDirection,
    VolatilityRegime,
)


@dataclass(frozen=True)
class PatternCandidate:
    """Chronological pattern points plus the anchor that precedes them."""
    points: tuple[TurningPoint, ...]
    anchor: TurningPoint

    @property
    def first(self) -> TurningPoint:
        return self.points[0]

    @property
    def last(self) -> TurningPoint:
        return self.points[-1]


@dataclass(frozen=True)
class PatternContext:
    """Per-call collaborators shared by every validator invocation."""
    series: CandleSeries
    config: DetectionConfig
    volatility: VolatilityEstimator
    trend: TrendAnalyzer
    breakout: BreakoutDetector

    @classmethod
    def build(cls, series: CandleSeries, config: DetectionConfig) -> "PatternContext":
        return cls(
            series=series,
            config=config,
            volatility=VolatilityEstimator(config.volatility),
            trend=TrendAnalyzer(config.trend),
            breakout=BreakoutDetector(config.breakout),
        )


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

_VALIDATORS: dict[PatternType, Type["PatternValidator"]] = {}


def register_validator(pattern_type: PatternType) -> Callable[[Type["PatternValidator"]], Type["PatternValidator"]]:
    def decorator(cls: Type["PatternValidator"]) -> Type["PatternValidator"]:
        cls.pattern_type = pattern_type
        _VALIDATORS[pattern_type] = cls
        return cls
    return decorator


def get_validator(pattern_type: PatternType | str) -> Type["PatternValidator"]:
    try:
        return _VALIDATORS[PatternType(pattern_type)]
    except (KeyError, ValueError):
        raise UnknownPatternError(str(getattr(pattern_type, "value", pattern_type))) from None


def registered_patterns() -> list[PatternType]:
    return [p for p in PatternType if p in _VALIDATORS]


# ──────────────────────────────────────────────
# Base Validator
# ──────────────────────────────────────────────

class PatternValidator:
    """Structural validation and scoring of one candidate tuple."""

    pattern_type: PatternType
    role: PointRole = PointRole.PEAK
    direction: Direction = Direction.BEARISH
    arity: int = 2
    breakout_key: str = "breakoutPoint"

    def __init__(self, context: PatternContext, config: Optional[PatternConfig] = None):
        self.context = context
        self.series = context.series
        self.config = config or context.config.for_pattern(self.pattern_type)
        self.scorer = ConfidenceScorer(self.config.weights)
        self.rejections: Counter[str] = Counter()

    def validate(self, candidate: PatternCandidate) -> Optional[PatternResult]:
        raise NotImplementedError

    # ── Orientation ──

    @property
    def bearish(self) -> bool:
        return self.direction is Direction.BEARISH

    @property
    def prior_trend(self) -> TrendDirection:
        return TrendDirection.UPTREND if self.bearish else TrendDirection.DOWNTREND

    # ── Shared checks ──

    def reject(self, reason: str) -> None:
        self.rejections[reason] += 1
        return None

    def spacing_ok(self, points: Sequence[TurningPoint]) -> bool:
        cfg = self.config
        for a, b in zip(points, points[1:]):
            gap = b.index - a.index
            if gap < cfg.min_distance or gap > cfg.max_distance:
                return False
        return True

    def regime_at(self, index: int) -> tuple[float, VolatilityRegime]:
        ratio = self.context.volatility.atr_ratio(self.series, index)
        return ratio, self.context.volatility.regime(ratio)

    @staticmethod
    def scale(value: float, regime: VolatilityRegime, factor: float) -> float:
        """Widen a threshold in high volatility, narrow it in low volatility."""
        if regime is VolatilityRegime.HIGH:
            return value * factor
        if regime is VolatilityRegime.LOW:
            return value / factor
        return value

    def level_difference(self, prices: Sequence[float]) -> float:
        """Largest gap from the extreme, as a fraction of the extreme."""
        extreme = max(prices) if self.bearish else min(prices)
        if extreme <= 0:
            return float("inf")
        return max(abs(p - extreme) for p in prices) / extreme

    def intermediate(self, a: TurningPoint, b: TurningPoint) -> Optional[TurningPoint]:
        """Bar-level opposite extreme strictly between two points."""
        return self.series.extreme_between(a.index + 1, b.index, self.role.opposite)

    def reversal(self, a: TurningPoint, middle: TurningPoint, b: TurningPoint) -> float:
        """Retracement of ``middle`` measured from the nearer of its neighbours."""
        if self.bearish:
            ref = min(a.price, b.price)
            return (ref - middle.price) / ref if ref > 0 else 0.0
        ref = max(a.price, b.price)
        return (middle.price - ref) / ref if ref > 0 else 0.0

    def reversals_ok(self, depths: Sequence[float], minimum: float) -> bool:
        return all(at_least(depth, minimum) for depth in depths)

    def levels_ok(self, difference: float, tolerance: float) -> bool:
        return within(difference, tolerance)

    def find_breakout(
        self,
        candidate: PatternCandidate,
        neckline: NecklineModel,
        regime: VolatilityRegime,
    ) -> BreakoutSignal:
        return self.context.breakout.detect(
            self.series,
            candidate.last,
            neckline,
            self.direction,
            regime=regime,
            first_index=candidate.first.index,
            allow_forming=self.config.allow_forming,
        )

    # ── Result assembly ──

    def confidence(self, sub_scores: dict[str, float], signal: BreakoutSignal) -> float:
        score = self.scorer.score(sub_scores)
        if signal.status is BreakoutStatus.FORMING:
            score = round(clamp(score, self.config.forming_confidence_floor,
                                self.config.forming_confidence_cap), 2)
        return score

    def build_result(
        self,
        candidate: PatternCandidate,
        named_points: dict[str, TurningPoint],
        neckline: NecklineModel,
        signal: BreakoutSignal,
        height: float,
        confidence: float,
        metrics: dict,
    ) -> PatternResult:
        key_points: dict[str, KeyPoint] = {"startPoint": candidate.anchor.to_key_point()}
        for name, point in named_points.items():
            key_points[name] = point.to_key_point()
        key_points[self.breakout_key] = signal.to_key_point()

        level = neckline.value_at(signal.index)
        target = level - height if self.bearish else level + height
        return PatternResult(
            pattern_type=self.pattern_type,
            confidence=confidence,
            key_points=key_points,
            neckline_level=level,
            neckline=neckline,
            price_target=target,
            pattern_height=height,
            timespan_days=self.series.days_between(candidate.first.index, signal.index),
            breakout_status=signal.status,
            forming=signal.status is BreakoutStatus.FORMING,
            metrics=metrics,
        )
