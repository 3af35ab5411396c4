"""
ChartWatch — Double Top / Double Bottom Validators

Two tests of the same level separated by a meaningful reversal. The
intermediate extreme defines a flat neckline; the pattern completes when
price closes through it.
"""

from __future__ import annotations

from typing import Optional

from chartwatch.engines.scoring import (
    depth_score,
    similarity_score,
    trend_alignment_score,
    volume_sequence_score,
)
from chartwatch.engines.validation import PatternCandidate, PatternValidator, register_validator
from chartwatch.models import Direction, NecklineModel, PatternResult, PatternType, PointRole


class DoublePatternValidator(PatternValidator):
    """Shared logic for both orientations; subclasses name the points."""

    arity = 2
    point_names: tuple[str, str, str]

    def validate(self, candidate: PatternCandidate) -> Optional[PatternResult]:
        cfg = self.config
        first, second = candidate.points

        if not self.spacing_ok(candidate.points):
            return self.reject("spacing")

        ratio, regime = self.regime_at(second.index)
        tolerance = self.scale(cfg.max_level_difference, regime, cfg.tolerance_adjustment)
        difference = self.level_difference((first.price, second.price))
        if not self.levels_ok(difference, tolerance):
            return self.reject("level_difference")

        middle = self.intermediate(first, second)
        if middle is None:
            return self.reject("no_intermediate")
        min_reversal = self.scale(cfg.min_reversal, regime, cfg.reversal_adjustment)
        depth = self.reversal(first, middle, second)
        if not self.reversals_ok([depth], min_reversal):
            return self.reject("shallow_reversal")

        neckline = NecklineModel.flat(middle.price)
        signal = self.find_breakout(candidate, neckline, regime)
        if not signal.found:
            return self.reject("no_breakout")

        trend = self.context.trend.analyze(self.series, first.index)
        sub_scores = {
            "similarity": similarity_score(difference, tolerance),
            "depth": depth_score(depth, min_reversal),
            "volume": volume_sequence_score([first.volume, second.volume]),
            "trend": trend_alignment_score(trend, self.prior_trend),
            "breakout": signal.strength,
        }
        confidence = self.confidence(sub_scores, signal)

        average = (first.price + second.price) / 2
        height = average - middle.price if self.bearish else middle.price - average

        first_name, middle_name, second_name = self.point_names
        return self.build_result(
            candidate,
            {first_name: first, middle_name: middle, second_name: second},
            neckline,
            signal,
            height,
            confidence,
            metrics={
                "levelDifference": round(difference, 4),
                "tolerance": round(tolerance, 4),
                "reversalDepth": round(depth, 4),
                "minReversal": round(min_reversal, 4),
                "similarityScore": round(sub_scores["similarity"], 2),
                "depthScore": round(sub_scores["depth"], 2),
                "volumeScore": round(sub_scores["volume"], 2),
                "trendScore": round(sub_scores["trend"], 2),
                "breakoutStrength": round(signal.strength, 2),
                "priorTrend": trend.direction.value,
                "trendStrength": round(trend.strength, 2),
                "volumeRatio": round(signal.volume_ratio, 2),
                "volatilityRatio": round(ratio, 4),
                "volatilityRegime": regime.value,
            },
        )


@register_validator(PatternType.DOUBLE_TOP)
class DoubleTopValidator(DoublePatternValidator):
    role = PointRole.PEAK
    direction = Direction.BEARISH
    point_names = ("firstPeak", "valley", "secondPeak")


@register_validator(PatternType.DOUBLE_BOTTOM)
class DoubleBottomValidator(DoublePatternValidator):
    role = PointRole.TROUGH
    direction = Direction.BULLISH
    point_names = ("firstBottom", "peak", "secondBottom")
