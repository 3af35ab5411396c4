"""
ChartWatch — Triple Top / Triple Bottom Validators

Three tests of one level with two intermediate reversals. The neckline is
flat at the higher trough (tops) or the lower peak (bottoms), so both
reversals must hold before the breakout counts.
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


class TriplePatternValidator(PatternValidator):
    arity = 3
    point_names: tuple[str, str, str, str, str]

    def validate(self, candidate: PatternCandidate) -> Optional[PatternResult]:
        cfg = self.config
        first, second, third = candidate.points

        if not self.spacing_ok(candidate.points):
            return self.reject("spacing")

        ratio, regime = self.regime_at(third.index)
        tolerance = self.scale(cfg.max_level_difference, regime, cfg.tolerance_adjustment)
        prices = (first.price, second.price, third.price)
        difference = self.level_difference(prices)
        if not self.levels_ok(difference, tolerance):
            return self.reject("level_difference")

        left = self.intermediate(first, second)
        right = self.intermediate(second, third)
        if left is None or right is None:
            return self.reject("no_intermediate")

        min_reversal = self.scale(cfg.min_reversal, regime, cfg.reversal_adjustment)
        depths = (self.reversal(first, left, second), self.reversal(second, right, third))
        if not self.reversals_ok(depths, min_reversal):
            return self.reject("shallow_reversal")

        if self.bearish:
            level = max(left.price, right.price)
        else:
            level = min(left.price, right.price)
        neckline = NecklineModel.flat(level)
        signal = self.find_breakout(candidate, neckline, regime)
        if not signal.found:
            return self.reject("no_breakout")

        trend = self.context.trend.analyze(self.series, first.index)
        sub_scores = {
            "similarity": similarity_score(difference, tolerance),
            "depth": sum(depth_score(d, min_reversal) for d in depths) / len(depths),
            "volume": volume_sequence_score([first.volume, second.volume, third.volume]),
            "trend": trend_alignment_score(trend, self.prior_trend),
            "breakout": signal.strength,
        }
        confidence = self.confidence(sub_scores, signal)

        average = sum(prices) / len(prices)
        height = average - level if self.bearish else level - average

        names = self.point_names
        return self.build_result(
            candidate,
            dict(zip(names, (first, left, second, right, third))),
            neckline,
            signal,
            height,
            confidence,
            metrics={
                "levelDifference": round(difference, 4),
                "tolerance": round(tolerance, 4),
                "firstReversal": round(depths[0], 4),
                "secondReversal": round(depths[1], 4),
                "minReversal": round(min_reversal, 4),
                "similarityScore": round(sub_scores["similarity"], 2),
                "depthScore": round(sub_scores["depth"], 2),
                "volumeScore": round(sub_scores["volume"], 2),
                "trendScore": round(sub_scores["trend"], 2),
                "breakoutStrength": round(signal.strength, 2),
                "priorTrend": trend.direction.value,
                "volumeRatio": round(signal.volume_ratio, 2),
                "volatilityRatio": round(ratio, 4),
                "volatilityRegime": regime.value,
            },
        )


@register_validator(PatternType.TRIPLE_TOP)
class TripleTopValidator(TriplePatternValidator):
    role = PointRole.PEAK
    direction = Direction.BEARISH
    point_names = ("firstPeak", "firstTrough", "secondPeak", "secondTrough", "thirdPeak")


@register_validator(PatternType.TRIPLE_BOTTOM)
class TripleBottomValidator(TriplePatternValidator):
    role = PointRole.TROUGH
    direction = Direction.BULLISH
    point_names = ("firstBottom", "firstPeak", "secondBottom", "secondPeak", "thirdBottom")
