"""
ChartWatch — Head-and-Shoulders Validators

Regular (top) and inverse (bottom) head-and-shoulders. Unlike the double and
triple formations the neckline is sloped: a line through the two reactions
flanking the head. Both variants may report a still-forming pattern when the
right shoulder sits at the end of the data.
"""

from __future__ import annotations

from typing import Optional

import structlog

from chartwatch.engines.scoring import clamp, head_volume_score, trend_alignment_score
from chartwatch.engines.validation import PatternCandidate, PatternValidator, register_validator
from chartwatch.models import Direction, NecklineModel, PatternResult, PatternType, PointRole

log = structlog.get_logger(__name__)


class HeadAndShouldersValidator(PatternValidator):
    arity = 3
    breakout_key = "necklineBreak"
    reaction_names: tuple[str, str]

    def validate(self, candidate: PatternCandidate) -> Optional[PatternResult]:
        cfg = self.config
        left, head, right = candidate.points

        if not self.spacing_ok(candidate.points):
            return self.reject("spacing")

        ratio, regime = self.regime_at(right.index)

        # ── Head dominance ──
        required = self.scale(cfg.min_head_prominence, regime, cfg.head_adjustment)
        prominence = min(self._prominence(head.price, left.price), self._prominence(head.price, right.price))
        if not self.reversals_ok([prominence], required):
            return self.reject("head_not_dominant")

        # ── Shoulder symmetry ──
        tolerance = self.scale(cfg.max_shoulder_difference, regime, cfg.shoulder_adjustment)
        difference = self.level_difference((left.price, right.price))
        if not self.levels_ok(difference, tolerance):
            return self.reject("shoulder_difference")

        # ── Reactions either side of the head ──
        left_reaction = self.intermediate(left, head)
        right_reaction = self.intermediate(head, right)
        if left_reaction is None or right_reaction is None:
            return self.reject("no_intermediate")

        min_reversal = self.scale(cfg.min_reversal, regime, cfg.reversal_adjustment)
        depths = (
            self.reversal(left, left_reaction, head),
            self.reversal(head, right_reaction, right),
        )
        if not self.reversals_ok(depths, min_reversal):
            return self.reject("shallow_reversal")

        neckline = NecklineModel.through(
            left_reaction.index, left_reaction.price,
            right_reaction.index, right_reaction.price,
        )
        head_line = neckline.value_at(head.index)
        height = head.price - head_line if self.bearish else head_line - head.price
        if height <= 0:
            return self.reject("head_inside_neckline")

        signal = self.find_breakout(candidate, neckline, regime)
        if not signal.found:
            return self.reject("no_breakout")

        average_price = (left.price + head.price + right.price) / 3
        trend = self.context.trend.analyze(self.series, left.index)
        sub_scores = {
            "head_prominence": min(prominence / (2 * required), 1.0) if required > 0 else 1.0,
            "shoulder_symmetry": clamp(1 - difference / tolerance) if tolerance > 0 else 1.0,
            "neckline_quality": max(1 - abs(neckline.slope) / average_price * 100, 0.0),
            "volume": head_volume_score(left.volume, head.volume, right.volume),
            "trend": trend_alignment_score(trend, self.prior_trend),
            "breakout": signal.strength,
        }
        confidence = self.confidence(sub_scores, signal)

        left_span = head.index - left.index
        right_span = right.index - head.index
        time_asymmetry = abs(left_span - right_span) / min(left_span, right_span)
        if time_asymmetry > cfg.time_symmetry_tolerance:
            log.debug(
                "time_asymmetry",
                pattern=self.pattern_type.value,
                left_span=left_span,
                right_span=right_span,
                asymmetry=round(time_asymmetry, 2),
            )

        left_name, right_name = self.reaction_names
        return self.build_result(
            candidate,
            {
                "leftShoulder": left,
                left_name: left_reaction,
                "head": head,
                right_name: right_reaction,
                "rightShoulder": right,
            },
            neckline,
            signal,
            height,
            confidence,
            metrics={
                "headProminence": round(prominence, 4),
                "shoulderDifference": round(difference, 4),
                "shoulderTolerance": round(tolerance, 4),
                "leftReversal": round(depths[0], 4),
                "rightReversal": round(depths[1], 4),
                "necklineSlope": round(neckline.slope, 6),
                "headProminenceScore": round(sub_scores["head_prominence"], 2),
                "shoulderSymmetryScore": round(sub_scores["shoulder_symmetry"], 2),
                "necklineQuality": round(sub_scores["neckline_quality"], 2),
                "volumeScore": round(sub_scores["volume"], 2),
                "trendScore": round(sub_scores["trend"], 2),
                "breakoutStrength": round(signal.strength, 2),
                "timeSymmetry": round(time_asymmetry, 2),
                "priorTrend": trend.direction.value,
                "volumeRatio": round(signal.volume_ratio, 2),
                "volatilityRatio": round(ratio, 4),
                "volatilityRegime": regime.value,
            },
        )

    def _prominence(self, head: float, shoulder: float) -> float:
        if shoulder <= 0:
            return 0.0
        return (head - shoulder) / shoulder if self.bearish else (shoulder - head) / shoulder


@register_validator(PatternType.HEAD_AND_SHOULDERS)
class HeadAndShouldersTopValidator(HeadAndShouldersValidator):
    role = PointRole.PEAK
    direction = Direction.BEARISH
    reaction_names = ("leftTrough", "rightTrough")


@register_validator(PatternType.INVERSE_HEAD_AND_SHOULDERS)
class InverseHeadAndShouldersValidator(HeadAndShouldersValidator):
    role = PointRole.TROUGH
    direction = Direction.BULLISH
    reaction_names = ("leftPeak", "rightPeak")
