"""
ChartWatch — Chart Overlays

Turns a detected pattern into the three line segments a chart renderer
draws on top of the candles: neckline, pattern outline and target
projection.
"""

from __future__ import annotations

from chartwatch.engines.candles import next_day
from chartwatch.models import LinePoint, PatternLine, PatternResult, PatternType

NECKLINE_COLOR = "#0000ff"
OUTLINE_COLOR = "#800080"

# Key point where each neckline segment starts
_NECKLINE_START = {
    PatternType.DOUBLE_TOP: "firstPeak",
    PatternType.DOUBLE_BOTTOM: "firstBottom",
    PatternType.TRIPLE_TOP: "firstPeak",
    PatternType.TRIPLE_BOTTOM: "firstBottom",
    PatternType.HEAD_AND_SHOULDERS: "leftTrough",
    PatternType.INVERSE_HEAD_AND_SHOULDERS: "leftPeak",
}


def build_pattern_lines(result: PatternResult) -> list[PatternLine]:
    """Neckline, outline and target segments for a detected pattern."""
    breakout = result.breakout_point
    start = result.key_points[_NECKLINE_START[result.pattern_type]]

    neckline = PatternLine(
        type="neckline",
        points=[
            LinePoint(date=start.date, price=result.neckline.value_at(start.index)),
            LinePoint(date=breakout.date, price=result.neckline.value_at(breakout.index)),
        ],
        color=NECKLINE_COLOR,
        style="dashed",
    )

    ordered = sorted(result.key_points.values(), key=lambda kp: kp.index)
    outline = PatternLine(
        type="patternOutline",
        points=[LinePoint(date=kp.date, price=kp.price) for kp in ordered],
        color=OUTLINE_COLOR,
        style="solid",
    )

    target = PatternLine(
        type="targetLine",
        points=[
            LinePoint(date=breakout.date, price=result.neckline_level),
            LinePoint(date=next_day(breakout.date), price=result.price_target),
        ],
        color=OUTLINE_COLOR,
        style="dotted",
    )
    return [neckline, outline, target]
