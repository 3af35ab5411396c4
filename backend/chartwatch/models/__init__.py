"""
ChartWatch — Pydantic Models

I/O schemas for the detection engine. Engines return these, the analysis
service assembles them, and ``to_dict()`` produces the camelCase wire shape
consumed by chart overlay builders.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class PatternType(str, Enum):
    """Supported reversal formations."""
    DOUBLE_TOP = "double-top"
    DOUBLE_BOTTOM = "double-bottom"
    TRIPLE_TOP = "triple-top"
    TRIPLE_BOTTOM = "triple-bottom"
    HEAD_AND_SHOULDERS = "head-and-shoulders"
    INVERSE_HEAD_AND_SHOULDERS = "inverse-head-and-shoulders"

    @property
    def display_name(self) -> str:
        return self.value.replace("-", " ").title()


class PointRole(str, Enum):
    PEAK = "peak"
    TROUGH = "trough"

    @property
    def opposite(self) -> "PointRole":
        return PointRole.TROUGH if self is PointRole.PEAK else PointRole.PEAK


class Direction(str, Enum):
    """Expected breakout direction of a formation."""
    BEARISH = "bearish"
    BULLISH = "bullish"


class TrendDirection(str, Enum):
    UPTREND = "uptrend"
    DOWNTREND = "downtrend"
    SIDEWAYS = "sideways"


class VolatilityRegime(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


class BreakoutStatus(str, Enum):
    """Breakout lifecycle as seen from the last bar of the input."""
    CONFIRMED = "confirmed"
    PARTIAL = "partial"
    FORMING = "forming"
    NONE = "none"


# ──────────────────────────────────────────────
# Base
# ──────────────────────────────────────────────

class WireModel(BaseModel):
    """Immutable model serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ──────────────────────────────────────────────
# Market Data
# ──────────────────────────────────────────────

class Candle(WireModel):
    """Single daily OHLCV bar."""
    date: str
    open: float
    high: float
    low: float
    close: float
    volume: int = Field(ge=0)


# ──────────────────────────────────────────────
# Pattern Geometry
# ──────────────────────────────────────────────

class KeyPoint(WireModel):
    """A named point of a formation.

    The breakout point additionally carries ``status`` and ``volume_ratio``.
    """
    date: str
    price: float
    volume: Optional[int] = None
    index: int
    status: Optional[BreakoutStatus] = None
    volume_ratio: Optional[float] = None


class NecklineModel(WireModel):
    """Neckline as a linear function of bar index.

    A flat neckline has ``slope == 0`` and ``intercept`` equal to its level.
    """
    slope: float = 0.0
    intercept: float

    @classmethod
    def flat(cls, level: float) -> "NecklineModel":
        return cls(slope=0.0, intercept=level)

    @classmethod
    def through(cls, i1: int, p1: float, i2: int, p2: float) -> "NecklineModel":
        if i2 == i1:
            return cls.flat((p1 + p2) / 2)
        slope = (p2 - p1) / (i2 - i1)
        return cls(slope=slope, intercept=p1 - slope * i1)

    @property
    def is_flat(self) -> bool:
        return self.slope == 0.0

    def value_at(self, index: int) -> float:
        return self.slope * index + self.intercept


# ──────────────────────────────────────────────
# Detection Results
# ──────────────────────────────────────────────

class PatternResult(WireModel):
    """A detected formation with its geometry, targets and sub-scores."""
    detected: Literal[True] = True
    pattern_type: PatternType
    confidence: float = Field(ge=0.0, le=1.0)
    key_points: dict[str, KeyPoint]
    neckline_level: float
    neckline: NecklineModel
    price_target: float
    pattern_height: float
    timespan_days: int
    breakout_status: BreakoutStatus
    forming: bool = False
    metrics: dict[str, Union[float, str, bool]] = Field(default_factory=dict)

    @property
    def breakout_point(self) -> KeyPoint:
        return next(kp for kp in self.key_points.values() if kp.status is not None)


class NotDetected(WireModel):
    """Typed 'no match' outcome with a human-readable reason."""
    detected: Literal[False] = False
    pattern_type: PatternType
    reason: str
    candidates_evaluated: int = 0


DetectionOutcome = Union[PatternResult, NotDetected]


# ──────────────────────────────────────────────
# Chart Overlays
# ──────────────────────────────────────────────

class LinePoint(WireModel):
    date: str
    price: float


class PatternLine(WireModel):
    """One overlay segment for a chart renderer."""
    type: Literal["neckline", "patternOutline", "targetLine"]
    points: list[LinePoint]
    color: str
    style: Literal["solid", "dashed", "dotted"]


class DateRange(WireModel):
    start: str
    end: str


class AnalysisResult(WireModel):
    """Full response for one ticker/pattern analysis request."""
    success: bool
    pattern: PatternType
    ticker: str
    date_range: DateRange
    pattern_data: Optional[PatternResult] = None
    chart_data: list[Candle] = Field(default_factory=list)
    pattern_lines: list[PatternLine] = Field(default_factory=list)
    message: Optional[str] = None
