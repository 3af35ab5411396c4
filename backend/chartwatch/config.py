"""
ChartWatch — Configuration Management

Two layers:

* ``Settings`` — process-level settings loaded from the environment / .env
  (prefix ``CHARTWATCH_``), cached by ``get_settings()``.
* ``DetectionConfig`` — the immutable per-call threshold value handed to the
  engines. Built once from defaults plus caller overrides by
  ``build_detection_config()`` and never mutated afterwards.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chartwatch.models import PatternType, VolatilityRegime


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CHARTWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Logging ──
    log_level: str = "INFO"
    log_json: bool = False
    slow_span_ms: float = 5000.0

    # ── Detection ──
    high_confidence_threshold: float = 0.85
    max_candidates: int = 10_000

    # ── Market Data ──
    default_lookback_days: int = 365
    max_lookback_days: int = 365 * 10


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()


# ──────────────────────────────────────────────
# Detection Thresholds
# ──────────────────────────────────────────────

class FrozenConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class VolatilityConfig(FrozenConfig):
    atr_period: int = Field(14, ge=1)
    high_threshold: float = 0.02
    low_threshold: float = 0.01
    # Close-to-close return volatility used for series-level adjustments
    return_lookback: int = Field(30, ge=2)
    high_return_volatility: float = 0.02
    low_return_volatility: float = 0.01


class TrendConfig(FrozenConfig):
    lookback: int = Field(20, ge=3)
    sideways_threshold: float = 0.03
    strength_cap: float = Field(0.10, gt=0)


class TurningPointConfig(FrozenConfig):
    min_window: int = Field(2, ge=1)
    max_window: int = 15
    min_significance: float = Field(0.003, ge=0)
    high_volatility_scale: float = 0.75
    low_volatility_scale: float = 1.25

    @model_validator(mode="after")
    def _check_bounds(self) -> "TurningPointConfig":
        if self.max_window < self.min_window:
            raise ValueError("max_window must be >= min_window")
        return self


class BreakoutConfig(FrozenConfig):
    search_window: int = Field(30, ge=1)
    threshold: float = 0.02
    high_volatility_threshold: float = 0.04
    low_volatility_threshold: float = 0.01
    volume_lookback: int = Field(10, ge=1)
    partial_move: float = 0.03
    partial_move_window: int = 10
    partial_move_min_bars: int = 5
    forming_tail_bars: int = 20
    forming_tail_fraction: float = 0.2

    def threshold_for(self, regime: VolatilityRegime) -> float:
        if regime is VolatilityRegime.HIGH:
            return self.high_volatility_threshold
        if regime is VolatilityRegime.LOW:
            return self.low_volatility_threshold
        return self.threshold


class RegimeAdjustment(FrozenConfig):
    """Series-level scaling applied when return volatility is extreme."""
    tolerance_scale: float = 1.0
    reversal_scale: float = 1.0


def _check_weights(weights: BaseModel) -> None:
    total = sum(weights.model_dump().values())
    if abs(total - 1.0) > 1e-6:
        raise ValueError(f"Score weights must sum to 1.0, got {total:.4f}")


class ExtremaWeights(FrozenConfig):
    similarity: float = 0.30
    depth: float = 0.20
    volume: float = 0.15
    trend: float = 0.25
    breakout: float = 0.10

    @model_validator(mode="after")
    def _sum_to_one(self) -> "ExtremaWeights":
        _check_weights(self)
        return self


class HeadAndShouldersWeights(FrozenConfig):
    head_prominence: float = 0.20
    shoulder_symmetry: float = 0.20
    neckline_quality: float = 0.10
    volume: float = 0.15
    trend: float = 0.15
    breakout: float = 0.20

    @model_validator(mode="after")
    def _sum_to_one(self) -> "HeadAndShouldersWeights":
        _check_weights(self)
        return self


class PatternConfig(FrozenConfig):
    """Thresholds shared by every formation."""
    min_candles: int = Field(60, ge=1)
    min_distance: int = Field(10, ge=1)
    max_distance: int = Field(60, ge=1)
    min_reversal: float = 0.04
    reversal_adjustment: float = 2.0
    allow_forming: bool = False
    forming_confidence_floor: float = 0.30
    forming_confidence_cap: float = 0.60

    @model_validator(mode="after")
    def _check_spacing(self) -> "PatternConfig":
        if self.max_distance < self.min_distance:
            raise ValueError("max_distance must be >= min_distance")
        return self


class ExtremaPatternConfig(PatternConfig):
    """Double and triple formations."""
    max_level_difference: float = 0.12
    tolerance_adjustment: float = 1.25
    weights: ExtremaWeights = ExtremaWeights()

    def scaled(self, tolerance_scale: float, reversal_scale: float) -> "ExtremaPatternConfig":
        return self.model_copy(update={
            "max_level_difference": self.max_level_difference * tolerance_scale,
            "min_reversal": self.min_reversal * reversal_scale,
        })


class HeadAndShouldersConfig(PatternConfig):
    min_distance: int = Field(5, ge=1)
    max_distance: int = Field(80, ge=1)
    allow_forming: bool = True
    min_head_prominence: float = 0.03
    head_adjustment: float = 1.5
    max_shoulder_difference: float = 0.15
    shoulder_adjustment: float = 1.3
    time_symmetry_tolerance: float = 0.40
    weights: HeadAndShouldersWeights = HeadAndShouldersWeights()

    def scaled(self, tolerance_scale: float, reversal_scale: float) -> "HeadAndShouldersConfig":
        return self.model_copy(update={
            "max_shoulder_difference": self.max_shoulder_difference * tolerance_scale,
            "min_reversal": self.min_reversal * reversal_scale,
        })


_TRIPLE_WEIGHTS = ExtremaWeights(similarity=0.25, depth=0.20, volume=0.15, trend=0.20, breakout=0.20)


class DetectionConfig(FrozenConfig):
    """Immutable threshold set for one detection call."""

    volatility: VolatilityConfig = VolatilityConfig()
    trend: TrendConfig = TrendConfig()
    turning_points: TurningPointConfig = TurningPointConfig()
    breakout: BreakoutConfig = BreakoutConfig()

    double_top: ExtremaPatternConfig = ExtremaPatternConfig()
    double_bottom: ExtremaPatternConfig = ExtremaPatternConfig(
        min_candles=30,
        max_level_difference=0.06,
        min_reversal=0.10,
    )
    triple_top: ExtremaPatternConfig = ExtremaPatternConfig(
        min_candles=50,
        min_distance=5,
        max_level_difference=0.05,
        weights=_TRIPLE_WEIGHTS,
    )
    triple_bottom: ExtremaPatternConfig = ExtremaPatternConfig(
        min_candles=50,
        min_distance=5,
        max_level_difference=0.05,
        weights=_TRIPLE_WEIGHTS,
    )
    head_and_shoulders: HeadAndShouldersConfig = HeadAndShouldersConfig()
    inverse_head_and_shoulders: HeadAndShouldersConfig = HeadAndShouldersConfig(
        min_head_prominence=0.02,
        max_shoulder_difference=0.25,
    )

    regime_adjustments: dict[VolatilityRegime, RegimeAdjustment] = {
        VolatilityRegime.HIGH: RegimeAdjustment(tolerance_scale=1.2, reversal_scale=1.5),
        VolatilityRegime.LOW: RegimeAdjustment(tolerance_scale=0.9, reversal_scale=0.8),
    }

    high_confidence_threshold: float = Field(0.85, ge=0.0, le=1.0)
    max_candidates: int = Field(10_000, ge=1)

    def for_pattern(self, pattern_type: PatternType) -> Union[ExtremaPatternConfig, HeadAndShouldersConfig]:
        return getattr(self, pattern_type.value.replace("-", "_"))

    def adjusted_for(self, pattern_type: PatternType, regime: VolatilityRegime) -> "DetectionConfig":
        """Return a copy with the pattern's tolerances scaled for a series regime."""
        adjustment = self.regime_adjustments.get(regime)
        if adjustment is None:
            return self
        field = pattern_type.value.replace("-", "_")
        scaled = self.for_pattern(pattern_type).scaled(
            adjustment.tolerance_scale, adjustment.reversal_scale
        )
        return self.model_copy(update={field: scaled})

    def with_overrides(self, overrides: Optional[Mapping[str, Any]] = None) -> "DetectionConfig":
        """Return a new validated config with ``overrides`` deep-merged in."""
        if not overrides:
            return self
        merged = _deep_merge(self.model_dump(), overrides)
        return DetectionConfig.model_validate(merged)


def _deep_merge(base: dict, overrides: Mapping[str, Any]) -> dict:
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def build_detection_config(
    overrides: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
) -> DetectionConfig:
    """Build the per-call detection config from settings and caller overrides."""
    settings = settings or get_settings()
    base = DetectionConfig(
        high_confidence_threshold=settings.high_confidence_threshold,
        max_candidates=settings.max_candidates,
    )
    return base.with_overrides(overrides)
