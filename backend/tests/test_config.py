"""
ChartWatch — Configuration Test Suite

Tests for environment settings, the immutable detection config, overrides
and volatility-regime adjustments.
"""

import pytest


# ═══════════════════════════════════════════════
#  SETTINGS
# ═══════════════════════════════════════════════

class TestSettings:
    """Test environment-driven settings."""

    def test_defaults(self):
        from chartwatch.config import Settings
        settings = Settings()
        assert settings.log_level == "INFO"
        assert settings.high_confidence_threshold == 0.85
        assert settings.max_candidates == 10_000

    def test_env_prefix(self, monkeypatch):
        from chartwatch.config import Settings
        monkeypatch.setenv("CHARTWATCH_MAX_CANDIDATES", "50")
        monkeypatch.setenv("CHARTWATCH_LOG_JSON", "true")
        settings = Settings()
        assert settings.max_candidates == 50
        assert settings.log_json is True

    def test_build_detection_config_uses_settings(self, monkeypatch):
        from chartwatch.config import Settings, build_detection_config
        monkeypatch.setenv("CHARTWATCH_HIGH_CONFIDENCE_THRESHOLD", "0.9")
        config = build_detection_config(settings=Settings())
        assert config.high_confidence_threshold == 0.9

    def test_get_settings_cached(self):
        from chartwatch.config import get_settings
        assert get_settings() is get_settings()


# ═══════════════════════════════════════════════
#  DETECTION CONFIG
# ═══════════════════════════════════════════════

class TestDetectionConfig:
    """Test per-pattern defaults and validation."""

    def test_pattern_defaults(self):
        from chartwatch.config import DetectionConfig
        config = DetectionConfig()
        assert config.double_top.min_candles == 60
        assert config.double_top.max_level_difference == 0.12
        assert config.double_bottom.min_candles == 30
        assert config.double_bottom.min_reversal == 0.10
        assert config.triple_top.min_distance == 5
        assert config.triple_bottom.max_level_difference == 0.05
        assert config.head_and_shoulders.allow_forming is True
        assert config.inverse_head_and_shoulders.min_head_prominence == 0.02
        assert config.inverse_head_and_shoulders.max_shoulder_difference == 0.25

    def test_for_pattern(self):
        from chartwatch.config import DetectionConfig
        from chartwatch.models import PatternType
        config = DetectionConfig()
        assert config.for_pattern(PatternType.TRIPLE_TOP) is config.triple_top
        assert config.for_pattern(PatternType.INVERSE_HEAD_AND_SHOULDERS) is config.inverse_head_and_shoulders

    def test_weights_sum_to_one(self):
        from chartwatch.config import DetectionConfig
        config = DetectionConfig()
        for cfg in (config.double_top, config.triple_top, config.head_and_shoulders):
            assert sum(cfg.weights.model_dump().values()) == pytest.approx(1.0)

    def test_bad_weights_rejected(self):
        from pydantic import ValidationError
        from chartwatch.config import ExtremaWeights
        with pytest.raises(ValidationError):
            ExtremaWeights(similarity=0.5)

    def test_inverted_spacing_rejected(self):
        from pydantic import ValidationError
        from chartwatch.config import ExtremaPatternConfig
        with pytest.raises(ValidationError):
            ExtremaPatternConfig(min_distance=20, max_distance=10)

    def test_frozen(self):
        from pydantic import ValidationError
        from chartwatch.config import DetectionConfig
        config = DetectionConfig()
        with pytest.raises(ValidationError):
            config.max_candidates = 5


# ═══════════════════════════════════════════════
#  OVERRIDES & REGIME ADJUSTMENTS
# ═══════════════════════════════════════════════

class TestOverrides:
    """Test deep-merged overrides and regime scaling."""

    def test_deep_merge_keeps_siblings(self):
        from chartwatch.config import DetectionConfig
        base = DetectionConfig()
        config = base.with_overrides({"double_top": {"min_reversal": 0.05}})
        assert config.double_top.min_reversal == 0.05
        assert config.double_top.max_level_difference == 0.12
        assert base.double_top.min_reversal == 0.04

    def test_nested_weight_override(self):
        from chartwatch.config import DetectionConfig
        config = DetectionConfig().with_overrides({
            "double_top": {"weights": {"similarity": 0.40, "trend": 0.15}},
        })
        assert config.double_top.weights.similarity == 0.40
        assert config.double_top.weights.depth == 0.20

    def test_invalid_override_rejected(self):
        from pydantic import ValidationError
        from chartwatch.config import DetectionConfig
        with pytest.raises(ValidationError):
            DetectionConfig().with_overrides({"double_top": {"no_such_threshold": 1}})
        with pytest.raises(ValidationError):
            DetectionConfig().with_overrides({"double_top": {"weights": {"similarity": 0.9}}})

    def test_empty_override_returns_same(self):
        from chartwatch.config import DetectionConfig
        config = DetectionConfig()
        assert config.with_overrides(None) is config
        assert config.with_overrides({}) is config

    def test_high_regime_widens(self):
        from chartwatch.config import DetectionConfig
        from chartwatch.models import PatternType, VolatilityRegime
        config = DetectionConfig().adjusted_for(PatternType.DOUBLE_TOP, VolatilityRegime.HIGH)
        assert config.double_top.max_level_difference == pytest.approx(0.144)
        assert config.double_top.min_reversal == pytest.approx(0.06)
        # Other patterns untouched
        assert config.double_bottom.max_level_difference == 0.06

    def test_low_regime_tightens(self):
        from chartwatch.config import DetectionConfig
        from chartwatch.models import PatternType, VolatilityRegime
        config = DetectionConfig().adjusted_for(PatternType.HEAD_AND_SHOULDERS, VolatilityRegime.LOW)
        assert config.head_and_shoulders.max_shoulder_difference == pytest.approx(0.135)
        assert config.head_and_shoulders.min_reversal == pytest.approx(0.032)

    def test_normal_regime_unchanged(self):
        from chartwatch.config import DetectionConfig
        from chartwatch.models import PatternType, VolatilityRegime
        config = DetectionConfig()
        assert config.adjusted_for(PatternType.TRIPLE_TOP, VolatilityRegime.NORMAL) is config
