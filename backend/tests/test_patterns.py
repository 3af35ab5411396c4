"""
ChartWatch — Pattern Validator Test Suite

Detection of all six formations on synthetic series with hand-placed
turning points, plus boundary and forming-pattern behaviour.
"""

import pytest


def _engine():
    from chartwatch.config import DetectionConfig
    from chartwatch.engines.pattern_engine import PatternEngine
    return PatternEngine(DetectionConfig())


# ═══════════════════════════════════════════════
#  DOUBLE TOP / BOTTOM
# ═══════════════════════════════════════════════

class TestDoubleTop:
    """Peaks 130 / 129 at bars 10 / 39 over a 120 valley."""

    def test_detected(self):
        from chartwatch.models import BreakoutStatus, PatternResult, PatternType
        from mock_data.simulated_patterns import double_top
        result = _engine().detect_double_top(double_top())
        assert isinstance(result, PatternResult)
        assert result.pattern_type is PatternType.DOUBLE_TOP
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert result.confidence > 0.85
        assert result.forming is False

    def test_geometry(self):
        from mock_data.simulated_patterns import double_top
        result = _engine().detect_double_top(double_top())
        kp = result.key_points
        assert list(kp) == ["startPoint", "firstPeak", "valley", "secondPeak", "breakoutPoint"]
        assert (kp["firstPeak"].index, kp["valley"].index, kp["secondPeak"].index) == (10, 24, 39)
        assert kp["firstPeak"].price == 130.0
        assert kp["secondPeak"].price == 129.0
        assert kp["startPoint"].index < 10
        assert result.neckline.is_flat
        assert result.neckline_level == 120.0
        assert result.pattern_height == pytest.approx(9.5)
        assert result.price_target == pytest.approx(110.5)

    def test_breakout_point(self):
        from mock_data.simulated_patterns import double_top
        result = _engine().detect_double_top(double_top())
        breakout = result.key_points["breakoutPoint"]
        assert breakout.index == 50
        assert breakout.date == "2024-02-20"
        assert breakout.price == 115.0
        assert breakout.volume_ratio == 2.5
        assert result.timespan_days == 40

    def test_metrics(self):
        from mock_data.simulated_patterns import double_top
        metrics = _engine().detect_double_top(double_top()).metrics
        assert metrics["levelDifference"] == pytest.approx(1 / 130, abs=1e-4)
        assert metrics["priorTrend"] == "uptrend"
        assert metrics["similarityScore"] == 1.0
        assert metrics["volumeScore"] == 0.9

    def test_no_breakout_rejected(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import double_top
        # Cut three bars after the second peak: no close below the valley yet
        result = _engine().detect_double_top(double_top()[:43], overrides={"double_top": {"min_candles": 30}})
        assert isinstance(result, NotDetected)
        assert result.reason == "no valid double top pattern found"
        assert result.candidates_evaluated == 1

    def test_invalid_bar_counts_against_minimum(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import double_top
        candles = double_top()
        candles[24]["close"] = None
        result = _engine().detect_double_top(candles)
        assert isinstance(result, NotDetected)
        assert result.reason == "insufficient data: need at least 60 candles, got 59"


class TestDoubleBottom:
    """Bottoms 100 / 101 at bars 10 / 39 under a 115 peak."""

    def test_detected(self):
        from chartwatch.models import BreakoutStatus, PatternResult
        from mock_data.simulated_patterns import double_bottom
        result = _engine().detect_double_bottom(double_bottom())
        assert isinstance(result, PatternResult)
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert result.confidence > 0.85

    def test_geometry(self):
        from mock_data.simulated_patterns import double_bottom
        result = _engine().detect_double_bottom(double_bottom())
        kp = result.key_points
        assert list(kp) == ["startPoint", "firstBottom", "peak", "secondBottom", "breakoutPoint"]
        assert (kp["firstBottom"].index, kp["peak"].index, kp["secondBottom"].index) == (10, 24, 39)
        assert result.neckline_level == 115.0
        assert result.pattern_height == pytest.approx(14.5)
        assert result.price_target == pytest.approx(129.5)
        assert kp["breakoutPoint"].index >= 50

    def test_invalid_bar_skipped(self):
        from chartwatch.models import PatternResult
        from mock_data.simulated_patterns import double_bottom
        candles = double_bottom()
        candles[24]["high"] = None
        result = _engine().detect_double_bottom(candles)
        assert isinstance(result, PatternResult)
        # Bar 24 is ignored; the highest remaining bar between the bottoms is 25
        assert result.key_points["peak"].index == 25
        assert result.neckline_level == pytest.approx(114.1333, abs=1e-3)


# ═══════════════════════════════════════════════
#  TRIPLE TOP / BOTTOM
# ═══════════════════════════════════════════════

class TestTriplePatterns:
    """Three tests of one level with two reactions."""

    def test_triple_top(self):
        from chartwatch.models import BreakoutStatus, PatternResult
        from mock_data.simulated_patterns import triple_top
        result = _engine().detect_triple_top(triple_top())
        assert isinstance(result, PatternResult)
        kp = result.key_points
        assert list(kp) == [
            "startPoint", "firstPeak", "firstTrough", "secondPeak",
            "secondTrough", "thirdPeak", "breakoutPoint",
        ]
        assert [kp[k].index for k in ("firstPeak", "secondPeak", "thirdPeak")] == [10, 30, 50]
        assert [kp[k].index for k in ("firstTrough", "secondTrough")] == [20, 40]
        # Neckline at the higher of the two troughs
        assert result.neckline_level == 121.0
        assert result.pattern_height == pytest.approx(8.5)
        assert result.price_target == pytest.approx(112.5)
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert kp["breakoutPoint"].index == 60
        assert result.confidence > 0.85

    def test_triple_bottom(self):
        from chartwatch.models import PatternResult
        from mock_data.simulated_patterns import triple_bottom
        result = _engine().detect_triple_bottom(triple_bottom())
        assert isinstance(result, PatternResult)
        kp = result.key_points
        assert [kp[k].index for k in ("firstBottom", "secondBottom", "thirdBottom")] == [10, 30, 50]
        assert [kp[k].price for k in ("firstBottom", "secondBottom", "thirdBottom")] == [100.0, 100.5, 101.0]
        # Neckline at the lower of the two peaks
        assert result.neckline_level == 109.0
        assert result.pattern_height == pytest.approx(8.5)
        assert result.price_target == pytest.approx(117.5)
        assert kp["breakoutPoint"].index == 60

    def test_double_series_has_no_triple(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import double_top
        result = _engine().detect_triple_top(double_top())
        assert isinstance(result, NotDetected)
        assert result.reason.startswith("insufficient points")


# ═══════════════════════════════════════════════
#  HEAD AND SHOULDERS
# ═══════════════════════════════════════════════

class TestHeadAndShoulders:
    """Shoulders 120 / 119, head 130, neckline rising from 110 to 111."""

    def test_detected(self):
        from chartwatch.models import BreakoutStatus, PatternResult, PatternType
        from mock_data.simulated_patterns import head_and_shoulders
        result = _engine().detect_head_and_shoulders(head_and_shoulders())
        assert isinstance(result, PatternResult)
        assert result.pattern_type is PatternType.HEAD_AND_SHOULDERS
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert result.confidence > 0.85

    def test_sloped_neckline(self):
        from mock_data.simulated_patterns import head_and_shoulders
        result = _engine().detect_head_and_shoulders(head_and_shoulders())
        kp = result.key_points
        assert list(kp) == [
            "startPoint", "leftShoulder", "leftTrough", "head",
            "rightTrough", "rightShoulder", "necklineBreak",
        ]
        assert (kp["leftTrough"].index, kp["rightTrough"].index) == (22, 46)
        assert result.neckline.slope == pytest.approx(1 / 24)
        assert result.neckline.value_at(22) == pytest.approx(110.0)
        assert kp["necklineBreak"].index == 66
        assert result.neckline_level == pytest.approx(111.8333, abs=1e-3)
        # Height measured from the neckline under the head
        assert result.pattern_height == pytest.approx(19.5)
        assert result.price_target == pytest.approx(92.3333, abs=1e-3)
        assert result.timespan_days == 54

    def test_metrics(self):
        from mock_data.simulated_patterns import head_and_shoulders
        metrics = _engine().detect_head_and_shoulders(head_and_shoulders()).metrics
        assert metrics["headProminence"] == pytest.approx(10 / 120, abs=1e-4)
        assert metrics["shoulderDifference"] == pytest.approx(1 / 120, abs=1e-4)
        assert metrics["timeSymmetry"] == pytest.approx(0.09, abs=0.01)

    def test_inverse(self):
        from chartwatch.models import PatternResult, PatternType
        from mock_data.simulated_patterns import inverse_head_and_shoulders
        result = _engine().detect_inverse_head_and_shoulders(inverse_head_and_shoulders())
        assert isinstance(result, PatternResult)
        assert result.pattern_type is PatternType.INVERSE_HEAD_AND_SHOULDERS
        kp = result.key_points
        assert kp["head"].price == 100.0
        assert (kp["leftPeak"].index, kp["rightPeak"].index) == (22, 46)
        assert result.neckline_level == pytest.approx(118.1667, abs=1e-3)
        assert result.pattern_height == pytest.approx(19.5)
        assert result.price_target == pytest.approx(137.6667, abs=1e-3)
        assert result.confidence > 0.85

    def test_forming(self):
        from chartwatch.models import BreakoutStatus, PatternResult
        from mock_data.simulated_patterns import forming_head_and_shoulders
        result = _engine().detect_head_and_shoulders(forming_head_and_shoulders())
        assert isinstance(result, PatternResult)
        assert result.forming is True
        assert result.breakout_status is BreakoutStatus.FORMING
        assert result.key_points["necklineBreak"].index == 62
        assert result.key_points["necklineBreak"].status is BreakoutStatus.FORMING
        assert 0.3 <= result.confidence <= 0.6

    def test_forming_disabled(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import forming_head_and_shoulders
        result = _engine().detect_head_and_shoulders(
            forming_head_and_shoulders(),
            overrides={"head_and_shoulders": {"allow_forming": False}},
        )
        assert isinstance(result, NotDetected)

    def test_stale_pattern_not_forming(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import stale_head_and_shoulders
        # Last close rests on the neckline 71 bars after the right shoulder
        result = _engine().detect_head_and_shoulders(stale_head_and_shoulders())
        assert isinstance(result, NotDetected)

    def test_shoulders_too_uneven(self):
        from chartwatch.models import NotDetected
        from mock_data.simulated_patterns import head_and_shoulders
        result = _engine().detect_head_and_shoulders(
            head_and_shoulders(),
            overrides={"head_and_shoulders": {"max_shoulder_difference": 0.001}},
        )
        assert isinstance(result, NotDetected)


# ═══════════════════════════════════════════════
#  VALIDATOR BOUNDARIES
# ═══════════════════════════════════════════════

class TestValidatorBoundaries:
    """Tolerances are inclusive."""

    def _validate(self, max_level_difference):
        from chartwatch.config import DetectionConfig
        from chartwatch.engines.candles import CandleSeries
        from chartwatch.engines.double_patterns import DoubleTopValidator
        from chartwatch.engines.validation import PatternCandidate, PatternContext
        from chartwatch.models import PointRole
        from mock_data.simulated_patterns import double_top

        series = CandleSeries.from_records(double_top())
        config = DetectionConfig().with_overrides({
            "double_top": {"max_level_difference": max_level_difference, "tolerance_adjustment": 1.0},
        })
        validator = DoubleTopValidator(PatternContext.build(series, config))
        candidate = PatternCandidate(
            points=(series.point(10, PointRole.PEAK), series.point(39, PointRole.PEAK)),
            anchor=series.point(0, PointRole.TROUGH),
        )
        return validator, validator.validate(candidate)

    def test_difference_equal_to_tolerance_accepted(self):
        _, result = self._validate(1.0 / 130.0)
        assert result is not None

    def test_difference_above_tolerance_rejected(self):
        validator, result = self._validate(1.0 / 130.0 - 1e-6)
        assert result is None
        assert validator.rejections["level_difference"] == 1

    def test_registry(self):
        from chartwatch.engines import pattern_engine  # noqa: F401
        from chartwatch.engines.double_patterns import DoubleTopValidator
        from chartwatch.engines.validation import get_validator, registered_patterns
        from chartwatch.exceptions import UnknownPatternError
        from chartwatch.models import PatternType
        assert get_validator("double-top") is DoubleTopValidator
        assert registered_patterns() == list(PatternType)
        with pytest.raises(UnknownPatternError):
            get_validator("cup-and-handle")


# ═══════════════════════════════════════════════
#  VOLATILITY ADJUSTMENT
# ═══════════════════════════════════════════════

class TestVolatilityAdjustment:
    """Level tolerance and reversal depth follow the ATR regime at the last point."""

    def _validate(self, candles, max_level_difference):
        from chartwatch.config import DetectionConfig
        from chartwatch.engines.candles import CandleSeries
        from chartwatch.engines.double_patterns import DoubleTopValidator
        from chartwatch.engines.validation import PatternCandidate, PatternContext
        from chartwatch.models import PointRole

        series = CandleSeries.from_records(candles)
        config = DetectionConfig().with_overrides({
            "double_top": {"max_level_difference": max_level_difference, "tolerance_adjustment": 1.5},
        })
        validator = DoubleTopValidator(PatternContext.build(series, config))
        candidate = PatternCandidate(
            points=(series.point(10, PointRole.PEAK), series.point(39, PointRole.PEAK)),
            anchor=series.point(0, PointRole.TROUGH),
        )
        return validator, validator.validate(candidate)

    def test_high_regime_widens_tolerance(self):
        from chartwatch.models import BreakoutStatus
        from mock_data.simulated_patterns import double_top, widen
        # Bars span close ± 2.5: ATR ratio near 0.04, peaks 132 / 131
        _, result = self._validate(widen(double_top(), 2.5), 0.006)
        assert result is not None
        assert result.metrics["volatilityRegime"] == "high"
        assert result.metrics["volatilityRatio"] > 0.02
        assert result.metrics["levelDifference"] == pytest.approx(1 / 132, abs=1e-4)
        assert result.metrics["tolerance"] == pytest.approx(0.009)
        assert result.metrics["minReversal"] == pytest.approx(0.08)
        # High regime asks for a 4% close below the 118 neckline
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert result.key_points["breakoutPoint"].index == 54

    def test_high_regime_gap_beyond_widened_tolerance(self):
        from mock_data.simulated_patterns import double_top, widen
        validator, result = self._validate(widen(double_top(), 2.5), 0.005)
        # 0.005 * 1.5 still sits below the 1/132 gap
        assert result is None
        assert validator.rejections["level_difference"] == 1

    def test_low_regime_narrows_tolerance(self):
        from mock_data.simulated_patterns import double_top
        # Unadjusted 0.009 would admit the 1/130 gap; low regime cuts it to 0.006
        validator, result = self._validate(double_top(), 0.009)
        assert result is None
        assert validator.rejections["level_difference"] == 1

    def test_low_regime_relaxes_reversal(self):
        from chartwatch.models import BreakoutStatus
        from mock_data.simulated_patterns import double_top
        _, result = self._validate(double_top(), 0.012)
        assert result is not None
        assert result.metrics["volatilityRegime"] == "low"
        assert result.metrics["volatilityRatio"] < 0.01
        assert result.metrics["tolerance"] == pytest.approx(0.008)
        assert result.metrics["minReversal"] == pytest.approx(0.02)
        assert result.breakout_status is BreakoutStatus.CONFIRMED
        assert result.key_points["breakoutPoint"].index == 50
