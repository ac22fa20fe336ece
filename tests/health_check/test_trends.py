"""
Tests for trend analysis.

Tests cover:
- Least squares fit and degenerate input
- Classification precedence (volatile first)
- Polarity handling
- Prediction gating on r squared
- Trend aggregation
"""

from datetime import timedelta

import pytest

from health_check.config import TrendConfig
from health_check.exceptions import UnknownIndicatorError
from health_check.models import HealthState, HealthTrend, IndicatorType
from health_check.trends import (
    aggregate_trends,
    analyze_trend,
    determine_trend,
    infer_trend_from_states,
    linear_regression,
    trend_vote_confidence,
)
from tests.health_check.helpers import hourly_points


IMPROVING_LATENCY = [1000, 880, 820, 690, 610, 480]
VOLATILE_LATENCY = [100, 500, 100, 500, 100, 500]


# =============================================================
# TEST: Regression
# =============================================================

class TestLinearRegression:

    def test_perfect_line(self):
        result = linear_regression([0, 1, 2, 3], [1, 3, 5, 7])
        assert result.slope == pytest.approx(2.0)
        assert result.intercept == pytest.approx(1.0)
        assert result.r_squared == pytest.approx(1.0)

    def test_constant_series_has_zero_r_squared(self):
        result = linear_regression([0, 1, 2], [5, 5, 5])
        assert result.slope == 0.0
        assert result.r_squared == 0.0

    def test_no_x_variance(self):
        result = linear_regression([1, 1, 1], [1, 2, 3])
        assert result.slope == 0.0
        assert result.r_squared == 0.0

    def test_too_few_points(self):
        assert linear_regression([1], [1]).r_squared == 0.0
        assert linear_regression([1, 2], [1]).slope == 0.0


# =============================================================
# TEST: Classification
# =============================================================

class TestDetermineTrend:

    def test_low_r_squared_is_volatile(self):
        assert determine_trend(50.0, 0.29, higher_is_better=True) == HealthTrend.VOLATILE

    def test_volatile_takes_precedence_over_slope(self):
        assert determine_trend(-1000.0, 0.1, higher_is_better=False) == HealthTrend.VOLATILE

    def test_rising_throughput_improves(self):
        assert determine_trend(2.0, 0.9, higher_is_better=True) == HealthTrend.IMPROVING

    def test_rising_latency_degrades(self):
        assert determine_trend(2.0, 0.9, higher_is_better=False) == HealthTrend.DEGRADING

    def test_flat_is_stable(self):
        assert determine_trend(0.005, 0.9, higher_is_better=True) == HealthTrend.STABLE

    def test_custom_thresholds(self):
        config = TrendConfig(improving_slope_threshold=5.0, volatile_r_squared_max=0.1)
        assert determine_trend(2.0, 0.2, True, config) == HealthTrend.STABLE


# =============================================================
# TEST: Analysis
# =============================================================

class TestAnalyzeTrend:

    def test_improving_latency_with_prediction(self):
        """Six hourly points falling steadily: improving, prediction available."""
        analysis = analyze_trend(IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY))

        assert analysis.trend == HealthTrend.IMPROVING
        assert analysis.slope < 0
        assert analysis.r_squared >= 0.9
        assert analysis.predicted_state_in_1h == HealthState.HEALTHY
        assert analysis.change_percentage == pytest.approx(-52.0)
        assert len(analysis.data_points) == 6

    def test_volatile_series_has_no_prediction(self):
        analysis = analyze_trend(IndicatorType.LATENCY, hourly_points(VOLATILE_LATENCY))

        assert analysis.r_squared < 0.3
        assert analysis.trend == HealthTrend.VOLATILE
        assert analysis.predicted_state_in_1h is None

    def test_prediction_requires_fit(self):
        config = TrendConfig(prediction_r_squared_min=0.999)
        analysis = analyze_trend(
            IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY), config=config
        )
        assert analysis.trend == HealthTrend.IMPROVING
        assert analysis.predicted_state_in_1h is None

    def test_prediction_disabled(self):
        analysis = analyze_trend(
            IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY), predict_ahead_hours=0
        )
        assert analysis.predicted_state_in_1h is None

    def test_degrading_prediction_uses_thresholds(self):
        analysis = analyze_trend(
            IndicatorType.LATENCY, hourly_points([400, 800, 1200, 1600, 2000, 2400])
        )
        assert analysis.trend == HealthTrend.DEGRADING
        assert analysis.predicted_state_in_1h == HealthState.UNHEALTHY

    def test_constant_series_is_volatile(self):
        analysis = analyze_trend(IndicatorType.ERROR_RATE, hourly_points([1.0, 1.0, 1.0]))
        assert analysis.r_squared == 0.0
        assert analysis.trend == HealthTrend.VOLATILE

    def test_unsorted_points_are_ordered(self):
        points = hourly_points(IMPROVING_LATENCY)
        analysis = analyze_trend(IndicatorType.LATENCY, list(reversed(points)))
        assert analysis.trend == HealthTrend.IMPROVING
        assert analysis.data_points[0].value == 1000

    def test_single_point_returns_none(self):
        assert analyze_trend(IndicatorType.LATENCY, hourly_points([100])) is None

    def test_zero_first_value_change(self):
        analysis = analyze_trend(IndicatorType.ERROR_RATE, hourly_points([0.0, 1.0, 2.0]))
        assert analysis.change_percentage == 0.0

    def test_confidence_is_r_squared(self):
        analysis = analyze_trend(IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY))
        assert analysis.confidence == analysis.r_squared

    def test_classifies_on_reported_r_squared(self):
        # raw r squared is ~0.9927, reported as 0.99
        config = TrendConfig(volatile_r_squared_max=0.991)
        analysis = analyze_trend(
            IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY), config=config
        )
        assert analysis.r_squared == 0.99
        assert analysis.confidence == 0.99
        assert analysis.trend == HealthTrend.VOLATILE

    def test_unknown_indicator_raises(self):
        with pytest.raises(UnknownIndicatorError) as exc_info:
            analyze_trend("cpu", hourly_points([1.0, 2.0]))
        assert exc_info.value.indicator_type == "cpu"

    def test_sub_hour_spacing(self):
        points = hourly_points([10.0, 20.0, 30.0])
        start = points[0].timestamp
        spaced = [
            p.__class__(timestamp=start + timedelta(minutes=30 * i), value=p.value, state=p.state)
            for i, p in enumerate(points)
        ]
        analysis = analyze_trend(IndicatorType.THROUGHPUT, spaced)
        # 10 per half hour
        assert analysis.slope == pytest.approx(20.0)
        assert analysis.trend == HealthTrend.IMPROVING


# =============================================================
# TEST: Aggregation
# =============================================================

class TestAggregation:

    def test_empty_is_stable(self):
        assert aggregate_trends([]) == HealthTrend.STABLE

    def test_confidence_weighted_vote(self):
        improving = analyze_trend(IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY))
        volatile = analyze_trend(IndicatorType.LATENCY, hourly_points(VOLATILE_LATENCY))
        assert aggregate_trends([improving, volatile]) == HealthTrend.IMPROVING

    def test_vote_confidence(self):
        improving = analyze_trend(IndicatorType.LATENCY, hourly_points(IMPROVING_LATENCY))
        assert trend_vote_confidence([improving], HealthTrend.IMPROVING) == round(improving.confidence, 2)
        assert trend_vote_confidence([improving], HealthTrend.DEGRADING) == 0.0

    @pytest.mark.parametrize("current,previous,expected", [
        (HealthState.HEALTHY, None, HealthTrend.STABLE),
        (HealthState.HEALTHY, HealthState.DEGRADED, HealthTrend.IMPROVING),
        (HealthState.UNHEALTHY, HealthState.HEALTHY, HealthTrend.DEGRADING),
        (HealthState.DEGRADED, HealthState.DEGRADED, HealthTrend.STABLE),
    ])
    def test_infer_from_states(self, current, previous, expected):
        assert infer_trend_from_states(current, previous) == expected
