"""
Tests for composite state aggregation.
"""

from datetime import timedelta

import pytest

from health_check.composite import compute_composite_state, score_to_state
from health_check.config import IndicatorWeights
from health_check.models import (
    HealthIndicator,
    HealthState,
    IndicatorType,
    MeasurementWindow,
)
from tests.health_check.helpers import NOW


WINDOW = MeasurementWindow(start=NOW - timedelta(minutes=1), end=NOW, duration_seconds=60)


def indicator(indicator_type, state, confidence=1.0):
    return HealthIndicator(
        indicator_type=indicator_type,
        current_value=0.0,
        unit=indicator_type.unit,
        state=state,
        state_reason="test",
        sample_size=1000,
        confidence=confidence,
        measurement_window=WINDOW,
    )


class TestHealthStateOrder:

    def test_ordering(self):
        assert HealthState.UNHEALTHY.is_worse_than(HealthState.DEGRADED)
        assert HealthState.HEALTHY.is_better_than(HealthState.DEGRADED)
        assert not HealthState.DEGRADED.is_worse_than(HealthState.DEGRADED)

    def test_worst(self):
        states = [HealthState.HEALTHY, HealthState.UNHEALTHY, HealthState.DEGRADED]
        assert HealthState.worst(states) == HealthState.UNHEALTHY
        assert HealthState.worst([]) == HealthState.HEALTHY


class TestScoreToState:

    @pytest.mark.parametrize("score,expected", [
        (0.0, HealthState.HEALTHY),
        (0.49, HealthState.HEALTHY),
        (0.5, HealthState.DEGRADED),
        (1.49, HealthState.DEGRADED),
        (1.5, HealthState.UNHEALTHY),
        (2.0, HealthState.UNHEALTHY),
    ])
    def test_boundaries(self, score, expected):
        assert score_to_state(score) == expected


class TestCompositeState:

    def test_empty_is_healthy(self):
        result = compute_composite_state([], IndicatorWeights())
        assert result.state == HealthState.HEALTHY
        assert result.weighted_score == 0.0

    def test_zero_confidence_is_healthy(self):
        indicators = [indicator(IndicatorType.LATENCY, HealthState.UNHEALTHY, confidence=0.0)]
        result = compute_composite_state(indicators, IndicatorWeights())
        assert result.state == HealthState.HEALTHY

    def test_all_healthy(self):
        indicators = [indicator(t, HealthState.HEALTHY) for t in IndicatorType]
        assert compute_composite_state(indicators, IndicatorWeights()).state == HealthState.HEALTHY

    def test_all_unhealthy(self):
        indicators = [indicator(t, HealthState.UNHEALTHY) for t in IndicatorType]
        result = compute_composite_state(indicators, IndicatorWeights())
        assert result.state == HealthState.UNHEALTHY
        assert result.weighted_score == pytest.approx(2.0)

    def test_weights_shift_the_vote(self):
        """An unhealthy error rate outweighs a healthy saturation."""
        indicators = [
            indicator(IndicatorType.ERROR_RATE, HealthState.UNHEALTHY),
            indicator(IndicatorType.SATURATION, HealthState.HEALTHY),
        ]
        result = compute_composite_state(indicators, IndicatorWeights())
        # (2 * 3.0) / (3.0 + 1.0)
        assert result.weighted_score == pytest.approx(1.5)
        assert result.state == HealthState.UNHEALTHY

    def test_low_confidence_indicator_counts_less(self):
        indicators = [
            indicator(IndicatorType.LATENCY, HealthState.UNHEALTHY, confidence=0.1),
            indicator(IndicatorType.THROUGHPUT, HealthState.HEALTHY, confidence=1.0),
        ]
        result = compute_composite_state(indicators, IndicatorWeights())
        # (2 * 2.0 * 0.1) / (2.0 * 0.1 + 1.5)
        assert result.weighted_score == pytest.approx(0.4 / 1.7)
        assert result.state == HealthState.HEALTHY

    def test_zero_weights(self):
        weights = IndicatorWeights(
            error_rate=0, availability=0, latency=0, throughput=0, saturation=0
        )
        indicators = [indicator(t, HealthState.UNHEALTHY) for t in IndicatorType]
        assert compute_composite_state(indicators, weights).state == HealthState.HEALTHY
