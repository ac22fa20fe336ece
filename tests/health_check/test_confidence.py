"""
Tests for the confidence model.
"""

from datetime import timedelta

import pytest

from health_check.config import ThresholdConfig
from health_check.confidence import (
    calculate_confidence,
    calculate_coverage_factor,
    calculate_freshness_factor,
    calculate_sample_factor,
    calculate_variance_factor,
    classify_confidence,
    is_sufficient_confidence,
)
from health_check.indicators import extract_indicators
from health_check.models import ConfidenceLevel
from tests.health_check.helpers import NOW, make_telemetry


@pytest.fixture
def thresholds():
    return ThresholdConfig()


# =============================================================
# TEST: Factors
# =============================================================

class TestFactors:

    def test_sample_factor_saturates(self):
        assert calculate_sample_factor(0) == 0.0
        assert calculate_sample_factor(1000) == pytest.approx(1.0)
        assert calculate_sample_factor(10 ** 6) == 1.0

    def test_sample_factor_non_decreasing(self):
        values = [calculate_sample_factor(n) for n in (0, 1, 5, 10, 50, 100, 500, 1000, 5000)]
        assert values == sorted(values)

    def test_coverage_factor(self):
        assert calculate_coverage_factor(4, 5) == pytest.approx(0.8)
        assert calculate_coverage_factor(7, 5) == 1.0
        assert calculate_coverage_factor(0, 5) == 0.0

    def test_freshness_decays_linearly(self):
        assert calculate_freshness_factor(NOW, NOW) == 1.0
        assert calculate_freshness_factor(NOW - timedelta(seconds=150), NOW) == pytest.approx(0.5)
        assert calculate_freshness_factor(NOW - timedelta(minutes=10), NOW) == 0.0

    def test_future_data_is_fresh(self):
        assert calculate_freshness_factor(NOW + timedelta(seconds=30), NOW) == 1.0

    def test_naive_window_end_treated_as_utc(self):
        naive = (NOW - timedelta(seconds=150)).replace(tzinfo=None)
        assert calculate_freshness_factor(naive, NOW) == pytest.approx(0.5)

    def test_variance_factor(self, thresholds):
        agreeing = extract_indicators(make_telemetry(), thresholds)
        assert calculate_variance_factor(agreeing) == 1.0

        mixed = extract_indicators(make_telemetry(error_count=30), thresholds)
        # latency and throughput healthy, error rate degraded, availability unhealthy
        assert calculate_variance_factor(mixed) == pytest.approx(0.5)

        assert calculate_variance_factor([]) == 1.0


# =============================================================
# TEST: Overall confidence
# =============================================================

class TestOverallConfidence:

    def test_scenario_full_sample(self, thresholds):
        """1000 samples of fresh agreeing data."""
        telemetry = make_telemetry(latency_p95_ms=300.0, error_count=5)
        indicators = extract_indicators(telemetry, thresholds)
        result = calculate_confidence(indicators, 1000, telemetry.window_end, now=NOW)

        assert result.factors.sample_factor == pytest.approx(1.0)
        assert 0.0 <= result.overall_confidence <= 1.0

    def test_all_healthy_value(self, thresholds):
        telemetry = make_telemetry()
        indicators = extract_indicators(telemetry, thresholds)
        result = calculate_confidence(indicators, 1000, telemetry.window_end, now=NOW)

        # 0.25 + 0.8 * 0.15 + 0.30 + 0.15 + 0.15
        assert result.overall_confidence == 0.97
        assert result.level == ConfidenceLevel.HIGH
        assert result.factors.weakest() == "coverage_factor"

    def test_non_decreasing_in_sample_size(self, thresholds):
        previous = 0.0
        for n in (1, 10, 50, 100, 500, 1000, 10000):
            telemetry = make_telemetry(request_count=n)
            indicators = extract_indicators(telemetry, thresholds)
            result = calculate_confidence(indicators, n, telemetry.window_end, now=NOW)
            assert result.overall_confidence >= previous
            previous = result.overall_confidence

    def test_stale_data_lowers_confidence(self, thresholds):
        telemetry = make_telemetry()
        indicators = extract_indicators(telemetry, thresholds)
        fresh = calculate_confidence(indicators, 1000, telemetry.window_end, now=NOW)
        stale = calculate_confidence(
            indicators, 1000, telemetry.window_end, now=NOW + timedelta(hours=1)
        )
        assert stale.factors.freshness_factor == 0.0
        assert stale.overall_confidence < fresh.overall_confidence

    def test_empty_input_stays_in_bounds(self):
        result = calculate_confidence([], 0, NOW, now=NOW)
        assert 0.0 <= result.overall_confidence <= 1.0
        assert result.factors.indicator_factor == 0.0

    def test_to_dict(self, thresholds):
        telemetry = make_telemetry()
        indicators = extract_indicators(telemetry, thresholds)
        data = calculate_confidence(indicators, 1000, telemetry.window_end, now=NOW).to_dict()
        assert set(data["factors"]) == {
            "sample_factor",
            "coverage_factor",
            "indicator_factor",
            "freshness_factor",
            "variance_factor",
        }


# =============================================================
# TEST: Classification
# =============================================================

class TestClassification:

    @pytest.mark.parametrize("confidence,level", [
        (0.95, ConfidenceLevel.HIGH),
        (0.8, ConfidenceLevel.HIGH),
        (0.6, ConfidenceLevel.MEDIUM),
        (0.3, ConfidenceLevel.LOW),
        (0.1, ConfidenceLevel.INSUFFICIENT),
    ])
    def test_levels(self, confidence, level):
        assert classify_confidence(confidence) == level

    def test_sufficiency(self):
        assert is_sufficient_confidence(0.2)
        assert not is_sufficient_confidence(0.19)
        assert is_sufficient_confidence(0.4, threshold=0.4)
