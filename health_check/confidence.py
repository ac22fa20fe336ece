"""
Health Check - Confidence Model.

============================================================
STATISTICAL CONFIDENCE
============================================================

Overall confidence in an evaluation is a weighted blend of five
independent factors, each in [0, 1]:

- sample_factor    (0.25): log10(n + 1) / 3, capped at 1
- coverage_factor  (0.15): indicators present / expected
- indicator_factor (0.30): mean per-indicator confidence
- freshness_factor (0.15): 1 - age / max_age, clamped
- variance_factor  (0.15): share of indicators in the modal state

Factors are reported alongside the result so a low confidence
can be traced to its cause.

============================================================
"""

import logging
import math
from collections import Counter
from datetime import datetime
from typing import Optional, Sequence

from .models import (
    ConfidenceFactors,
    ConfidenceLevel,
    ConfidenceResult,
    HealthIndicator,
    as_utc,
    utc_now,
)


logger = logging.getLogger(__name__)


SAMPLE_WEIGHT = 0.25
COVERAGE_WEIGHT = 0.15
INDICATOR_WEIGHT = 0.30
FRESHNESS_WEIGHT = 0.15
VARIANCE_WEIGHT = 0.15

DEFAULT_EXPECTED_INDICATORS = 5
DEFAULT_MAX_DATA_AGE_SECONDS = 300.0


# =============================================================
# FACTORS
# =============================================================


def calculate_sample_factor(total_sample_size: int) -> float:
    """Saturating sample-size curve: 10 -> ~0.35, 100 -> ~0.67, 1000 -> 1.0."""
    if total_sample_size <= 0:
        return 0.0
    return min(1.0, math.log10(total_sample_size + 1) / 3)


def calculate_coverage_factor(
    indicator_count: int,
    expected_indicators: int = DEFAULT_EXPECTED_INDICATORS,
) -> float:
    if indicator_count <= 0 or expected_indicators <= 0:
        return 0.0
    return min(1.0, indicator_count / expected_indicators)


def calculate_indicator_factor(indicators: Sequence[HealthIndicator]) -> float:
    if not indicators:
        return 0.0
    return sum(i.confidence for i in indicators) / len(indicators)


def calculate_freshness_factor(
    window_end: datetime,
    now: Optional[datetime] = None,
    max_data_age_seconds: float = DEFAULT_MAX_DATA_AGE_SECONDS,
) -> float:
    """
    Linear decay from 1 (current) to 0 (max_data_age_seconds old).

    Data stamped in the future counts as current.
    """
    now = as_utc(now) if now is not None else utc_now()
    age = (now - as_utc(window_end)).total_seconds()

    if age <= 0:
        return 1.0
    if age >= max_data_age_seconds:
        return 0.0
    return 1 - age / max_data_age_seconds


def calculate_variance_factor(indicators: Sequence[HealthIndicator]) -> float:
    """Agreement ratio of the modal state; 1.0 for zero or one indicator."""
    if len(indicators) <= 1:
        return 1.0
    counts = Counter(i.state for i in indicators)
    return max(counts.values()) / len(indicators)


# =============================================================
# COMPOSITE
# =============================================================


def calculate_confidence(
    indicators: Sequence[HealthIndicator],
    total_sample_size: int,
    window_end: datetime,
    now: Optional[datetime] = None,
    expected_indicator_count: int = DEFAULT_EXPECTED_INDICATORS,
    max_data_age_seconds: float = DEFAULT_MAX_DATA_AGE_SECONDS,
) -> ConfidenceResult:
    """
    Calculate composite confidence for a health evaluation.

    Args:
        indicators: Indicators evaluated this cycle
        total_sample_size: Aggregate sample size (request count)
        window_end: End of the telemetry window
        now: Evaluation timestamp
        expected_indicator_count: Indicators a complete evaluation has
        max_data_age_seconds: Age at which freshness reaches 0

    Returns:
        ConfidenceResult rounded to 2 decimals, with its factors
    """
    factors = ConfidenceFactors(
        sample_factor=calculate_sample_factor(total_sample_size),
        coverage_factor=calculate_coverage_factor(len(indicators), expected_indicator_count),
        indicator_factor=calculate_indicator_factor(indicators),
        freshness_factor=calculate_freshness_factor(window_end, now, max_data_age_seconds),
        variance_factor=calculate_variance_factor(indicators),
    )

    overall = (
        factors.sample_factor * SAMPLE_WEIGHT
        + factors.coverage_factor * COVERAGE_WEIGHT
        + factors.indicator_factor * INDICATOR_WEIGHT
        + factors.freshness_factor * FRESHNESS_WEIGHT
        + factors.variance_factor * VARIANCE_WEIGHT
    )
    overall = round(max(0.0, min(1.0, overall)), 2)

    logger.debug(f"Confidence {overall} (weakest factor: {factors.weakest()})")

    return ConfidenceResult(overall_confidence=overall, factors=factors)


# =============================================================
# CLASSIFICATION
# =============================================================


def classify_confidence(confidence: float) -> ConfidenceLevel:
    """Classify confidence for human-readable output."""
    return ConfidenceLevel.from_confidence(confidence)


def is_sufficient_confidence(confidence: float, threshold: float = 0.2) -> bool:
    return confidence >= threshold
