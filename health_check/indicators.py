"""
Health Check - Indicator Evaluation.

============================================================
INDICATOR EVALUATOR
============================================================

Classifies one raw metric value into a discrete health state
against a configured threshold pair, and derives a per-indicator
confidence from sample size.

Lower is better:  latency, error_rate, saturation
Higher is better: throughput, availability

Every state comes with a human-readable reason citing the
threshold crossed, for audit and debugging.

============================================================
FAILURE SAFETY
============================================================

No indicator evaluation raises on plausible input. Missing
percentiles fall back to the average and zero samples yield a
zero-confidence indicator. Only an indicator type outside the
closed set raises UnknownIndicatorError.

============================================================
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .config import ThresholdConfig
from .exceptions import UnknownIndicatorError
from .models import (
    HealthIndicator,
    HealthState,
    IndicatorType,
    MeasurementWindow,
    TelemetryAggregate,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndicatorEvaluation:
    """State and reason for a single indicator value."""
    state: HealthState
    reason: str


# =============================================================
# DESCRIPTORS
# =============================================================


def _describe(indicator_type: IndicatorType) -> Tuple[str, str, int]:
    """Return (label, unit suffix, value precision) for an indicator type."""
    if indicator_type is IndicatorType.LATENCY:
        return "P95 latency", "ms", 1
    elif indicator_type is IndicatorType.ERROR_RATE:
        return "Error rate", "%", 2
    elif indicator_type is IndicatorType.THROUGHPUT:
        return "Throughput", " req/s", 2
    elif indicator_type is IndicatorType.SATURATION:
        return "Resource saturation", "%", 1
    elif indicator_type is IndicatorType.AVAILABILITY:
        return "Availability", "%", 2
    raise UnknownIndicatorError(indicator_type)


# =============================================================
# EVALUATION
# =============================================================


def evaluate_indicator(
    indicator_type: IndicatorType,
    value: float,
    thresholds: ThresholdConfig,
    label: Optional[str] = None,
) -> IndicatorEvaluation:
    """
    Evaluate one indicator value against its thresholds.

    Args:
        indicator_type: Which indicator the value belongs to
        value: Raw metric value
        thresholds: Threshold configuration
        label: Override for the metric name used in the reason

    Returns:
        IndicatorEvaluation with state and reason

    Raises:
        UnknownIndicatorError: indicator_type is not an IndicatorType
    """
    indicator_type = IndicatorType.coerce(indicator_type)
    default_label, unit, precision = _describe(indicator_type)
    healthy, degraded = thresholds.for_indicator(indicator_type).bounds

    name = label or default_label
    shown = f"{name} {value:.{precision}f}{unit}"

    if indicator_type.higher_is_better:
        if value >= healthy:
            return IndicatorEvaluation(
                HealthState.HEALTHY,
                f"{shown} within healthy threshold (≥{healthy:g}{unit})",
            )
        if value >= degraded:
            return IndicatorEvaluation(
                HealthState.DEGRADED,
                f"{shown} reduced but acceptable (≥{degraded:g}{unit})",
            )
        return IndicatorEvaluation(
            HealthState.UNHEALTHY,
            f"{shown} below critical threshold (<{degraded:g}{unit})",
        )

    if value <= healthy:
        return IndicatorEvaluation(
            HealthState.HEALTHY,
            f"{shown} within healthy threshold (≤{healthy:g}{unit})",
        )
    if value <= degraded:
        return IndicatorEvaluation(
            HealthState.DEGRADED,
            f"{shown} elevated but acceptable (≤{degraded:g}{unit})",
        )
    return IndicatorEvaluation(
        HealthState.UNHEALTHY,
        f"{shown} exceeds critical threshold (>{degraded:g}{unit})",
    )


def calculate_indicator_confidence(sample_size: int) -> float:
    """
    Confidence for one indicator from its sample size.

    log10(n + 1) / 3, capped at 1 and rounded to 2 decimals:
    10 samples -> 0.35, 100 -> 0.67, 1000 -> 1.0.
    """
    if sample_size <= 0:
        return 0.0
    confidence = min(1.0, math.log10(sample_size + 1) / 3)
    return round(confidence, 2)


def build_indicator(
    indicator_type: IndicatorType,
    value: float,
    sample_size: int,
    thresholds: ThresholdConfig,
    measurement_window: MeasurementWindow,
    label: Optional[str] = None,
) -> HealthIndicator:
    """Build a HealthIndicator from a raw value."""
    indicator_type = IndicatorType.coerce(indicator_type)
    evaluation = evaluate_indicator(indicator_type, value, thresholds, label=label)

    return HealthIndicator(
        indicator_type=indicator_type,
        current_value=value,
        unit=indicator_type.unit,
        state=evaluation.state,
        state_reason=evaluation.reason,
        sample_size=max(0, sample_size),
        confidence=calculate_indicator_confidence(sample_size),
        measurement_window=measurement_window,
    )


def extract_indicators(
    telemetry: TelemetryAggregate,
    thresholds: ThresholdConfig,
) -> List[HealthIndicator]:
    """
    Extract every available indicator from a telemetry aggregate.

    Latency, error rate, throughput and availability are always
    produced. Saturation is produced only when reported.
    """
    window = MeasurementWindow(
        start=telemetry.window_start,
        end=telemetry.window_end,
        duration_seconds=telemetry.window_seconds,
    )
    samples = telemetry.request_count

    latency_label = None
    if telemetry.latency_p95_ms is None:
        latency_label = "Average latency"

    indicators = [
        build_indicator(
            IndicatorType.LATENCY, telemetry.latency_value, samples, thresholds, window,
            label=latency_label,
        ),
        build_indicator(IndicatorType.ERROR_RATE, telemetry.error_rate, samples, thresholds, window),
        build_indicator(IndicatorType.THROUGHPUT, telemetry.throughput, samples, thresholds, window),
        build_indicator(IndicatorType.AVAILABILITY, telemetry.availability, samples, thresholds, window),
    ]

    if telemetry.saturation_percentage is not None:
        indicators.append(
            build_indicator(
                IndicatorType.SATURATION,
                telemetry.saturation_percentage,
                samples,
                thresholds,
                window,
            )
        )

    logger.debug(
        f"Extracted {len(indicators)} indicators for {telemetry.target_key}: "
        + ", ".join(f"{i.indicator_type.value}={i.state.value}" for i in indicators)
    )

    return indicators
