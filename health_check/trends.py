"""
Health Check - Trend Analysis.

============================================================
REGRESSION-BASED TRENDS
============================================================

Fits an ordinary least squares line to a time-ordered series of
indicator values (x = hours since the first point) and classifies
the trend, in order of precedence:

1. r squared below the volatility threshold -> VOLATILE
2. polarity-normalised slope above +improving -> IMPROVING
3. polarity-normalised slope below -degrading -> DEGRADING
4. otherwise -> STABLE

A one-hour-ahead state is projected only when the fit explains
at least half of the variance.

============================================================
"""

import logging
import statistics
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from .config import ThresholdConfig, TrendConfig
from .indicators import evaluate_indicator
from .models import (
    HealthState,
    HealthTrend,
    IndicatorType,
    TrendAnalysis,
    TrendDataPoint,
    as_utc,
)


logger = logging.getLogger(__name__)


SECONDS_PER_HOUR = 3600.0


# =============================================================
# LINEAR REGRESSION
# =============================================================


@dataclass(frozen=True)
class Regression:
    slope: float
    intercept: float
    r_squared: float


def linear_regression(x_values: Sequence[float], y_values: Sequence[float]) -> Regression:
    """
    Simple least squares fit.

    Degenerate input (fewer than 2 points, mismatched lengths, no
    variance in x or y) yields zeros instead of NaN.
    """
    if len(x_values) != len(y_values) or len(x_values) < 2:
        return Regression(slope=0.0, intercept=0.0, r_squared=0.0)

    x_mean = statistics.fmean(x_values)
    y_mean = statistics.fmean(y_values)

    numerator = 0.0
    denominator = 0.0
    ss_total = 0.0
    for x, y in zip(x_values, y_values):
        x_diff = x - x_mean
        y_diff = y - y_mean
        numerator += x_diff * y_diff
        denominator += x_diff * x_diff
        ss_total += y_diff * y_diff

    slope = numerator / denominator if denominator != 0 else 0.0
    intercept = y_mean - slope * x_mean

    if denominator == 0 or ss_total == 0:
        return Regression(slope=slope, intercept=intercept, r_squared=0.0)

    ss_residual = sum(
        (y - (slope * x + intercept)) ** 2 for x, y in zip(x_values, y_values)
    )
    r_squared = max(0.0, min(1.0, 1 - ss_residual / ss_total))

    return Regression(slope=slope, intercept=intercept, r_squared=r_squared)


# =============================================================
# CLASSIFICATION
# =============================================================


def determine_trend(
    slope: float,
    r_squared: float,
    higher_is_better: bool,
    config: Optional[TrendConfig] = None,
) -> HealthTrend:
    """
    Classify a fitted trend.

    Args:
        slope: Change per hour in the indicator's own unit
        r_squared: Goodness of fit (0-1)
        higher_is_better: Indicator polarity
        config: Classification thresholds
    """
    config = config or TrendConfig()

    if r_squared < config.volatile_r_squared_max:
        return HealthTrend.VOLATILE

    normalized = slope if higher_is_better else -slope

    if normalized > abs(config.improving_slope_threshold):
        return HealthTrend.IMPROVING
    if normalized < -abs(config.degrading_slope_threshold):
        return HealthTrend.DEGRADING
    return HealthTrend.STABLE


def analyze_trend(
    indicator_type: IndicatorType,
    data_points: Iterable[TrendDataPoint],
    thresholds: Optional[ThresholdConfig] = None,
    predict_ahead_hours: float = 1.0,
    config: Optional[TrendConfig] = None,
) -> Optional[TrendAnalysis]:
    """
    Analyze the trend of one indicator.

    Args:
        indicator_type: Indicator the series belongs to
        data_points: Observations in any order
        thresholds: Thresholds used to map a predicted value to a state
        predict_ahead_hours: Projection horizon, 0 disables prediction
        config: Trend classification thresholds

    Returns:
        TrendAnalysis, or None with fewer than 2 points

    Raises:
        UnknownIndicatorError: indicator_type is not an IndicatorType
    """
    indicator_type = IndicatorType.coerce(indicator_type)
    thresholds = thresholds or ThresholdConfig()
    config = config or TrendConfig()

    points = sorted(data_points, key=lambda p: as_utc(p.timestamp))
    if len(points) < 2:
        return None

    first = as_utc(points[0].timestamp)
    x_values = [(as_utc(p.timestamp) - first).total_seconds() / SECONDS_PER_HOUR for p in points]
    y_values = [p.value for p in points]

    regression = linear_regression(x_values, y_values)
    # Classification, prediction and vote weight all use the reported value
    r_squared = round(regression.r_squared, 2)

    first_value = y_values[0]
    last_value = y_values[-1]
    if first_value != 0:
        change_percentage = (last_value - first_value) / abs(first_value) * 100
    else:
        change_percentage = 0.0

    trend = determine_trend(
        regression.slope,
        r_squared,
        indicator_type.higher_is_better,
        config,
    )

    predicted: Optional[HealthState] = None
    if r_squared >= config.prediction_r_squared_min and predict_ahead_hours > 0:
        predicted_value = regression.slope * (x_values[-1] + predict_ahead_hours) + regression.intercept
        predicted = evaluate_indicator(indicator_type, predicted_value, thresholds).state

    logger.debug(
        f"Trend {indicator_type.value}: {trend.value} "
        f"(slope={regression.slope:.4f}/h, r2={r_squared:.2f}, n={len(points)})"
    )

    return TrendAnalysis(
        indicator_type=indicator_type,
        trend=trend,
        slope=round(regression.slope, 4),
        r_squared=r_squared,
        change_percentage=round(change_percentage, 2),
        data_points=points,
        predicted_state_in_1h=predicted,
        confidence=r_squared,
    )


# =============================================================
# AGGREGATION
# =============================================================


def aggregate_trends(trends: Sequence[TrendAnalysis]) -> HealthTrend:
    """
    Dominant trend by confidence-weighted vote.

    Ties keep the first trend in enum order; an empty list or an
    all-zero vote is STABLE.
    """
    scores: Dict[HealthTrend, float] = {t: 0.0 for t in HealthTrend}
    for analysis in trends:
        scores[analysis.trend] += analysis.confidence

    dominant = HealthTrend.STABLE
    best = 0.0
    for trend, score in scores.items():
        if score > best:
            best = score
            dominant = trend
    return dominant


def trend_vote_confidence(trends: Sequence[TrendAnalysis], winner: HealthTrend) -> float:
    """Mean confidence of the analyses that voted for the winner."""
    voters: List[float] = [t.confidence for t in trends if t.trend == winner]
    if not voters:
        return 0.0
    return round(statistics.fmean(voters), 2)


def infer_trend_from_states(
    current: HealthState,
    previous: Optional[HealthState],
) -> HealthTrend:
    """
    Degenerate trend from a single state delta.

    Used only when no historical series is available; it carries
    no statistical weight.
    """
    if previous is None:
        return HealthTrend.STABLE
    if current.is_better_than(previous):
        return HealthTrend.IMPROVING
    if current.is_worse_than(previous):
        return HealthTrend.DEGRADING
    return HealthTrend.STABLE
