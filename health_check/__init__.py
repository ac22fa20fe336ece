"""
Health Check Evaluation Module.

============================================================
STABLE, EXPLAINABLE HEALTH VERDICTS
============================================================

Evaluates the health of services, agents, providers and
endpoints from telemetry aggregates.

CORE PHILOSOPHY:
- A verdict must be explainable indicator by indicator
- Degrade fast, recover slowly
- Every verdict carries its statistical confidence
- The engine is pure; the caller owns persisted state

============================================================
INDICATORS
============================================================

1. Latency       - P95 (or average) latency in ms
2. Error Rate    - Failed requests in percent
3. Throughput    - Requests per second
4. Saturation    - Resource saturation in percent
5. Availability  - Successful requests in percent

============================================================
HEALTH STATES
============================================================

- HEALTHY:   All indicators within healthy thresholds
- DEGRADED:  Weighted vote between healthy and unhealthy
- UNHEALTHY: Weighted vote at or past the critical band

A state change takes 1 sample to degrade and 3 to improve.

============================================================
USAGE
============================================================

```python
from health_check import (
    HealthCheckConfig,
    HealthCheckManager,
    parse_telemetry,
)

manager = HealthCheckManager(HealthCheckConfig.from_env())

telemetry = parse_telemetry(payload)
evaluation = manager.evaluate(telemetry)

print(f"State: {evaluation.overall_state}, "
      f"Confidence: {evaluation.overall_confidence}")
```

============================================================
"""

from .models import (
    SCHEMA_VERSION,
    HealthState,
    HealthTrend,
    IndicatorType,
    TargetType,
    EvaluationGranularity,
    ConfidenceLevel,
    TelemetryAggregate,
    MeasurementWindow,
    HealthIndicator,
    HysteresisState,
    StateTransition,
    ConfidenceFactors,
    ConfidenceResult,
    TrendDataPoint,
    TrendAnalysis,
    TargetSpec,
    AggregateStatistics,
    EvaluationWindowSpec,
    EvaluationOptions,
    HealthEvaluation,
    EvaluationResult,
    EvaluationSummary,
)
from .config import (
    HealthCheckConfig,
    ThresholdConfig,
    LatencyThresholds,
    ErrorRateThresholds,
    ThroughputThresholds,
    SaturationThresholds,
    AvailabilityThresholds,
    HysteresisConfig,
    IndicatorWeights,
    TrendConfig,
    ConfidenceConfig,
)
from .exceptions import (
    HealthCheckError,
    UnknownIndicatorError,
    ConfigurationError,
    InvalidTelemetryError,
    StateStoreError,
)
from .indicators import (
    evaluate_indicator,
    calculate_indicator_confidence,
    extract_indicators,
)
from .composite import compute_composite_state
from .hysteresis import apply_hysteresis, evaluate_with_hysteresis
from .confidence import (
    calculate_confidence,
    classify_confidence,
    is_sufficient_confidence,
)
from .trends import (
    linear_regression,
    determine_trend,
    analyze_trend,
    aggregate_trends,
)
from .evaluator import (
    HealthEvaluator,
    EvaluationRequest,
    summarize_evaluations,
)
from .store import HysteresisStore, InMemoryHysteresisStore, make_target_key
from .manager import HealthCheckManager
from .schemas import (
    TelemetryAggregateSchema,
    EvaluationOptionsSchema,
    HealthEvaluationSchema,
    parse_telemetry,
)


__all__ = [
    # Models
    "SCHEMA_VERSION",
    "HealthState",
    "HealthTrend",
    "IndicatorType",
    "TargetType",
    "EvaluationGranularity",
    "ConfidenceLevel",
    "TelemetryAggregate",
    "MeasurementWindow",
    "HealthIndicator",
    "HysteresisState",
    "StateTransition",
    "ConfidenceFactors",
    "ConfidenceResult",
    "TrendDataPoint",
    "TrendAnalysis",
    "TargetSpec",
    "AggregateStatistics",
    "EvaluationWindowSpec",
    "EvaluationOptions",
    "HealthEvaluation",
    "EvaluationResult",
    "EvaluationSummary",
    # Config
    "HealthCheckConfig",
    "ThresholdConfig",
    "LatencyThresholds",
    "ErrorRateThresholds",
    "ThroughputThresholds",
    "SaturationThresholds",
    "AvailabilityThresholds",
    "HysteresisConfig",
    "IndicatorWeights",
    "TrendConfig",
    "ConfidenceConfig",
    # Exceptions
    "HealthCheckError",
    "UnknownIndicatorError",
    "ConfigurationError",
    "InvalidTelemetryError",
    "StateStoreError",
    # Engine
    "evaluate_indicator",
    "calculate_indicator_confidence",
    "extract_indicators",
    "compute_composite_state",
    "apply_hysteresis",
    "evaluate_with_hysteresis",
    "calculate_confidence",
    "classify_confidence",
    "is_sufficient_confidence",
    "linear_regression",
    "determine_trend",
    "analyze_trend",
    "aggregate_trends",
    "HealthEvaluator",
    "EvaluationRequest",
    "summarize_evaluations",
    # State
    "HysteresisStore",
    "InMemoryHysteresisStore",
    "make_target_key",
    "HealthCheckManager",
    # Schemas
    "TelemetryAggregateSchema",
    "EvaluationOptionsSchema",
    "HealthEvaluationSchema",
    "parse_telemetry",
]
