"""
Health Check - Data Models.

============================================================
CORE DATA STRUCTURES
============================================================

Defines all data models for health evaluation:
- HealthState: Ordered health states
- HealthTrend: Trend classification
- IndicatorType: Measured health signals
- TelemetryAggregate: Raw aggregate input
- HealthIndicator: Evaluated indicator
- HysteresisState: Persisted per-target debounce state
- StateTransition: Hysteresis decision snapshot
- ConfidenceResult: Factorised confidence
- TrendAnalysis: Regression-based trend
- HealthEvaluation: Final evaluation record

All records except the enums are frozen dataclasses.
A HysteresisState is replaced, never mutated.

============================================================
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from .exceptions import UnknownIndicatorError


SCHEMA_VERSION = "1.0.0"


# =============================================================
# ENUMS
# =============================================================


class HealthState(str, Enum):
    """
    Discrete health state of a target.

    States are totally ordered: HEALTHY < DEGRADED < UNHEALTHY.
    """
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"

    @property
    def severity(self) -> int:
        """Ordinal score used for voting and comparisons."""
        return _STATE_SEVERITY[self]

    def is_worse_than(self, other: "HealthState") -> bool:
        return self.severity > other.severity

    def is_better_than(self, other: "HealthState") -> bool:
        return self.severity < other.severity

    @classmethod
    def worst(cls, states: Iterable["HealthState"]) -> "HealthState":
        """Get the worst state, HEALTHY for an empty iterable."""
        worst = cls.HEALTHY
        for state in states:
            if state.is_worse_than(worst):
                worst = state
        return worst


_STATE_SEVERITY = {
    HealthState.HEALTHY: 0,
    HealthState.DEGRADED: 1,
    HealthState.UNHEALTHY: 2,
}


class HealthTrend(str, Enum):
    """Direction of health change over time."""
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"
    VOLATILE = "volatile"


class IndicatorType(str, Enum):
    """
    Types of health indicators measured.

    Latency, error rate and saturation are "lower is better".
    Throughput and availability are "higher is better".
    """
    LATENCY = "latency"
    ERROR_RATE = "error_rate"
    THROUGHPUT = "throughput"
    SATURATION = "saturation"
    AVAILABILITY = "availability"

    @classmethod
    def coerce(cls, value: Any) -> "IndicatorType":
        """Convert a raw value to an IndicatorType or raise UnknownIndicatorError."""
        try:
            return cls(value)
        except ValueError:
            raise UnknownIndicatorError(value) from None

    @property
    def higher_is_better(self) -> bool:
        return self in (IndicatorType.THROUGHPUT, IndicatorType.AVAILABILITY)

    @property
    def unit(self) -> str:
        return _INDICATOR_UNITS[self]


_INDICATOR_UNITS = {
    IndicatorType.LATENCY: "ms",
    IndicatorType.ERROR_RATE: "percentage",
    IndicatorType.THROUGHPUT: "req/s",
    IndicatorType.SATURATION: "percentage",
    IndicatorType.AVAILABILITY: "percentage",
}


class TargetType(str, Enum):
    """Kinds of targets that can be evaluated."""
    SERVICE = "service"
    AGENT = "agent"
    PROVIDER = "provider"
    ENDPOINT = "endpoint"


class EvaluationGranularity(str, Enum):
    """Evaluation window granularity."""
    ONE_MINUTE = "1m"
    FIVE_MINUTES = "5m"
    FIFTEEN_MINUTES = "15m"
    ONE_HOUR = "1h"
    SIX_HOURS = "6h"
    ONE_DAY = "24h"

    @property
    def seconds(self) -> int:
        value, unit = int(self.value[:-1]), self.value[-1]
        return value * {"m": 60, "h": 3600, "d": 86400}[unit]


class ConfidenceLevel(str, Enum):
    """Human-readable confidence classification."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INSUFFICIENT = "insufficient"

    @classmethod
    def from_confidence(cls, confidence: float) -> "ConfidenceLevel":
        if confidence >= 0.8:
            return cls.HIGH
        if confidence >= 0.5:
            return cls.MEDIUM
        if confidence >= 0.2:
            return cls.LOW
        return cls.INSUFFICIENT


# =============================================================
# HELPERS
# =============================================================


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return as_utc(value).isoformat() if value is not None else None


# =============================================================
# INPUT
# =============================================================


@dataclass(frozen=True)
class TelemetryAggregate:
    """
    Aggregate telemetry for one target over one window.

    Produced by an external collector; consumed once per evaluation.
    """
    target_id: str
    target_type: TargetType
    window_start: datetime
    window_end: datetime
    request_count: int
    error_count: int
    latency_avg_ms: float
    latency_p50_ms: Optional[float] = None
    latency_p90_ms: Optional[float] = None
    latency_p95_ms: Optional[float] = None
    latency_p99_ms: Optional[float] = None
    saturation_percentage: Optional[float] = None
    target_name: Optional[str] = None

    @property
    def target_key(self) -> str:
        """Key used for per-target state: "{type}:{id}"."""
        return f"{TargetType(self.target_type).value}:{self.target_id}"

    @property
    def window_seconds(self) -> int:
        delta = as_utc(self.window_end) - as_utc(self.window_start)
        return max(0, round(delta.total_seconds()))

    @property
    def latency_value(self) -> float:
        """P95 latency, falling back to the average."""
        if self.latency_p95_ms is not None:
            return self.latency_p95_ms
        return self.latency_avg_ms

    @property
    def error_rate(self) -> float:
        """Error percentage, 0 without requests."""
        if self.request_count <= 0:
            return 0.0
        return self.error_count / self.request_count * 100

    @property
    def availability(self) -> float:
        return 100 - self.error_rate

    @property
    def throughput(self) -> float:
        """Requests per second over the window, 0 for an empty window."""
        seconds = self.window_seconds
        if seconds <= 0:
            return 0.0
        return self.request_count / seconds


# =============================================================
# INDICATORS
# =============================================================


@dataclass(frozen=True)
class MeasurementWindow:
    """Time window an indicator was measured over."""
    start: datetime
    end: datetime
    duration_seconds: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": _iso(self.start),
            "end": _iso(self.end),
            "duration_seconds": self.duration_seconds,
        }


@dataclass(frozen=True)
class HealthIndicator:
    """
    One evaluated health signal.

    confidence is derived from sample_size and always in [0, 1].
    """
    indicator_type: IndicatorType
    current_value: float
    unit: str
    state: HealthState
    state_reason: str
    sample_size: int
    confidence: float
    measurement_window: MeasurementWindow

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 1:
            object.__setattr__(self, "confidence", max(0.0, min(1.0, self.confidence)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator_type": self.indicator_type.value,
            "current_value": self.current_value,
            "unit": self.unit,
            "state": self.state.value,
            "state_reason": self.state_reason,
            "sample_size": self.sample_size,
            "confidence": self.confidence,
            "measurement_window": self.measurement_window.to_dict(),
        }


# =============================================================
# HYSTERESIS
# =============================================================


@dataclass(frozen=True)
class HysteresisState:
    """
    Per-target debounce state persisted across evaluations.

    Owned by the caller, loaded before and written back after
    every evaluation of the target.
    """
    current_state: HealthState
    pending_state: Optional[HealthState] = None
    consecutive_samples: int = 1
    last_transition_time: Optional[datetime] = None
    time_in_current_state_seconds: int = 0

    @classmethod
    def initial(cls, state: HealthState = HealthState.HEALTHY) -> "HysteresisState":
        """Create the state for a never-before-seen target."""
        return cls(current_state=state)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_state": self.current_state.value,
            "pending_state": self.pending_state.value if self.pending_state else None,
            "consecutive_samples": self.consecutive_samples,
            "last_transition_time": _iso(self.last_transition_time),
            "time_in_current_state_seconds": self.time_in_current_state_seconds,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HysteresisState":
        pending = data.get("pending_state")
        last = data.get("last_transition_time")
        return cls(
            current_state=HealthState(data["current_state"]),
            pending_state=HealthState(pending) if pending else None,
            consecutive_samples=int(data.get("consecutive_samples", 1)),
            last_transition_time=datetime.fromisoformat(last) if last else None,
            time_in_current_state_seconds=int(data.get("time_in_current_state_seconds", 0)),
        )


@dataclass(frozen=True)
class StateTransition:
    """
    Snapshot of the hysteresis decision for one evaluation.

    transition_time is set if and only if current_state changed.
    """
    current_state: HealthState
    time_in_current_state_seconds: int
    consecutive_samples_in_state: int
    hysteresis_threshold: int
    previous_state: Optional[HealthState] = None
    transition_time: Optional[datetime] = None

    @property
    def transition_occurred(self) -> bool:
        return self.transition_time is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_state": self.previous_state.value if self.previous_state else None,
            "current_state": self.current_state.value,
            "transition_time": _iso(self.transition_time),
            "time_in_current_state_seconds": self.time_in_current_state_seconds,
            "consecutive_samples_in_state": self.consecutive_samples_in_state,
            "hysteresis_threshold": self.hysteresis_threshold,
        }


# =============================================================
# CONFIDENCE
# =============================================================


@dataclass(frozen=True)
class ConfidenceFactors:
    """The five independent factors behind an overall confidence."""
    sample_factor: float
    coverage_factor: float
    indicator_factor: float
    freshness_factor: float
    variance_factor: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "sample_factor": self.sample_factor,
            "coverage_factor": self.coverage_factor,
            "indicator_factor": self.indicator_factor,
            "freshness_factor": self.freshness_factor,
            "variance_factor": self.variance_factor,
        }

    def weakest(self) -> str:
        """Name of the factor pulling confidence down the most."""
        factors = self.to_dict()
        return min(factors, key=factors.get)


@dataclass(frozen=True)
class ConfidenceResult:
    overall_confidence: float
    factors: ConfidenceFactors

    @property
    def level(self) -> ConfidenceLevel:
        return ConfidenceLevel.from_confidence(self.overall_confidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_confidence": self.overall_confidence,
            "level": self.level.value,
            "factors": self.factors.to_dict(),
        }


# =============================================================
# TRENDS
# =============================================================


@dataclass(frozen=True)
class TrendDataPoint:
    """Single historical observation of an indicator."""
    timestamp: datetime
    value: float
    state: HealthState

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "value": self.value,
            "state": self.state.value,
        }


@dataclass(frozen=True)
class TrendAnalysis:
    """
    Linear-regression trend for one indicator.

    confidence is the fit's r squared.
    """
    indicator_type: IndicatorType
    trend: HealthTrend
    slope: float
    r_squared: float
    change_percentage: float
    data_points: List[TrendDataPoint]
    confidence: float
    predicted_state_in_1h: Optional[HealthState] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "indicator_type": self.indicator_type.value,
            "trend": self.trend.value,
            "slope": self.slope,
            "r_squared": self.r_squared,
            "change_percentage": self.change_percentage,
            "data_points": [p.to_dict() for p in self.data_points],
            "predicted_state_in_1h": (
                self.predicted_state_in_1h.value if self.predicted_state_in_1h else None
            ),
            "confidence": self.confidence,
        }


# =============================================================
# EVALUATION
# =============================================================


@dataclass(frozen=True)
class TargetSpec:
    type: TargetType
    id: str
    name: str

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type.value, "id": self.id, "name": self.name}


@dataclass(frozen=True)
class AggregateStatistics:
    total_requests: int
    total_errors: int
    avg_latency_ms: float
    error_rate_percentage: float
    availability_percentage: float
    sample_size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_errors": self.total_errors,
            "avg_latency_ms": self.avg_latency_ms,
            "error_rate_percentage": self.error_rate_percentage,
            "availability_percentage": self.availability_percentage,
            "sample_size": self.sample_size,
        }


@dataclass(frozen=True)
class EvaluationWindowSpec:
    start: datetime
    end: datetime
    granularity: EvaluationGranularity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": _iso(self.start),
            "end": _iso(self.end),
            "granularity": self.granularity.value,
        }


@dataclass(frozen=True)
class EvaluationOptions:
    """Per-request evaluation options."""
    include_trends: bool = True
    include_predictions: bool = False
    granularity: EvaluationGranularity = EvaluationGranularity.FIVE_MINUTES


@dataclass(frozen=True)
class HealthEvaluation:
    """
    Terminal evaluation record for one target and one cycle.

    Never mutated after creation. overall_trend_confidence is 0
    when the trend was inferred from the state delta alone.
    """
    evaluation_id: UUID
    evaluated_at: datetime
    target: TargetSpec
    overall_state: HealthState
    overall_trend: HealthTrend
    overall_trend_confidence: float
    overall_confidence: float
    state_transition: StateTransition
    indicators: List[HealthIndicator]
    statistics: AggregateStatistics
    evaluation_window: EvaluationWindowSpec
    trends: Optional[List[TrendAnalysis]] = None
    confidence_factors: Optional[ConfidenceFactors] = None
    schema_version: str = SCHEMA_VERSION

    @property
    def transition_occurred(self) -> bool:
        return self.state_transition.transition_occurred

    def get_indicator(self, indicator_type: IndicatorType) -> Optional[HealthIndicator]:
        for indicator in self.indicators:
            if indicator.indicator_type == indicator_type:
                return indicator
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        data: Dict[str, Any] = {
            "evaluation_id": str(self.evaluation_id),
            "evaluated_at": _iso(self.evaluated_at),
            "target": self.target.to_dict(),
            "overall_state": self.overall_state.value,
            "overall_trend": self.overall_trend.value,
            "overall_trend_confidence": self.overall_trend_confidence,
            "overall_confidence": self.overall_confidence,
            "state_transition": self.state_transition.to_dict(),
            "indicators": [i.to_dict() for i in self.indicators],
            "statistics": self.statistics.to_dict(),
            "evaluation_window": self.evaluation_window.to_dict(),
            "schema_version": self.schema_version,
        }
        if self.trends is not None:
            data["trends"] = [t.to_dict() for t in self.trends]
        if self.confidence_factors is not None:
            data["confidence_factors"] = self.confidence_factors.to_dict()
        return data


@dataclass(frozen=True)
class EvaluationResult:
    """An evaluation plus the hysteresis state to write back."""
    evaluation: HealthEvaluation
    hysteresis_state: HysteresisState


@dataclass(frozen=True)
class EvaluationSummary:
    total_targets: int = 0
    healthy_count: int = 0
    degraded_count: int = 0
    unhealthy_count: int = 0
    average_confidence: float = 0.0
    dominant_trend: HealthTrend = HealthTrend.STABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_targets": self.total_targets,
            "healthy_count": self.healthy_count,
            "degraded_count": self.degraded_count,
            "unhealthy_count": self.unhealthy_count,
            "average_confidence": self.average_confidence,
            "dominant_trend": self.dominant_trend.value,
        }
