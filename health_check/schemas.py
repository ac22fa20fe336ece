"""
Pydantic Schemas for Health Check.

Wire-level models for the telemetry payload accepted from external
collectors and for the serialised HealthEvaluation record.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from .exceptions import InvalidTelemetryError
from .models import (
    EvaluationGranularity,
    EvaluationOptions,
    HealthEvaluation,
    HealthState,
    HealthTrend,
    IndicatorType,
    TargetType,
    TelemetryAggregate,
    as_utc,
)


# =============================================================
# INPUT SCHEMAS
# =============================================================

class TelemetryAggregateSchema(BaseModel):
    """Telemetry aggregate as received from a collector."""
    model_config = ConfigDict(extra="ignore")

    target_id: str = Field(..., min_length=1)
    target_type: TargetType
    target_name: Optional[str] = None
    window_start: datetime
    window_end: datetime
    request_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    latency_avg_ms: float = Field(..., ge=0)
    latency_p50_ms: Optional[float] = Field(None, ge=0)
    latency_p90_ms: Optional[float] = Field(None, ge=0)
    latency_p95_ms: Optional[float] = Field(None, ge=0)
    latency_p99_ms: Optional[float] = Field(None, ge=0)
    saturation_percentage: Optional[float] = Field(None, ge=0, le=100)

    @model_validator(mode="after")
    def check_consistency(self) -> "TelemetryAggregateSchema":
        if self.error_count > self.request_count:
            raise ValueError("error_count cannot exceed request_count")
        if as_utc(self.window_end) < as_utc(self.window_start):
            raise ValueError("window_end must not precede window_start")
        return self

    def to_model(self) -> TelemetryAggregate:
        return TelemetryAggregate(
            target_id=self.target_id,
            target_type=self.target_type,
            window_start=as_utc(self.window_start),
            window_end=as_utc(self.window_end),
            request_count=self.request_count,
            error_count=self.error_count,
            latency_avg_ms=self.latency_avg_ms,
            latency_p50_ms=self.latency_p50_ms,
            latency_p90_ms=self.latency_p90_ms,
            latency_p95_ms=self.latency_p95_ms,
            latency_p99_ms=self.latency_p99_ms,
            saturation_percentage=self.saturation_percentage,
            target_name=self.target_name,
        )


class EvaluationOptionsSchema(BaseModel):
    """Evaluation options as received from a caller."""
    include_trends: bool = True
    include_predictions: bool = False
    granularity: EvaluationGranularity = EvaluationGranularity.FIVE_MINUTES

    def to_model(self) -> EvaluationOptions:
        return EvaluationOptions(
            include_trends=self.include_trends,
            include_predictions=self.include_predictions,
            granularity=self.granularity,
        )


def parse_telemetry(payload: Dict[str, Any]) -> TelemetryAggregate:
    """
    Validate an external payload and convert it to a TelemetryAggregate.

    Raises:
        InvalidTelemetryError: payload failed validation
    """
    try:
        schema = TelemetryAggregateSchema.model_validate(payload)
    except ValidationError as e:
        target_key = None
        if isinstance(payload, dict) and payload.get("target_type") and payload.get("target_id"):
            target_key = f"{payload['target_type']}:{payload['target_id']}"
        raise InvalidTelemetryError(
            e.errors(include_url=False, include_context=False, include_input=False),
            target_key=target_key,
        ) from e
    return schema.to_model()


# =============================================================
# OUTPUT SCHEMAS
# =============================================================

class TargetSchema(BaseModel):
    type: TargetType
    id: str
    name: str


class MeasurementWindowSchema(BaseModel):
    start: datetime
    end: datetime
    duration_seconds: int


class HealthIndicatorSchema(BaseModel):
    indicator_type: IndicatorType
    current_value: float
    unit: str
    state: HealthState
    state_reason: str
    sample_size: int
    confidence: float = Field(..., ge=0, le=1)
    measurement_window: MeasurementWindowSchema


class StateTransitionSchema(BaseModel):
    previous_state: Optional[HealthState] = None
    current_state: HealthState
    transition_time: Optional[datetime] = None
    time_in_current_state_seconds: int
    consecutive_samples_in_state: int
    hysteresis_threshold: int


class TrendDataPointSchema(BaseModel):
    timestamp: datetime
    value: float
    state: HealthState


class TrendAnalysisSchema(BaseModel):
    indicator_type: IndicatorType
    trend: HealthTrend
    slope: float
    r_squared: float
    change_percentage: float
    data_points: List[TrendDataPointSchema]
    predicted_state_in_1h: Optional[HealthState] = None
    confidence: float


class AggregateStatisticsSchema(BaseModel):
    total_requests: int
    total_errors: int
    avg_latency_ms: float
    error_rate_percentage: float
    availability_percentage: float
    sample_size: int


class EvaluationWindowSchema(BaseModel):
    start: datetime
    end: datetime
    granularity: EvaluationGranularity


class ConfidenceFactorsSchema(BaseModel):
    sample_factor: float
    coverage_factor: float
    indicator_factor: float
    freshness_factor: float
    variance_factor: float


class HealthEvaluationSchema(BaseModel):
    """Serialised HealthEvaluation."""
    evaluation_id: str
    evaluated_at: datetime
    target: TargetSchema
    overall_state: HealthState
    overall_trend: HealthTrend
    overall_trend_confidence: float = Field(..., ge=0, le=1)
    overall_confidence: float = Field(..., ge=0, le=1)
    state_transition: StateTransitionSchema
    indicators: List[HealthIndicatorSchema]
    trends: Optional[List[TrendAnalysisSchema]] = None
    statistics: AggregateStatisticsSchema
    evaluation_window: EvaluationWindowSchema
    confidence_factors: Optional[ConfidenceFactorsSchema] = None
    schema_version: str

    @classmethod
    def from_evaluation(cls, evaluation: HealthEvaluation) -> "HealthEvaluationSchema":
        return cls.model_validate(evaluation.to_dict())
