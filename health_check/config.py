"""
Health Check - Configuration.

============================================================
CONFIGURABLE HEALTH EVALUATION
============================================================

All evaluation parameters are configurable:
- Per-indicator threshold pairs
- Hysteresis thresholds (to degrade, to improve)
- Indicator importance weights
- Trend classification thresholds
- Confidence model parameters

Configuration can be loaded from:
- Default values
- Environment variables (optionally seeded from a .env file)
- YAML config file

There is no global configuration object: a config is built
once by the caller and passed to the evaluator explicitly.

============================================================
"""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import EvaluationGranularity, IndicatorType


logger = logging.getLogger(__name__)


# =============================================================
# INDICATOR THRESHOLDS
# =============================================================


class _LowerIsBetter:
    """Threshold pair where smaller values are healthier."""

    def _validate(self, healthy: float, degraded: float, name: str) -> None:
        if healthy > degraded:
            raise ConfigurationError(
                f"{name}: healthy threshold must be <= degraded threshold",
                config_key=name,
                expected_value=f"<= {degraded}",
                actual_value=str(healthy),
            )


class _HigherIsBetter:
    """Threshold pair where larger values are healthier."""

    def _validate(self, healthy: float, degraded: float, name: str) -> None:
        if healthy < degraded:
            raise ConfigurationError(
                f"{name}: healthy threshold must be >= degraded threshold",
                config_key=name,
                expected_value=f">= {degraded}",
                actual_value=str(healthy),
            )


@dataclass
class LatencyThresholds(_LowerIsBetter):
    """P95 latency thresholds in milliseconds."""
    healthy_max_p95_ms: float = 500.0
    degraded_max_p95_ms: float = 2000.0

    def __post_init__(self) -> None:
        self._validate(self.healthy_max_p95_ms, self.degraded_max_p95_ms, "latency")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.healthy_max_p95_ms, self.degraded_max_p95_ms


@dataclass
class ErrorRateThresholds(_LowerIsBetter):
    """Error rate thresholds in percent."""
    healthy_max_percentage: float = 1.0
    degraded_max_percentage: float = 5.0

    def __post_init__(self) -> None:
        self._validate(self.healthy_max_percentage, self.degraded_max_percentage, "error_rate")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.healthy_max_percentage, self.degraded_max_percentage


@dataclass
class ThroughputThresholds(_HigherIsBetter):
    """Throughput thresholds in requests per second."""
    healthy_min_rps: float = 10.0
    degraded_min_rps: float = 1.0

    def __post_init__(self) -> None:
        self._validate(self.healthy_min_rps, self.degraded_min_rps, "throughput")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.healthy_min_rps, self.degraded_min_rps


@dataclass
class SaturationThresholds(_LowerIsBetter):
    """Resource saturation thresholds in percent."""
    healthy_max_percentage: float = 70.0
    degraded_max_percentage: float = 90.0

    def __post_init__(self) -> None:
        self._validate(self.healthy_max_percentage, self.degraded_max_percentage, "saturation")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.healthy_max_percentage, self.degraded_max_percentage


@dataclass
class AvailabilityThresholds(_HigherIsBetter):
    """Availability thresholds in percent."""
    healthy_min_percentage: float = 99.9
    degraded_min_percentage: float = 99.0

    def __post_init__(self) -> None:
        self._validate(self.healthy_min_percentage, self.degraded_min_percentage, "availability")

    @property
    def bounds(self) -> Tuple[float, float]:
        return self.healthy_min_percentage, self.degraded_min_percentage


IndicatorThresholds = Union[
    LatencyThresholds,
    ErrorRateThresholds,
    ThroughputThresholds,
    SaturationThresholds,
    AvailabilityThresholds,
]


@dataclass
class ThresholdConfig:
    """Threshold pairs for every indicator type."""
    latency: LatencyThresholds = field(default_factory=LatencyThresholds)
    error_rate: ErrorRateThresholds = field(default_factory=ErrorRateThresholds)
    throughput: ThroughputThresholds = field(default_factory=ThroughputThresholds)
    saturation: SaturationThresholds = field(default_factory=SaturationThresholds)
    availability: AvailabilityThresholds = field(default_factory=AvailabilityThresholds)

    def for_indicator(self, indicator_type: IndicatorType) -> IndicatorThresholds:
        """Get the threshold pair for an indicator type."""
        return getattr(self, IndicatorType.coerce(indicator_type).value)

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            name: {f.name: getattr(getattr(self, name), f.name) for f in fields(getattr(self, name))}
            for name in (t.value for t in IndicatorType)
        }


# =============================================================
# HYSTERESIS
# =============================================================


@dataclass
class HysteresisConfig:
    """
    Consecutive-sample thresholds for state changes.

    Degradation is fast (1 sample), recovery is slow (3 samples).
    """
    threshold_to_improve: int = 3
    threshold_to_degrade: int = 1

    def __post_init__(self) -> None:
        for name in ("threshold_to_improve", "threshold_to_degrade"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError(
                    f"{name} must be at least 1",
                    config_key=name,
                    expected_value=">= 1",
                    actual_value=str(value),
                )

    @property
    def max_threshold(self) -> int:
        return max(self.threshold_to_improve, self.threshold_to_degrade)

    def to_dict(self) -> Dict[str, int]:
        return {
            "threshold_to_improve": self.threshold_to_improve,
            "threshold_to_degrade": self.threshold_to_degrade,
        }


# =============================================================
# INDICATOR WEIGHTS
# =============================================================


@dataclass
class IndicatorWeights:
    """
    Importance weights for composite voting.

    Weights are relative and need not sum to 1. The default
    order reflects user impact: error rate, availability,
    latency, throughput, saturation.
    """
    error_rate: float = 3.0
    availability: float = 2.5
    latency: float = 2.0
    throughput: float = 1.5
    saturation: float = 1.0

    def __post_init__(self) -> None:
        for indicator_type in IndicatorType:
            value = getattr(self, indicator_type.value)
            if value < 0:
                raise ConfigurationError(
                    f"Weight for {indicator_type.value} must be non-negative",
                    config_key=f"weights.{indicator_type.value}",
                    expected_value=">= 0",
                    actual_value=str(value),
                )

    def get_weight(self, indicator_type: IndicatorType) -> float:
        """Get weight for a specific indicator type."""
        return getattr(self, IndicatorType.coerce(indicator_type).value)

    def importance_order(self) -> List[IndicatorType]:
        """Indicator types from most to least important."""
        return sorted(IndicatorType, key=self.get_weight, reverse=True)

    def to_dict(self) -> Dict[str, float]:
        return {t.value: self.get_weight(t) for t in IndicatorType}


# =============================================================
# TRENDS
# =============================================================


@dataclass
class TrendConfig:
    """Trend classification thresholds (slopes are per hour)."""
    improving_slope_threshold: float = 0.01
    degrading_slope_threshold: float = 0.01
    volatile_r_squared_max: float = 0.3
    prediction_r_squared_min: float = 0.5
    predict_ahead_hours: float = 1.0

    def __post_init__(self) -> None:
        for name in ("volatile_r_squared_max", "prediction_r_squared_min"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ConfigurationError(
                    f"{name} must be within [0, 1]",
                    config_key=name,
                    expected_value="0-1",
                    actual_value=str(value),
                )

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================
# CONFIDENCE
# =============================================================


@dataclass
class ConfidenceConfig:
    """Parameters of the confidence model."""
    expected_indicator_count: int = 5
    max_data_age_seconds: float = 300.0
    sufficient_threshold: float = 0.2

    def __post_init__(self) -> None:
        if self.expected_indicator_count < 1:
            raise ConfigurationError(
                "expected_indicator_count must be at least 1",
                config_key="expected_indicator_count",
                expected_value=">= 1",
                actual_value=str(self.expected_indicator_count),
            )
        if self.max_data_age_seconds <= 0:
            raise ConfigurationError(
                "max_data_age_seconds must be positive",
                config_key="max_data_age_seconds",
                expected_value="> 0",
                actual_value=str(self.max_data_age_seconds),
            )

    def to_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================
# MAIN CONFIGURATION
# =============================================================


_ENV_THRESHOLDS = {
    "latency": {
        "healthy_max_p95_ms": "HEALTH_LATENCY_HEALTHY_MAX_P95_MS",
        "degraded_max_p95_ms": "HEALTH_LATENCY_DEGRADED_MAX_P95_MS",
    },
    "error_rate": {
        "healthy_max_percentage": "HEALTH_ERROR_RATE_HEALTHY_MAX_PCT",
        "degraded_max_percentage": "HEALTH_ERROR_RATE_DEGRADED_MAX_PCT",
    },
    "throughput": {
        "healthy_min_rps": "HEALTH_THROUGHPUT_HEALTHY_MIN_RPS",
        "degraded_min_rps": "HEALTH_THROUGHPUT_DEGRADED_MIN_RPS",
    },
    "saturation": {
        "healthy_max_percentage": "HEALTH_SATURATION_HEALTHY_MAX_PCT",
        "degraded_max_percentage": "HEALTH_SATURATION_DEGRADED_MAX_PCT",
    },
    "availability": {
        "healthy_min_percentage": "HEALTH_AVAILABILITY_HEALTHY_MIN_PCT",
        "degraded_min_percentage": "HEALTH_AVAILABILITY_DEGRADED_MIN_PCT",
    },
}

_ENV_TREND = {
    "improving_slope_threshold": "HEALTH_TREND_IMPROVING_SLOPE",
    "degrading_slope_threshold": "HEALTH_TREND_DEGRADING_SLOPE",
    "volatile_r_squared_max": "HEALTH_TREND_VOLATILE_R2_MAX",
    "prediction_r_squared_min": "HEALTH_TREND_PREDICTION_R2_MIN",
    "predict_ahead_hours": "HEALTH_TREND_PREDICT_AHEAD_HOURS",
}

_THRESHOLD_CLASSES = {
    "latency": LatencyThresholds,
    "error_rate": ErrorRateThresholds,
    "throughput": ThroughputThresholds,
    "saturation": SaturationThresholds,
    "availability": AvailabilityThresholds,
}


def _env_number(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {key}={value!r}, using {default}")
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {key}={value!r}, using {default}")
        return default


def _section(value: Any, name: str) -> Dict[str, Any]:
    """A config section must be a mapping; an empty YAML section is None."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(
            f"{name} must be a mapping",
            config_key=name,
            expected_value="mapping",
            actual_value=type(value).__name__,
        )
    return value


def _build_section(section_cls: type, value: Any, name: str) -> Any:
    values = _section(value, name)
    try:
        return section_cls(**values)
    except (TypeError, ValueError) as e:
        allowed = ", ".join(f.name for f in fields(section_cls))
        raise ConfigurationError(
            f"Invalid {name} section: {e}",
            config_key=name,
            expected_value=allowed,
            actual_value=", ".join(f"{k}={v!r}" for k, v in values.items()),
        ) from e


@dataclass
class HealthCheckConfig:
    """
    Main configuration for health evaluation.

    Combines all sub-configurations.
    """
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    hysteresis: HysteresisConfig = field(default_factory=HysteresisConfig)
    weights: IndicatorWeights = field(default_factory=IndicatorWeights)
    trends: TrendConfig = field(default_factory=TrendConfig)
    confidence: ConfidenceConfig = field(default_factory=ConfidenceConfig)

    default_granularity: EvaluationGranularity = EvaluationGranularity.FIVE_MINUTES

    # Worker pool size for batch evaluation, None = sequential
    batch_max_workers: Optional[int] = None

    @classmethod
    def from_env(cls, env_file: Optional[Union[str, Path]] = None) -> "HealthCheckConfig":
        """
        Load configuration from environment variables.

        If env_file is given it is loaded first; variables already
        set in the process environment take precedence.

        Environment variables:
        - HEALTH_<INDICATOR>_<HEALTHY|DEGRADED>_<MAX|MIN>_* (thresholds)
        - HEALTH_HYSTERESIS_THRESHOLD_IMPROVE
        - HEALTH_HYSTERESIS_THRESHOLD_DEGRADE
        - HEALTH_WEIGHT_<INDICATOR>
        - HEALTH_EXPECTED_INDICATORS
        - HEALTH_MAX_DATA_AGE_SECONDS
        - HEALTH_CONFIDENCE_SUFFICIENT
        - HEALTH_TREND_IMPROVING_SLOPE, HEALTH_TREND_DEGRADING_SLOPE
        - HEALTH_TREND_VOLATILE_R2_MAX, HEALTH_TREND_PREDICTION_R2_MIN
        - HEALTH_TREND_PREDICT_AHEAD_HOURS
        - HEALTH_DEFAULT_GRANULARITY
        - HEALTH_BATCH_MAX_WORKERS
        """
        if env_file is not None:
            load_dotenv(env_file, override=False)

        defaults = cls()

        thresholds = ThresholdConfig(**{
            name: _THRESHOLD_CLASSES[name](**{
                attr: _env_number(env_key, getattr(getattr(defaults.thresholds, name), attr))
                for attr, env_key in env_keys.items()
            })
            for name, env_keys in _ENV_THRESHOLDS.items()
        })

        hysteresis = HysteresisConfig(
            threshold_to_improve=_env_int(
                "HEALTH_HYSTERESIS_THRESHOLD_IMPROVE", defaults.hysteresis.threshold_to_improve
            ),
            threshold_to_degrade=_env_int(
                "HEALTH_HYSTERESIS_THRESHOLD_DEGRADE", defaults.hysteresis.threshold_to_degrade
            ),
        )

        weights = IndicatorWeights(**{
            t.value: _env_number(f"HEALTH_WEIGHT_{t.value.upper()}", defaults.weights.get_weight(t))
            for t in IndicatorType
        })

        confidence = ConfidenceConfig(
            expected_indicator_count=_env_int(
                "HEALTH_EXPECTED_INDICATORS", defaults.confidence.expected_indicator_count
            ),
            max_data_age_seconds=_env_number(
                "HEALTH_MAX_DATA_AGE_SECONDS", defaults.confidence.max_data_age_seconds
            ),
            sufficient_threshold=_env_number(
                "HEALTH_CONFIDENCE_SUFFICIENT", defaults.confidence.sufficient_threshold
            ),
        )

        trends = TrendConfig(**{
            attr: _env_number(env_key, getattr(defaults.trends, attr))
            for attr, env_key in _ENV_TREND.items()
        })

        granularity = defaults.default_granularity
        raw_granularity = os.getenv("HEALTH_DEFAULT_GRANULARITY")
        if raw_granularity:
            try:
                granularity = EvaluationGranularity(raw_granularity)
            except ValueError:
                raise ConfigurationError(
                    "Unsupported evaluation granularity",
                    config_key="HEALTH_DEFAULT_GRANULARITY",
                    expected_value=", ".join(g.value for g in EvaluationGranularity),
                    actual_value=raw_granularity,
                ) from None

        workers = _env_int("HEALTH_BATCH_MAX_WORKERS", 0)

        return cls(
            thresholds=thresholds,
            hysteresis=hysteresis,
            weights=weights,
            trends=trends,
            confidence=confidence,
            default_granularity=granularity,
            batch_max_workers=workers or None,
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "HealthCheckConfig":
        """
        Load configuration from a YAML file.

        An unreadable or malformed file yields the defaults. Content
        that parses but is not a valid configuration (wrong shape,
        unknown keys, values failing validation) raises
        ConfigurationError.
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load YAML config from {path}: {e}")
            return cls()

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthCheckConfig":
        """
        Build configuration from a plain mapping (missing keys use defaults).

        Raises:
            ConfigurationError: a section is not a mapping, has an unknown
                key or holds a value that fails validation
        """
        data = _section(data, "config")
        t = _section(data.get("thresholds", {}), "thresholds")
        thresholds = ThresholdConfig(**{
            name: _build_section(
                _THRESHOLD_CLASSES[name], t.get(name, {}), f"thresholds.{name}"
            )
            for name in _THRESHOLD_CLASSES
        })

        config = cls(
            thresholds=thresholds,
            hysteresis=_build_section(HysteresisConfig, data.get("hysteresis", {}), "hysteresis"),
            weights=_build_section(IndicatorWeights, data.get("weights", {}), "weights"),
            trends=_build_section(TrendConfig, data.get("trends", {}), "trends"),
            confidence=_build_section(ConfidenceConfig, data.get("confidence", {}), "confidence"),
        )

        if "default_granularity" in data:
            raw_granularity = data["default_granularity"]
            try:
                config.default_granularity = EvaluationGranularity(raw_granularity)
            except ValueError:
                raise ConfigurationError(
                    "Unsupported evaluation granularity",
                    config_key="default_granularity",
                    expected_value=", ".join(g.value for g in EvaluationGranularity),
                    actual_value=str(raw_granularity),
                ) from None

        if "batch_max_workers" in data:
            workers = data["batch_max_workers"]
            if workers is not None and (not isinstance(workers, int) or workers < 1):
                raise ConfigurationError(
                    "batch_max_workers must be a positive integer or null",
                    config_key="batch_max_workers",
                    expected_value=">= 1",
                    actual_value=str(workers),
                )
            config.batch_max_workers = workers

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "thresholds": self.thresholds.to_dict(),
            "hysteresis": self.hysteresis.to_dict(),
            "weights": self.weights.to_dict(),
            "trends": self.trends.to_dict(),
            "confidence": self.confidence.to_dict(),
            "default_granularity": self.default_granularity.value,
            "batch_max_workers": self.batch_max_workers,
        }
