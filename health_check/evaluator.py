"""
Health Check - Evaluation Orchestrator.

============================================================
MAIN EVALUATOR
============================================================

Sequences the evaluation of one target:

1. Extract indicators from telemetry
2. Compute the composite state by weighted voting
3. Apply hysteresis against the prior state
4. Calculate statistical confidence
5. Analyze trends from history, or infer one from the state delta

The evaluator is a pure function of (telemetry, prior hysteresis
state, history, options, config, now). It keeps no state between
calls, so replaying the same inputs reproduces the same record,
evaluation_id included.

============================================================
USAGE
============================================================

```python
evaluator = HealthEvaluator(HealthCheckConfig.from_env())

result = evaluator.evaluate(telemetry, previous_state=store.get(key))
store.put(key, result.hysteresis_state)

print(result.evaluation.overall_state, result.evaluation.overall_confidence)
```

============================================================
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from typing import List, Mapping, Optional, Sequence
from uuid import NAMESPACE_URL, UUID, uuid5

from .composite import compute_composite_state
from .confidence import calculate_confidence, is_sufficient_confidence
from .config import HealthCheckConfig
from .hysteresis import evaluate_with_hysteresis
from .indicators import extract_indicators
from .models import (
    AggregateStatistics,
    EvaluationOptions,
    EvaluationResult,
    EvaluationSummary,
    EvaluationWindowSpec,
    HealthEvaluation,
    HealthState,
    HealthTrend,
    HysteresisState,
    IndicatorType,
    TargetSpec,
    TargetType,
    TelemetryAggregate,
    TrendAnalysis,
    TrendDataPoint,
    as_utc,
    utc_now,
)
from .trends import (
    aggregate_trends,
    analyze_trend,
    infer_trend_from_states,
    trend_vote_confidence,
)


logger = logging.getLogger(__name__)


_EVALUATION_NAMESPACE = uuid5(NAMESPACE_URL, "health-check/evaluation")


History = Mapping[IndicatorType, Sequence[TrendDataPoint]]


# =============================================================
# HELPERS
# =============================================================


def build_aggregate_statistics(telemetry: TelemetryAggregate) -> AggregateStatistics:
    return AggregateStatistics(
        total_requests=telemetry.request_count,
        total_errors=telemetry.error_count,
        avg_latency_ms=telemetry.latency_avg_ms,
        error_rate_percentage=round(telemetry.error_rate, 2),
        availability_percentage=round(telemetry.availability, 2),
        sample_size=telemetry.request_count,
    )


def evaluation_id_for(telemetry: TelemetryAggregate, evaluated_at: datetime) -> UUID:
    """Deterministic evaluation id for a (target, window, time) triple."""
    name = "|".join((
        telemetry.target_key,
        as_utc(telemetry.window_start).isoformat(),
        as_utc(telemetry.window_end).isoformat(),
        as_utc(evaluated_at).isoformat(),
    ))
    return uuid5(_EVALUATION_NAMESPACE, name)


# =============================================================
# REQUEST
# =============================================================


@dataclass(frozen=True)
class EvaluationRequest:
    """Inputs for evaluating one target."""
    telemetry: TelemetryAggregate
    previous_state: Optional[HysteresisState] = None
    history: Optional[History] = None
    options: Optional[EvaluationOptions] = None


# =============================================================
# EVALUATOR
# =============================================================


class HealthEvaluator:
    """
    Evaluates target health from telemetry aggregates.

    Holds only its configuration; every call is independent.
    """

    def __init__(self, config: Optional[HealthCheckConfig] = None) -> None:
        self._config = config or HealthCheckConfig()

    @property
    def config(self) -> HealthCheckConfig:
        return self._config

    def default_options(self) -> EvaluationOptions:
        return EvaluationOptions(granularity=self._config.default_granularity)

    def evaluate(
        self,
        telemetry: TelemetryAggregate,
        previous_state: Optional[HysteresisState] = None,
        history: Optional[History] = None,
        options: Optional[EvaluationOptions] = None,
        now: Optional[datetime] = None,
    ) -> EvaluationResult:
        """
        Evaluate health for a single target.

        Args:
            telemetry: Aggregate for the evaluation window
            previous_state: Persisted hysteresis state, None for a new target
            history: Historical points per indicator type
            options: Evaluation options
            now: Evaluation timestamp

        Returns:
            EvaluationResult holding the evaluation and the hysteresis
            state the caller must persist
        """
        now = as_utc(now) if now is not None else utc_now()
        options = options or self.default_options()
        config = self._config

        indicators = extract_indicators(telemetry, config.thresholds)

        composite = compute_composite_state(indicators, config.weights)

        outcome = evaluate_with_hysteresis(
            computed_state=composite.state,
            previous=previous_state,
            config=config.hysteresis,
            now=now,
            evaluation_interval_seconds=options.granularity.seconds,
        )

        confidence = calculate_confidence(
            indicators=indicators,
            total_sample_size=telemetry.request_count,
            window_end=telemetry.window_end,
            now=now,
            expected_indicator_count=config.confidence.expected_indicator_count,
            max_data_age_seconds=config.confidence.max_data_age_seconds,
        )

        if not is_sufficient_confidence(
            confidence.overall_confidence, config.confidence.sufficient_threshold
        ):
            logger.warning(
                f"Low confidence for {telemetry.target_key}: {confidence.overall_confidence} "
                f"(weakest factor: {confidence.factors.weakest()})"
            )

        trends: Optional[List[TrendAnalysis]] = None
        if options.include_trends and history:
            trends = self._analyze_history(history, options) or None

        if trends:
            overall_trend = aggregate_trends(trends)
            trend_confidence = trend_vote_confidence(trends, overall_trend)
        else:
            overall_trend = infer_trend_from_states(
                outcome.final_state,
                previous_state.current_state if previous_state else None,
            )
            trend_confidence = 0.0

        evaluation = HealthEvaluation(
            evaluation_id=evaluation_id_for(telemetry, now),
            evaluated_at=now,
            target=TargetSpec(
                type=TargetType(telemetry.target_type),
                id=telemetry.target_id,
                name=telemetry.target_name or telemetry.target_id,
            ),
            overall_state=outcome.final_state,
            overall_trend=overall_trend,
            overall_trend_confidence=trend_confidence,
            overall_confidence=confidence.overall_confidence,
            state_transition=outcome.state_transition,
            indicators=indicators,
            trends=trends,
            statistics=build_aggregate_statistics(telemetry),
            evaluation_window=EvaluationWindowSpec(
                start=telemetry.window_start,
                end=telemetry.window_end,
                granularity=options.granularity,
            ),
            confidence_factors=confidence.factors,
        )

        logger.debug(
            f"Evaluated {telemetry.target_key}: computed={composite.state.value} "
            f"final={outcome.final_state.value} trend={overall_trend.value} "
            f"confidence={confidence.overall_confidence}"
        )

        return EvaluationResult(evaluation=evaluation, hysteresis_state=outcome.new_state)

    def _analyze_history(
        self,
        history: History,
        options: EvaluationOptions,
    ) -> List[TrendAnalysis]:
        predict_ahead = self._config.trends.predict_ahead_hours if options.include_predictions else 0

        analyses = []
        for indicator_type in IndicatorType:
            points = history.get(indicator_type)
            if not points:
                continue
            analysis = analyze_trend(
                indicator_type,
                points,
                thresholds=self._config.thresholds,
                predict_ahead_hours=predict_ahead,
                config=self._config.trends,
            )
            if analysis is not None:
                analyses.append(analysis)
        return analyses

    def evaluate_batch(
        self,
        requests: Sequence[EvaluationRequest],
        max_workers: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[EvaluationResult]:
        """
        Evaluate independent targets.

        Targets share no state, so they run sequentially or on a
        fixed-size thread pool. Results keep the order of requests.
        Callers must not put two requests for the same target key
        in one batch.
        """
        now = as_utc(now) if now is not None else utc_now()
        workers = max_workers if max_workers is not None else self._config.batch_max_workers
        start = time.time()

        def run(request: EvaluationRequest) -> EvaluationResult:
            return self.evaluate(
                request.telemetry,
                previous_state=request.previous_state,
                history=request.history,
                options=request.options,
                now=now,
            )

        if not workers or workers <= 1 or len(requests) <= 1:
            results = [run(r) for r in requests]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(run, requests))

        logger.info(
            f"Evaluated batch of {len(results)} targets in "
            f"{(time.time() - start) * 1000:.1f}ms (workers={workers or 1})"
        )
        return results


# =============================================================
# SUMMARY
# =============================================================


def summarize_evaluations(evaluations: Sequence[HealthEvaluation]) -> EvaluationSummary:
    """Summarize a set of evaluations: state counts, mean confidence, dominant trend."""
    if not evaluations:
        return EvaluationSummary()

    state_counts = {state: 0 for state in HealthState}
    trend_counts = {trend: 0 for trend in HealthTrend}
    total_confidence = 0.0

    for evaluation in evaluations:
        state_counts[evaluation.overall_state] += 1
        trend_counts[evaluation.overall_trend] += 1
        total_confidence += evaluation.overall_confidence

    dominant = HealthTrend.STABLE
    best = 0
    for trend, count in trend_counts.items():
        if count > best:
            best = count
            dominant = trend

    return EvaluationSummary(
        total_targets=len(evaluations),
        healthy_count=state_counts[HealthState.HEALTHY],
        degraded_count=state_counts[HealthState.DEGRADED],
        unhealthy_count=state_counts[HealthState.UNHEALTHY],
        average_confidence=round(total_confidence / len(evaluations), 2),
        dominant_trend=dominant,
    )
