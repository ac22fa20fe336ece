"""
Health Check - Composite State Aggregation.

Combines all indicators of a target into one state by
importance- and confidence-weighted voting over state scores
(healthy=0, degraded=1, unhealthy=2).
"""

import logging
from dataclasses import dataclass
from typing import Sequence

from .config import IndicatorWeights
from .models import HealthIndicator, HealthState


logger = logging.getLogger(__name__)


DEGRADED_SCORE_BOUNDARY = 0.5
UNHEALTHY_SCORE_BOUNDARY = 1.5


@dataclass(frozen=True)
class CompositeState:
    state: HealthState
    weighted_score: float


def score_to_state(score: float) -> HealthState:
    if score < DEGRADED_SCORE_BOUNDARY:
        return HealthState.HEALTHY
    if score < UNHEALTHY_SCORE_BOUNDARY:
        return HealthState.DEGRADED
    return HealthState.UNHEALTHY


def compute_composite_state(
    indicators: Sequence[HealthIndicator],
    weights: IndicatorWeights,
) -> CompositeState:
    """
    Compute the composite state of a target.

    score = sum(severity * weight * confidence) / sum(weight * confidence)

    With no indicators, or only zero-confidence ones, the result is
    HEALTHY with score 0; the confidence model flags such an
    evaluation as near-zero confidence.
    """
    weighted_score = 0.0
    total_weight = 0.0

    for indicator in indicators:
        weight = weights.get_weight(indicator.indicator_type) * indicator.confidence
        weighted_score += indicator.state.severity * weight
        total_weight += weight

    if total_weight <= 0:
        return CompositeState(state=HealthState.HEALTHY, weighted_score=0.0)

    score = weighted_score / total_weight
    state = score_to_state(score)

    logger.debug(f"Composite score {score:.3f} -> {state.value} from {len(indicators)} indicators")

    return CompositeState(state=state, weighted_score=score)
