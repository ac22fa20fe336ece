"""
Health Check - Hysteresis State Machine.

============================================================
STATE DEBOUNCING
============================================================

Prevents state flapping by requiring consecutive samples in the
same direction before the persisted state changes:

- Degradation: threshold_to_degrade samples (default 1, fail fast)
- Improvement: threshold_to_improve samples (default 3, slow recovery)

A sample equal to the current state resets the counter to 1.
A never-before-seen target starts at its first computed state.

============================================================
PERSISTENCE
============================================================

The machine never stores anything. The caller loads the prior
HysteresisState, passes it in, and writes back the state
returned in HysteresisOutcome.new_state.

============================================================
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import HysteresisConfig
from .models import HealthState, HysteresisState, StateTransition


logger = logging.getLogger(__name__)


# =============================================================
# RESULT TYPES
# =============================================================


@dataclass(frozen=True)
class HysteresisDecision:
    """Outcome of applying hysteresis to one computed state."""
    new_state: HealthState
    transition_occurred: bool
    consecutive_samples: int
    hysteresis_applied: bool


@dataclass(frozen=True)
class HysteresisOutcome:
    """Complete result of a hysteresis step."""
    final_state: HealthState
    state_transition: StateTransition
    new_state: HysteresisState
    transition_occurred: bool


# =============================================================
# CORE RULES
# =============================================================


def apply_hysteresis(
    previous: HysteresisState,
    computed_state: HealthState,
    config: HysteresisConfig,
) -> HysteresisDecision:
    """
    Decide whether the computed state replaces the current one.

    Args:
        previous: Persisted state before this evaluation
        computed_state: Composite state computed this cycle
        config: Hysteresis thresholds

    Returns:
        HysteresisDecision
    """
    if computed_state == previous.current_state:
        return HysteresisDecision(
            new_state=previous.current_state,
            transition_occurred=False,
            consecutive_samples=1,
            hysteresis_applied=False,
        )

    degrading = computed_state.is_worse_than(previous.current_state)

    if previous.pending_state == computed_state:
        consecutive = previous.consecutive_samples + 1
    else:
        consecutive = 1

    if degrading:
        threshold = config.threshold_to_degrade
    else:
        threshold = config.threshold_to_improve

    if consecutive >= threshold:
        return HysteresisDecision(
            new_state=computed_state,
            transition_occurred=True,
            consecutive_samples=1,
            hysteresis_applied=threshold > 1,
        )

    return HysteresisDecision(
        new_state=previous.current_state,
        transition_occurred=False,
        consecutive_samples=consecutive,
        hysteresis_applied=True,
    )


def advance_state(
    previous: HysteresisState,
    computed_state: HealthState,
    decision: HysteresisDecision,
    now: datetime,
    evaluation_interval_seconds: int,
) -> HysteresisState:
    """Produce the state to persist after a decision."""
    if decision.transition_occurred:
        return HysteresisState(
            current_state=decision.new_state,
            pending_state=None,
            consecutive_samples=1,
            last_transition_time=now,
            time_in_current_state_seconds=0,
        )

    pending = computed_state if computed_state != previous.current_state else None

    return HysteresisState(
        current_state=previous.current_state,
        pending_state=pending,
        consecutive_samples=decision.consecutive_samples,
        last_transition_time=previous.last_transition_time,
        time_in_current_state_seconds=(
            previous.time_in_current_state_seconds + evaluation_interval_seconds
        ),
    )


def build_state_transition(
    previous: Optional[HysteresisState],
    decision: HysteresisDecision,
    new_state: HysteresisState,
    config: HysteresisConfig,
    now: datetime,
) -> StateTransition:
    """
    Build the StateTransition snapshot for an evaluation.

    previous is None for the first evaluation of a target.
    time_in_current_state_seconds is taken from new_state, so it
    reflects this cycle: 0 when a transition occurred, otherwise
    the prior value plus one evaluation interval.
    """
    return StateTransition(
        previous_state=previous.current_state if previous else None,
        current_state=decision.new_state,
        transition_time=now if decision.transition_occurred else None,
        time_in_current_state_seconds=new_state.time_in_current_state_seconds,
        consecutive_samples_in_state=decision.consecutive_samples,
        hysteresis_threshold=config.max_threshold,
    )


def state_from_transition(transition: StateTransition) -> HysteresisState:
    """
    Rebuild a HysteresisState from a persisted StateTransition.

    A StateTransition does not carry the pending direction, so a
    partially accumulated improvement starts over from 1.
    """
    return HysteresisState(
        current_state=transition.current_state,
        pending_state=None,
        consecutive_samples=transition.consecutive_samples_in_state,
        last_transition_time=transition.transition_time,
        time_in_current_state_seconds=transition.time_in_current_state_seconds,
    )


# =============================================================
# FULL STEP
# =============================================================


def evaluate_with_hysteresis(
    computed_state: HealthState,
    previous: Optional[HysteresisState],
    config: HysteresisConfig,
    now: datetime,
    evaluation_interval_seconds: int,
) -> HysteresisOutcome:
    """
    Run one hysteresis step.

    Args:
        computed_state: Composite state computed this cycle
        previous: Persisted state, None for a new target
        config: Hysteresis thresholds
        now: Evaluation timestamp
        evaluation_interval_seconds: Time added to the current state
            when no transition occurs

    Returns:
        HysteresisOutcome with the final state, the snapshot and
        the state to persist
    """
    baseline = previous if previous is not None else HysteresisState.initial(computed_state)

    decision = apply_hysteresis(baseline, computed_state, config)
    new_state = advance_state(
        baseline, computed_state, decision, now, evaluation_interval_seconds
    )
    transition = build_state_transition(previous, decision, new_state, config, now)

    if decision.transition_occurred:
        logger.info(
            f"State transition {baseline.current_state.value} -> {decision.new_state.value}"
        )
    elif decision.hysteresis_applied:
        logger.debug(
            f"Hysteresis holding {baseline.current_state.value}, pending "
            f"{computed_state.value} ({decision.consecutive_samples} consecutive)"
        )

    return HysteresisOutcome(
        final_state=decision.new_state,
        state_transition=transition,
        new_state=new_state,
        transition_occurred=decision.transition_occurred,
    )
