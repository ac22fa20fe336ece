"""
Health Check - Health Check Manager.

============================================================
CALLER-SIDE COORDINATOR
============================================================

The HealthCheckManager wraps the pure evaluator with the state
handling the engine leaves to its caller:

- Loads the prior HysteresisState from a store
- Serialises evaluations of the same target key
- Writes the new HysteresisState back
- Fans batches out over a fixed-size worker pool
- Notifies callbacks on state transitions

============================================================
USAGE
============================================================

```python
manager = HealthCheckManager(HealthCheckConfig.from_env())
manager.on_transition(lambda evaluation: print(evaluation.overall_state))

evaluation = manager.evaluate(telemetry)
evaluations = manager.evaluate_batch([telemetry_a, telemetry_b])
```

============================================================
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from .config import HealthCheckConfig
from .evaluator import HealthEvaluator, History, summarize_evaluations
from .exceptions import StateStoreError
from .models import (
    EvaluationOptions,
    EvaluationSummary,
    HealthEvaluation,
    HealthState,
    HysteresisState,
    TelemetryAggregate,
    as_utc,
    utc_now,
)
from .store import HysteresisStore, InMemoryHysteresisStore


logger = logging.getLogger(__name__)


TransitionCallback = Callable[[HealthEvaluation], None]


class HealthCheckManager:
    """
    Coordinates evaluations against a hysteresis store.

    ============================================================
    THREAD SAFETY
    ============================================================

    Evaluations of one target key run one at a time under a
    per-key lock; different targets run concurrently.

    ============================================================
    """

    def __init__(
        self,
        config: Optional[HealthCheckConfig] = None,
        store: Optional[HysteresisStore] = None,
        evaluator: Optional[HealthEvaluator] = None,
    ) -> None:
        """
        Initialize health check manager.

        Args:
            config: Health check configuration
            store: Hysteresis store, in-memory by default
            evaluator: Evaluator, built from config by default
        """
        self._config = config or HealthCheckConfig()
        self._store = store if store is not None else InMemoryHysteresisStore()
        self._evaluator = evaluator or HealthEvaluator(self._config)

        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()

        self._latest: Dict[str, HealthEvaluation] = {}
        self._latest_lock = threading.RLock()

        self._transition_callbacks: List[TransitionCallback] = []

        self._total_evaluations = 0
        self._total_transitions = 0

        logger.info("HealthCheckManager initialized")

    @property
    def store(self) -> HysteresisStore:
        return self._store

    # =========================================================
    # LOCKING
    # =========================================================

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    # =========================================================
    # STORE ACCESS
    # =========================================================

    def _load(self, key: str) -> Optional[HysteresisState]:
        try:
            return self._store.get(key)
        except Exception as e:
            raise StateStoreError(key, "get", e) from e

    def _save(self, key: str, state: HysteresisState) -> None:
        try:
            self._store.put(key, state)
        except Exception as e:
            raise StateStoreError(key, "put", e) from e

    # =========================================================
    # EVALUATION
    # =========================================================

    def evaluate(
        self,
        telemetry: TelemetryAggregate,
        history: Optional[History] = None,
        options: Optional[EvaluationOptions] = None,
        now: Optional[datetime] = None,
    ) -> HealthEvaluation:
        """
        Evaluate one target and persist its new hysteresis state.

        Raises:
            StateStoreError: the store could not be read or written
        """
        key = telemetry.target_key

        with self._lock_for(key):
            previous = self._load(key)
            result = self._evaluator.evaluate(
                telemetry,
                previous_state=previous,
                history=history,
                options=options,
                now=now,
            )
            self._save(key, result.hysteresis_state)

        evaluation = result.evaluation

        with self._latest_lock:
            self._latest[key] = evaluation
            self._total_evaluations += 1
            if evaluation.transition_occurred:
                self._total_transitions += 1

        if evaluation.transition_occurred:
            self._handle_transition(key, evaluation)

        return evaluation

    def evaluate_batch(
        self,
        telemetry: Sequence[TelemetryAggregate],
        histories: Optional[Dict[str, History]] = None,
        options: Optional[EvaluationOptions] = None,
        max_workers: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[HealthEvaluation]:
        """
        Evaluate many targets.

        A target that raises (store failure, invalid telemetry) is
        logged and skipped; the others are still evaluated and
        persisted. Results keep input order.
        """
        now = as_utc(now) if now is not None else utc_now()
        histories = histories or {}
        workers = max_workers if max_workers is not None else self._config.batch_max_workers

        def run(item: TelemetryAggregate) -> Optional[HealthEvaluation]:
            try:
                return self.evaluate(
                    item,
                    history=histories.get(item.target_key),
                    options=options,
                    now=now,
                )
            except Exception as e:
                label = f"{getattr(item.target_type, 'value', item.target_type)}:{item.target_id}"
                logger.error(f"Batch evaluation failed for {label}: {e}", exc_info=True)
                return None

        if not workers or workers <= 1:
            results = [run(item) for item in telemetry]
        else:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(run, telemetry))

        evaluations = [r for r in results if r is not None]
        failed = len(results) - len(evaluations)
        if failed:
            logger.warning(f"Batch evaluated {len(evaluations)} targets, {failed} failed")
        return evaluations

    def _handle_transition(self, key: str, evaluation: HealthEvaluation) -> None:
        transition = evaluation.state_transition
        previous = transition.previous_state.value if transition.previous_state else "none"

        if transition.previous_state and transition.current_state.is_worse_than(transition.previous_state):
            logger.warning(f"[{key}] State degraded: {previous} -> {transition.current_state.value}")
        else:
            logger.info(f"[{key}] State improved: {previous} -> {transition.current_state.value}")

        for callback in self._transition_callbacks:
            try:
                callback(evaluation)
            except Exception as e:
                logger.error(f"Transition callback failed: {e}")

    # =========================================================
    # CALLBACKS
    # =========================================================

    def on_transition(self, callback: TransitionCallback) -> None:
        """Register callback for state transitions."""
        self._transition_callbacks.append(callback)

    # =========================================================
    # QUERIES
    # =========================================================

    def get_latest(self, key: str) -> Optional[HealthEvaluation]:
        """Most recent evaluation of a target made by this manager."""
        with self._latest_lock:
            return self._latest.get(key)

    def get_state(self, key: str) -> Optional[HealthState]:
        """Persisted state of a target, None if never evaluated."""
        state = self._load(key)
        return state.current_state if state else None

    def get_targets_by_state(self, state: HealthState) -> List[str]:
        with self._latest_lock:
            return [
                key for key, evaluation in self._latest.items()
                if evaluation.overall_state == state
            ]

    def summarize(self) -> EvaluationSummary:
        with self._latest_lock:
            return summarize_evaluations(list(self._latest.values()))

    def get_statistics(self) -> Dict:
        """Get manager statistics."""
        with self._latest_lock:
            return {
                "total_targets": len(self._latest),
                "total_evaluations": self._total_evaluations,
                "total_transitions": self._total_transitions,
                "summary": summarize_evaluations(list(self._latest.values())).to_dict(),
            }
