"""
Tests for the hysteresis store and the health check manager.

Tests cover:
- In-memory store operations
- Load, evaluate, store cycle per target
- Transition callbacks
- Store failures and batch isolation
"""

import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from health_check.exceptions import StateStoreError
from health_check.manager import HealthCheckManager
from health_check.models import HealthState, HealthTrend, HysteresisState, IndicatorType, TargetType
from health_check.store import InMemoryHysteresisStore, make_target_key
from tests.health_check.helpers import NOW, hourly_points, make_telemetry


KEY = "service:checkout-api"


@pytest.fixture
def store():
    return InMemoryHysteresisStore()


@pytest.fixture
def manager(config, store):
    return HealthCheckManager(config, store=store)


# =============================================================
# TEST: Store
# =============================================================

class TestInMemoryStore:

    def test_make_target_key(self):
        assert make_target_key(TargetType.AGENT, "router") == "agent:router"
        assert make_target_key("provider", "openai") == "provider:openai"

    def test_put_get_delete(self, store):
        state = HysteresisState.initial(HealthState.DEGRADED)
        assert store.get(KEY) is None

        store.put(KEY, state)
        assert store.get(KEY) == state
        assert store.keys() == [KEY]
        assert len(store) == 1

        assert store.delete(KEY) is True
        assert store.delete(KEY) is False
        assert store.get(KEY) is None

    def test_initial_contents(self):
        state = HysteresisState.initial()
        store = InMemoryHysteresisStore({KEY: state})
        assert store.get(KEY) == state

    def test_concurrent_puts(self, store):
        def writer(i):
            store.put(f"service:svc-{i}", HysteresisState.initial())

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(store) == 20


# =============================================================
# TEST: Manager evaluation cycle
# =============================================================

class TestManagerEvaluate:

    def test_persists_state(self, manager, store, healthy_telemetry):
        evaluation = manager.evaluate(healthy_telemetry, now=NOW)

        assert evaluation.overall_state == HealthState.HEALTHY
        assert store.get(KEY).current_state == HealthState.HEALTHY
        assert manager.get_state(KEY) == HealthState.HEALTHY
        assert manager.get_latest(KEY) is evaluation

    def test_state_carries_across_calls(self, manager, healthy_telemetry, unhealthy_telemetry):
        manager.evaluate(unhealthy_telemetry, now=NOW)

        states = [
            manager.evaluate(healthy_telemetry, now=NOW + timedelta(minutes=5 * i)).overall_state
            for i in range(1, 4)
        ]
        assert states == [HealthState.UNHEALTHY, HealthState.UNHEALTHY, HealthState.HEALTHY]

    def test_degradation_fires_callback(self, manager, healthy_telemetry, degraded_telemetry):
        received = []
        manager.on_transition(received.append)

        manager.evaluate(healthy_telemetry, now=NOW)
        assert received == []

        evaluation = manager.evaluate(degraded_telemetry, now=NOW + timedelta(minutes=5))
        assert received == [evaluation]
        assert evaluation.state_transition.previous_state == HealthState.HEALTHY

    def test_callback_errors_are_contained(self, manager, healthy_telemetry, degraded_telemetry):
        failing = MagicMock(side_effect=RuntimeError("boom"))
        after = MagicMock()
        manager.on_transition(failing)
        manager.on_transition(after)

        manager.evaluate(healthy_telemetry, now=NOW)
        manager.evaluate(degraded_telemetry, now=NOW + timedelta(minutes=5))

        failing.assert_called_once()
        after.assert_called_once()

    def test_targets_are_independent(self, manager, healthy_telemetry):
        other = make_telemetry(target_id="search-api", error_count=200, latency_p95_ms=3000.0)
        manager.evaluate(healthy_telemetry, now=NOW)
        manager.evaluate(other, now=NOW)

        assert manager.get_state(KEY) == HealthState.HEALTHY
        assert manager.get_state("service:search-api") == HealthState.UNHEALTHY
        assert manager.get_targets_by_state(HealthState.UNHEALTHY) == ["service:search-api"]

    def test_unknown_target_state(self, manager):
        assert manager.get_state("service:nope") is None
        assert manager.get_latest("service:nope") is None

    def test_statistics(self, manager, healthy_telemetry, degraded_telemetry):
        manager.evaluate(healthy_telemetry, now=NOW)
        manager.evaluate(degraded_telemetry, now=NOW + timedelta(minutes=5))

        stats = manager.get_statistics()
        assert stats["total_targets"] == 1
        assert stats["total_evaluations"] == 2
        assert stats["total_transitions"] == 1
        assert stats["summary"]["degraded_count"] == 1
        assert manager.summarize().total_targets == 1


# =============================================================
# TEST: Store failures
# =============================================================

class TestStoreFailures:

    def test_get_failure_raises(self, config, healthy_telemetry):
        store = MagicMock()
        store.get.side_effect = ConnectionError("store unreachable")
        manager = HealthCheckManager(config, store=store)

        with pytest.raises(StateStoreError) as exc_info:
            manager.evaluate(healthy_telemetry, now=NOW)

        error = exc_info.value
        assert error.target_key == KEY
        assert error.operation == "get"
        assert error.details["exception_type"] == "ConnectionError"
        store.put.assert_not_called()

    def test_put_failure_raises(self, config, healthy_telemetry):
        store = MagicMock()
        store.get.return_value = None
        store.put.side_effect = IOError("disk full")
        manager = HealthCheckManager(config, store=store)

        with pytest.raises(StateStoreError) as exc_info:
            manager.evaluate(healthy_telemetry, now=NOW)
        assert exc_info.value.operation == "put"


# =============================================================
# TEST: Batch
# =============================================================

class TestManagerBatch:

    def test_batch_preserves_order(self, manager):
        telemetry = [make_telemetry(target_id=f"svc-{i}") for i in range(6)]
        evaluations = manager.evaluate_batch(telemetry, max_workers=3, now=NOW)

        assert [e.target.id for e in evaluations] == [f"svc-{i}" for i in range(6)]
        assert len(manager.store.keys()) == 6

    def test_batch_uses_history(self, manager):
        telemetry = make_telemetry(target_id="svc-0")
        histories = {
            "service:svc-0": {
                IndicatorType.LATENCY: hourly_points([1000, 880, 820, 690, 610, 480]),
            }
        }
        [evaluation] = manager.evaluate_batch([telemetry], histories=histories, now=NOW)
        assert evaluation.overall_trend == HealthTrend.IMPROVING

    def test_failing_target_is_skipped(self, config):
        store = InMemoryHysteresisStore()
        original_get = store.get

        def flaky_get(key):
            if key == "service:svc-1":
                raise ConnectionError("timeout")
            return original_get(key)

        store.get = flaky_get
        manager = HealthCheckManager(config, store=store)

        telemetry = [make_telemetry(target_id=f"svc-{i}") for i in range(3)]
        evaluations = manager.evaluate_batch(telemetry, max_workers=2, now=NOW)

        assert [e.target.id for e in evaluations] == ["svc-0", "svc-2"]

    def test_invalid_target_does_not_discard_others(self, manager, store):
        telemetry = [
            make_telemetry(target_id="svc-0"),
            make_telemetry(target_id="svc-1", target_type="cluster"),
            make_telemetry(target_id="svc-2"),
        ]
        evaluations = manager.evaluate_batch(telemetry, max_workers=3, now=NOW)

        assert [e.target.id for e in evaluations] == ["svc-0", "svc-2"]
        assert sorted(store.keys()) == ["service:svc-0", "service:svc-2"]
