"""
Builders shared by the health check tests.
"""

from datetime import datetime, timedelta, timezone

from health_check.models import HealthState, TargetType, TelemetryAggregate, TrendDataPoint


NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_telemetry(**overrides) -> TelemetryAggregate:
    """Healthy 60-second aggregate ending at NOW, with overrides."""
    values = {
        "target_id": "checkout-api",
        "target_type": TargetType.SERVICE,
        "window_start": NOW - timedelta(seconds=60),
        "window_end": NOW,
        "request_count": 1000,
        "error_count": 0,
        "latency_avg_ms": 150.0,
        "latency_p95_ms": 200.0,
        "target_name": "Checkout API",
    }
    values.update(overrides)
    return TelemetryAggregate(**values)


def hourly_points(values, end=NOW, state=HealthState.HEALTHY):
    """One TrendDataPoint per hour, the last one at end."""
    start = end - timedelta(hours=len(values) - 1)
    return [
        TrendDataPoint(timestamp=start + timedelta(hours=i), value=v, state=state)
        for i, v in enumerate(values)
    ]
