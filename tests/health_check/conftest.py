"""
Shared fixtures for health check tests.
"""

import pytest

from health_check.config import HealthCheckConfig
from tests.health_check.helpers import NOW, make_telemetry


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config():
    return HealthCheckConfig()


@pytest.fixture
def healthy_telemetry():
    return make_telemetry()


@pytest.fixture
def degraded_telemetry():
    """3% errors: error rate degraded, availability unhealthy."""
    return make_telemetry(error_count=30)


@pytest.fixture
def unhealthy_telemetry():
    return make_telemetry(error_count=200, latency_avg_ms=2500.0, latency_p95_ms=3000.0)
