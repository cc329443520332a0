"""Shared test fixtures for the billsplit core tests."""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from billsplit_core.backends.memory_backend import MemoryBackend
from billsplit_core.core.clock import resolve_timezone
from billsplit_core.core.config import Environment, Settings
from billsplit_core.models.consent import ConsentPurpose
from billsplit_core.services.gateway import CoreGateway
from billsplit_core.services.memory import ConsentLedger, ExpiryReconciler, MemoryStore
from billsplit_core.services.metrics import MetricsRecorder
from billsplit_core.services.optimization import ComplexityScorer, CostOptimizer, DeviceOptimizer
from billsplit_core.services.response_cache import ResponseCacheService, TimeWindowClassifier, TTLPolicy

# Wednesday 10:00 in São Paulo, outside every peak window
OFF_PEAK = datetime(2024, 3, 6, 13, 0, tzinfo=timezone.utc)
# Wednesday 12:30 in São Paulo, inside the lunch window
LUNCH_PEAK = datetime(2024, 3, 6, 15, 30, tzinfo=timezone.utc)


class FakeClock:
    """Manually driven clock."""

    def __init__(self, start: datetime = OFF_PEAK):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def set(self, moment: datetime) -> None:
        self.current = moment

    def advance(self, **kwargs) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current

    def to_local(self, moment: datetime, tz_name: str) -> datetime:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(resolve_timezone(tz_name))


# ============================================================================
# Infrastructure Fixtures
# ============================================================================

@pytest.fixture
def clock():
    """Clock parked at an off-peak instant."""
    return FakeClock()


@pytest.fixture
def settings():
    """Production settings with no Redis configured."""
    return Settings(_env_file=None, environment=Environment.PRODUCTION, redis_url=None)


@pytest.fixture
def memory_backend(clock):
    """Create a fresh memory backend driven by the fake clock."""
    return MemoryBackend(clock=clock)


@pytest.fixture
async def connected_memory_backend(memory_backend):
    """Create a connected memory backend."""
    await memory_backend.connect()
    yield memory_backend
    await memory_backend.disconnect()


@pytest.fixture
def broken_backend():
    """Backend double whose every call fails like an unreachable Redis."""
    from billsplit_core.core.errors import BackendUnavailable

    mock = AsyncMock()
    mock.enabled = True
    failure = BackendUnavailable("Redis connection refused")
    for name in ("get", "set", "delete", "exists", "scan", "ttl", "expire_at", "incr", "incr_float"):
        setattr(mock, name, AsyncMock(side_effect=failure))
    return mock


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def classifier(settings):
    return TimeWindowClassifier.from_settings(settings)


@pytest.fixture
def ttl_policy(settings, classifier):
    return TTLPolicy.from_settings(settings, classifier)


@pytest.fixture
def metrics(connected_memory_backend, clock):
    return MetricsRecorder(connected_memory_backend, clock)


@pytest.fixture
def response_cache(connected_memory_backend, ttl_policy, metrics, clock):
    return ResponseCacheService(connected_memory_backend, ttl_policy, metrics, clock)


@pytest.fixture
def ledger(connected_memory_backend, clock):
    """Consent ledger with production (deny) defaults."""
    return ConsentLedger(connected_memory_backend, clock, Environment.PRODUCTION)


@pytest.fixture
async def store(connected_memory_backend, ledger, clock):
    memory_store = MemoryStore(connected_memory_backend, ledger, clock)
    yield memory_store
    await memory_store.drain()


@pytest.fixture
def reconciler(connected_memory_backend, clock):
    return ExpiryReconciler(connected_memory_backend, clock)


@pytest.fixture
def cost_optimizer(settings, connected_memory_backend, clock):
    return CostOptimizer.from_settings(settings, ComplexityScorer(), connected_memory_backend, clock)


@pytest.fixture
def device_optimizer(classifier, metrics, clock):
    return DeviceOptimizer(classifier, metrics, clock)


@pytest.fixture
def gateway(response_cache, store, ledger, reconciler, metrics, cost_optimizer, device_optimizer):
    return CoreGateway(
        response_cache,
        store,
        ledger,
        reconciler,
        metrics,
        cost_optimizer,
        device_optimizer,
    )


@pytest.fixture
def grant(ledger):
    """Grant consent purposes for a user."""

    async def _grant(user_id: str, *purposes: ConsentPurpose, retention_days: int = 365):
        for purpose in purposes or tuple(ConsentPurpose):
            await ledger.grant(user_id, purpose, retention_days=retention_days)

    return _grant
