"""Dependency injection container for service management.

Builds the backend, clock and every service once at startup and hands them
out through properties. There is no module-level instance; the application
creates one container and passes it where it is needed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

from billsplit_core.core.logging import get_logger

if TYPE_CHECKING:
    from billsplit_core.backends.base import ICacheBackend
    from billsplit_core.core.config import Settings
    from billsplit_core.core.interfaces import IClock
    from billsplit_core.services.gateway import CoreGateway
    from billsplit_core.services.memory import ConsentLedger, ExpiryReconciler, MemoryStore
    from billsplit_core.services.metrics import MetricsRecorder
    from billsplit_core.services.optimization import CostOptimizer, DeviceOptimizer
    from billsplit_core.services.response_cache import CacheWarmer, ResponseCacheService
    from billsplit_core.services.response_cache.warmer import Loader

logger = get_logger(__name__)


class ServiceNotInitializedError(Exception):
    """Raised when accessing a service that hasn't been initialized."""

    def __init__(self, service_name: str):
        super().__init__(f"Service '{service_name}' has not been initialized. "
                         f"Call container.initialize() first.")
        self.service_name = service_name


def create_backend(settings: Settings) -> ICacheBackend:
    """Redis when configured, otherwise the explicit NullBackend."""
    from billsplit_core.backends import NullBackend, RedisBackend

    if settings.redis_url:
        return RedisBackend(settings.redis_url)

    logger.warning(
        "BILLSPLIT_REDIS_URL is not set: using NullBackend. Response caching is "
        "disabled and every memory or consent write will fail."
    )
    return NullBackend()


@dataclass
class ServiceContainer:
    """Centralized container for dependency injection.

    Usage:
        container = ServiceContainer()
        await container.initialize(settings, loader=llm.ask)

        gateway = container.gateway

        await container.shutdown()
    """

    _settings: Optional[Settings] = field(default=None, repr=False)
    _clock: Optional[IClock] = field(default=None, repr=False)
    _backend: Optional[ICacheBackend] = field(default=None, repr=False)
    _metrics: Optional[MetricsRecorder] = field(default=None, repr=False)
    _cache: Optional[ResponseCacheService] = field(default=None, repr=False)
    _warmer: Optional[CacheWarmer] = field(default=None, repr=False)
    _ledger: Optional[ConsentLedger] = field(default=None, repr=False)
    _store: Optional[MemoryStore] = field(default=None, repr=False)
    _reconciler: Optional[ExpiryReconciler] = field(default=None, repr=False)
    _cost_optimizer: Optional[CostOptimizer] = field(default=None, repr=False)
    _device_optimizer: Optional[DeviceOptimizer] = field(default=None, repr=False)
    _gateway: Optional[CoreGateway] = field(default=None, repr=False)
    _initialized: bool = field(default=False, repr=True)

    async def initialize(
        self,
        settings: Settings,
        loader: Optional[Loader] = None,
        clock: Optional[IClock] = None,
        backend: Optional[ICacheBackend] = None
    ) -> None:
        """Initialize all services.

        Args:
            settings: Application settings.
            loader: Upstream call used to warm the cache; no warmer without it.
            clock: Time source (wall clock by default).
            backend: Key-value backend (chosen from settings by default).
        """
        if self._initialized:
            logger.warning("Container already initialized, skipping")
            return

        self._settings = settings
        logger.info("Initializing service container...")

        try:
            # Import here to avoid circular imports
            from billsplit_core.core.clock import SystemClock
            from billsplit_core.services.gateway import CoreGateway
            from billsplit_core.services.memory import ConsentLedger, ExpiryReconciler, MemoryStore
            from billsplit_core.services.metrics import MetricsRecorder
            from billsplit_core.services.optimization import ComplexityScorer, CostOptimizer, DeviceOptimizer
            from billsplit_core.services.response_cache import (
                CacheWarmer,
                ResponseCacheService,
                TimeWindowClassifier,
                TTLPolicy,
            )

            self._clock = clock or SystemClock()
            self._backend = backend or create_backend(settings)
            await self._backend.connect()
            logger.info(f"Backend {type(self._backend).__name__} initialized")

            classifier = TimeWindowClassifier.from_settings(settings)
            self._metrics = MetricsRecorder(self._backend, self._clock, settings.region_timezone)
            self._cache = ResponseCacheService(
                self._backend,
                TTLPolicy.from_settings(settings, classifier),
                self._metrics,
                self._clock,
            )
            logger.info("Response cache initialized")

            if loader is not None:
                self._warmer = CacheWarmer(
                    self._cache,
                    loader,
                    concurrency=settings.warmup_concurrency,
                    queue_size=settings.warmup_queue_size,
                    ttl=settings.warmup_ttl,
                )
                self._warmer.start()

            self._ledger = ConsentLedger(self._backend, self._clock, settings.environment)
            self._store = MemoryStore(self._backend, self._ledger, self._clock)
            self._reconciler = ExpiryReconciler(self._backend, self._clock)
            logger.info(f"Memory store initialized ({settings.environment.value} consent defaults)")

            self._cost_optimizer = CostOptimizer.from_settings(
                settings, ComplexityScorer(), self._backend, self._clock
            )
            self._device_optimizer = DeviceOptimizer(
                classifier,
                self._metrics,
                self._clock,
                warmer=self._warmer,
                warmup_model=settings.warmup_model,
            )

            self._gateway = CoreGateway(
                self._cache,
                self._store,
                self._ledger,
                self._reconciler,
                self._metrics,
                self._cost_optimizer,
                self._device_optimizer,
                region=settings.region,
                daily_budget=settings.daily_budget_brl,
            )

            self._initialized = True
            logger.info("Service container initialized successfully")

        except Exception as e:
            logger.error(f"Failed to initialize service container: {e}")
            await self.shutdown()
            raise

    async def shutdown(self) -> None:
        """Shutdown all services and cleanup resources."""
        logger.info("Shutting down service container...")

        if self._warmer:
            try:
                await self._warmer.stop()
            except Exception as e:
                logger.error(f"Error stopping cache warmer: {e}")

        if self._store:
            await self._store.drain()

        if self._backend:
            try:
                await self._backend.disconnect()
                logger.info("Backend disconnected")
            except Exception as e:
                logger.error(f"Error disconnecting backend: {e}")

        self._initialized = False
        logger.info("Service container shut down")

    @property
    def is_initialized(self) -> bool:
        """Check if the container is initialized."""
        return self._initialized

    @property
    def settings(self) -> Settings:
        """Get application settings."""
        if self._settings is None:
            raise ServiceNotInitializedError("settings")
        return self._settings

    @property
    def backend(self) -> ICacheBackend:
        if self._backend is None:
            raise ServiceNotInitializedError("backend")
        return self._backend

    @property
    def cache(self) -> ResponseCacheService:
        if self._cache is None:
            raise ServiceNotInitializedError("cache")
        return self._cache

    @property
    def warmer(self) -> CacheWarmer:
        if self._warmer is None:
            raise ServiceNotInitializedError("warmer")
        return self._warmer

    @property
    def ledger(self) -> ConsentLedger:
        if self._ledger is None:
            raise ServiceNotInitializedError("ledger")
        return self._ledger

    @property
    def store(self) -> MemoryStore:
        if self._store is None:
            raise ServiceNotInitializedError("store")
        return self._store

    @property
    def reconciler(self) -> ExpiryReconciler:
        if self._reconciler is None:
            raise ServiceNotInitializedError("reconciler")
        return self._reconciler

    @property
    def gateway(self) -> CoreGateway:
        """Get the gateway instance."""
        if self._gateway is None:
            raise ServiceNotInitializedError("gateway")
        return self._gateway
