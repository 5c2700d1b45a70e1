import asyncio
import logging
from typing import Callable, Dict, List, Optional, Union

import httpx

from abstractions.registry import Registry
from config.logging_config import setup_logging
from contracts.backend import BackendEvent, BackendSpec, BackendState
from contracts.pool_options import PoolOptions
from core.backend import Backend, redact_credentials
from core.errors import ConfigurationError, PoolClosedError
from core.event_channel import EventChannel
from core.health_probe import HealthProbe
from core.pool_metrics import PoolMetrics
from core.probe_scheduler import ProbeScheduler

setup_logging()
logger = logging.getLogger(__name__)

_TUNABLES = (
    "healthy_after",
    "unhealthy_after",
    "remove_after",
    "check_interval",
    "check_timeout",
    "is_healthy",
)


class BackendPool(Registry):
    """
    Registry of monitored backends keyed by address.

    Each registered backend is probed on its own schedule; probe outcomes drive its
    health state, and every transition is emitted on the backend and again on the pool.
    """

    def __init__(
        self,
        options: Optional[PoolOptions] = None,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[PoolMetrics] = None,
        **kwargs,
    ):
        """
        Initialize the BackendPool.

        Args:
            options (Optional[PoolOptions]): Pool-wide defaults. Keyword arguments are
                used to build the options when this is omitted.
            client (Optional[httpx.AsyncClient]): Client used for probes. The pool creates
                and owns one when omitted.
            metrics (Optional[PoolMetrics]): Prometheus metrics sink.
        """
        if options is None:
            options = PoolOptions(**kwargs)
        elif kwargs:
            options = PoolOptions(**{**options.model_dump(exclude_unset=True), **kwargs})
        self.options = options
        self.probe = HealthProbe(client)
        self.metrics = metrics or PoolMetrics()
        self._all: List[Backend] = []
        self._by_address: Dict[str, Backend] = {}
        self._events = EventChannel(name="pool")
        self._lock = asyncio.Lock()
        self._closed = False
        logger.info(
            f"BackendPool initialized with healthcheck={options.healthcheck.url if options.healthcheck else None}, "
            f"healthy_after={options.healthy_after}, unhealthy_after={options.unhealthy_after}, "
            f"remove_after={options.remove_after}, check_interval={options.check_interval}s, "
            f"check_timeout={options.check_timeout}s"
        )

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def all(self) -> List[Backend]:
        return list(self._all)

    def __len__(self):
        return len(self._all)

    def __contains__(self, address):
        return address in self._by_address

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def on(self, event: Union[str, BackendEvent], handler: Callable) -> None:
        self._events.on(event, handler)

    def off(self, event: Union[str, BackendEvent], handler: Callable) -> bool:
        return self._events.off(event, handler)

    def get(self, address: str) -> Optional[Backend]:
        return self._by_address.get(address)

    def get_by_state(self, state: Union[str, BackendState]) -> List[Backend]:
        name = state.value if isinstance(state, BackendState) else str(state)
        name = name.upper()
        return [backend for backend in list(self._all) if backend.state.value == name]

    async def add(self, backend: Union[str, BackendSpec, dict]) -> Optional[Backend]:
        """
        Register a backend and schedule its first probe one check interval from now.

        Args:
            backend (Union[str, BackendSpec, dict]): Address or backend spec with overrides.

        Returns:
            Optional[Backend]: The registered backend, or None if the address is taken.

        Raises:
            ConfigurationError: If neither the backend nor the pool provides a healthcheck.
            PoolClosedError: If the pool has been closed.
        """
        spec = self._to_spec(backend)
        async with self._lock:
            if self._closed:
                raise PoolClosedError(f"Cannot add backend {redact_credentials(spec.address)}: pool is closed")
            if spec.address in self._by_address:
                logger.info(f"Backend {redact_credentials(spec.address)} already registered, ignoring add")
                return None
            entry = self._build_backend(spec)
            self._all.append(entry)
            self._by_address[entry.address] = entry
            entry.scheduler = ProbeScheduler(entry, self._check_backend)
            entry.scheduler.start()
            self.metrics.refresh_states(self._all)
        logger.info(
            f"Registered backend {entry.label}: healthcheck={entry.healthcheck.method} "
            f"{redact_credentials(entry.healthcheck.url)}, check_interval={entry.check_interval}s"
        )
        return entry

    async def remove(self, backend: Union[str, Backend]) -> Union[Backend, bool]:
        """
        Unregister a backend, cancel its probe schedule and emit 'remove'.

        Args:
            backend (Union[str, Backend]): Address or backend instance.

        Returns:
            Union[Backend, bool]: The removed backend, or False if it was not registered.
        """
        address = backend.address if isinstance(backend, Backend) else backend
        async with self._lock:
            entry = self._by_address.get(address)
            if entry is None or (isinstance(backend, Backend) and entry is not backend):
                logger.debug(f"Backend {redact_credentials(address)} not registered, nothing to remove")
                return False
            self._detach(entry)
        logger.info(f"Removed backend {entry.label}")
        self._emit(entry, BackendEvent.REMOVE)
        return entry

    async def close(self):
        """
        Cancel every probe schedule and release the HTTP client if the pool owns it.
        Backends stay registered and no 'remove' events are emitted. Further add() calls
        raise PoolClosedError.
        """
        if self._closed:
            return
        self._closed = True
        for backend in list(self._all):
            if backend.scheduler is not None:
                backend.scheduler.cancel()
        await self.probe.aclose()
        logger.info("BackendPool closed")

    def _to_spec(self, backend) -> BackendSpec:
        if isinstance(backend, BackendSpec):
            return backend
        if isinstance(backend, str):
            return BackendSpec(address=backend)
        return BackendSpec.model_validate(backend)

    def _build_backend(self, spec: BackendSpec) -> Backend:
        healthcheck = spec.healthcheck or self.options.healthcheck
        if healthcheck is None:
            raise ConfigurationError(
                f"No healthcheck for backend {redact_credentials(spec.address)}: specify 'healthcheck' "
                f"on the pool or when adding the backend"
            )
        tunables = {}
        for name in _TUNABLES:
            value = getattr(spec, name)
            tunables[name] = value if value is not None else getattr(self.options, name)
        return Backend(address=spec.address, healthcheck=healthcheck, **tunables)

    def _detach(self, backend: Backend):
        # Caller holds the lock.
        backend.removed = True
        if backend.scheduler is not None:
            backend.scheduler.cancel()
        del self._by_address[backend.address]
        self._all.remove(backend)
        self.metrics.refresh_states(self._all)

    async def _check_backend(self, backend: Backend):
        result = await self.probe.check(backend)
        self.metrics.observe_probe(result)
        await self._update_backend(backend, result.healthy)

    async def _update_backend(self, backend: Backend, healthy: bool):
        """
        Feed one probe outcome into the backend's state machine and act on transitions.
        """
        if backend.removed:
            logger.debug(f"Ignoring probe result for removed backend {backend.label}")
            return
        event = backend.record_success() if healthy else backend.record_failure()
        if event is not None:
            logger.info(
                f"Health transition: {backend.label} -> {backend.state.value} "
                f"(passed={backend.consecutive_passed}, failed={backend.consecutive_failed})"
            )
            self.metrics.refresh_states(self._all)
            self._emit(backend, event)
        if backend.removal_due:
            logger.warning(
                f"Backend {backend.label} failed {backend.consecutive_failed} consecutive probes, removing"
            )
            await self.remove(backend)

    def _emit(self, backend: Backend, event: BackendEvent):
        self.metrics.observe_event(event)
        backend.events.emit(event, backend)
        self._events.emit(event, backend)
