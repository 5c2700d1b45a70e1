import logging
from typing import Iterable, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

from contracts.backend import BackendEvent, BackendState
from contracts.probe_result import ProbeResult

logger = logging.getLogger(__name__)


class PoolMetrics:
    """
    Prometheus metrics for a backend pool: probe outcomes, probe latency,
    state transitions and the number of backends per state.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """
        Args:
            registry (Optional[CollectorRegistry]): Registry to publish into. Each pool
                gets its own registry by default so several pools can coexist.
        """
        self.registry = registry or CollectorRegistry()
        self.PROBES = Counter(
            "backend_pool_probes_total",
            "Health probes by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.PROBE_LATENCY = Histogram(
            "backend_pool_probe_duration_seconds",
            "Health probe duration in seconds",
            registry=self.registry,
        )
        self.TRANSITIONS = Counter(
            "backend_pool_transitions_total",
            "Backend events emitted by the pool",
            ["event"],
            registry=self.registry,
        )
        self.BACKENDS = Gauge(
            "backend_pool_backends",
            "Registered backends by health state",
            ["state"],
            registry=self.registry,
        )
        for state in BackendState:
            self.BACKENDS.labels(state=state.value).set(0)

    def observe_probe(self, result: ProbeResult):
        outcome = "success" if result.healthy else "failure"
        self.PROBES.labels(outcome=outcome).inc()
        self.PROBE_LATENCY.observe(result.elapsed)

    def observe_event(self, event: BackendEvent):
        self.TRANSITIONS.labels(event=event.value).inc()

    def refresh_states(self, backends: Iterable):
        counts = {state: 0 for state in BackendState}
        for backend in backends:
            counts[backend.state] += 1
        for state, count in counts.items():
            self.BACKENDS.labels(state=state.value).set(count)

    def latest(self) -> bytes:
        return generate_latest(self.registry)
