import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ProbeScheduler:
    """
    Repeating, cancellable probe schedule for a single backend.

    Every ``check_interval`` seconds the scheduler fires. A firing starts one probe
    task unless the previous probe of the same backend is still in flight, in which
    case the firing is skipped.
    """

    def __init__(self, backend, probe: Callable[..., Awaitable[None]]):
        """
        Args:
            backend (Backend): The backend to probe.
            probe (Callable): Coroutine function run once per firing with the backend.
        """
        self.backend = backend
        self._probe = probe
        self._task: Optional[asyncio.Task] = None
        self._probe_task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """
        Start the schedule. The first firing happens one interval after this call.
        """
        if self.running or self._cancelled:
            return
        self._task = asyncio.create_task(
            self._loop(), name=f"probe-scheduler:{self.backend.label}"
        )
        logger.debug(
            f"Probe schedule started for {self.backend.label} every {self.backend.check_interval}s"
        )

    def cancel(self):
        """
        Stop the schedule and abandon any in-flight probe. Safe to call from inside the probe.
        """
        self._cancelled = True
        current = asyncio.current_task()
        for task in (self._task, self._probe_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        logger.debug(f"Probe schedule cancelled for {self.backend.label}")

    async def _loop(self):
        while not self._cancelled:
            await asyncio.sleep(self.backend.check_interval)
            if self._cancelled:
                break
            self._fire()

    def _fire(self):
        if self.backend.in_flight:
            logger.debug(
                f"Skipping probe for {self.backend.label}: previous probe still in flight"
            )
            return
        self.backend.in_flight = True
        self._probe_task = asyncio.create_task(
            self._run_probe(), name=f"probe:{self.backend.label}"
        )

    async def _run_probe(self):
        try:
            await self._probe(self.backend)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Probe cycle error for {self.backend.label}: {e}")
        finally:
            self.backend.in_flight = False
