import asyncio
import inspect
import logging
import time
from typing import Optional

import httpx

from contracts.probe_result import ProbeResult

logger = logging.getLogger(__name__)


class _PredicateError(Exception):
    """Wraps an exception raised by a backend's health predicate."""


class HealthProbe:
    """
    Executes one timed healthcheck request per call and classifies the response.

    Transport and URL errors, timeouts and predicate errors count as a failed probe.
    Anything else, such as a closed client, is an error of the caller and propagates.

    The request and the classification together race the backend's ``check_timeout``;
    whichever finishes first decides the outcome and the loser is cancelled, so a
    response arriving after the deadline is discarded.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient()

    async def check(self, backend) -> ProbeResult:
        start = time.monotonic()
        try:
            healthy, status_code = await asyncio.wait_for(
                self._request(backend), timeout=backend.check_timeout
            )
        except asyncio.TimeoutError:
            elapsed = time.monotonic() - start
            logger.warning(
                f"Probe timed out for {backend.label} after {backend.check_timeout}s"
            )
            return ProbeResult(healthy=False, elapsed=elapsed, error="timeout")
        except (httpx.HTTPError, httpx.InvalidURL, OSError) as e:
            elapsed = time.monotonic() - start
            logger.warning(f"Probe error for {backend.label}: {e!r}")
            return ProbeResult(healthy=False, elapsed=elapsed, error=repr(e))
        except _PredicateError as e:
            elapsed = time.monotonic() - start
            cause = e.__cause__
            logger.error(f"Health predicate failed for {backend.label}: {cause!r}")
            return ProbeResult(healthy=False, elapsed=elapsed, error=repr(cause))

        elapsed = time.monotonic() - start
        if healthy:
            logger.debug(
                f"Probe passed for {backend.label}: status={status_code} in {elapsed:.4f}s"
            )
        else:
            logger.warning(f"Probe failed for {backend.label}: status={status_code}")
        return ProbeResult(healthy=healthy, status_code=status_code, elapsed=elapsed)

    async def _request(self, backend):
        healthcheck = backend.healthcheck
        resp = await self.client.request(
            healthcheck.method,
            healthcheck.url,
            headers=healthcheck.headers,
            content=healthcheck.data,
            timeout=backend.check_timeout,
        )
        try:
            verdict = backend.is_healthy(resp)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except Exception as e:
            raise _PredicateError() from e
        return bool(verdict), resp.status_code

    async def aclose(self):
        if self._owns_client:
            await self.client.aclose()
