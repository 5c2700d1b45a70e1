import logging
import re
from typing import Callable, Optional
from urllib.parse import urljoin, urlsplit

from contracts.backend import (
    BackendEvent,
    BackendState,
    BackendStatus,
    HealthcheckRequest,
)
from core.event_channel import EventChannel

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^https?://", re.IGNORECASE)


def normalize_address(address: str) -> str:
    """Prefix ``http://`` unless the address already carries an http(s) scheme."""
    if not _SCHEME_RE.match(address):
        return f"http://{address}"
    return address


def strip_userinfo(netloc: str) -> str:
    """Drop ``user:password@`` from a network location."""
    return netloc.rpartition("@")[2]


def redact_credentials(url: str) -> str:
    """Mask the userinfo part of a URL so it can be logged."""
    parts = urlsplit(normalize_address(url))
    if "@" not in parts.netloc:
        return url
    return url.replace(parts.netloc, "***@" + strip_userinfo(parts.netloc), 1)


def resolve_healthcheck(target_url: str, healthcheck: HealthcheckRequest) -> HealthcheckRequest:
    """
    Resolve the healthcheck URL against the backend target and default the Host header.

    Args:
        target_url (str): Normalized backend URL.
        healthcheck (HealthcheckRequest): Path or absolute URL to probe.

    Returns:
        HealthcheckRequest: A new request with an absolute URL and a Host header.
    """
    url = urljoin(target_url, healthcheck.url)
    headers = dict(healthcheck.headers)
    if not any(name.lower() == "host" for name in headers):
        headers["host"] = strip_userinfo(urlsplit(url).netloc)
    return healthcheck.model_copy(update={"url": url, "headers": headers})


class Backend:
    """
    A monitored backend: its resolved healthcheck, tunables, hysteresis counters and state.

    The state is read-only from the outside; it only moves through record_success()
    and record_failure(), which the pool calls with each probe outcome.
    """

    def __init__(
        self,
        address: str,
        healthcheck: HealthcheckRequest,
        healthy_after: int,
        unhealthy_after: int,
        check_interval: float,
        check_timeout: float,
        is_healthy: Callable,
        remove_after: Optional[int] = None,
    ):
        self.address = address
        # Credential-free form of the address for logs and task names
        self.label = redact_credentials(address)
        self.target_url = normalize_address(address)
        self.healthcheck = resolve_healthcheck(self.target_url, healthcheck)
        self.healthy_after = healthy_after
        self.unhealthy_after = unhealthy_after
        self.remove_after = remove_after
        self.check_interval = check_interval
        self.check_timeout = check_timeout
        self.is_healthy = is_healthy

        self._state = BackendState.NEW
        self._consecutive_passed = 0
        self._consecutive_failed = 0
        self.in_flight = False
        self.removed = False
        self.scheduler = None
        self.events = EventChannel(name=f"backend:{self.label}")

    @property
    def state(self) -> BackendState:
        return self._state

    @property
    def consecutive_passed(self) -> int:
        return self._consecutive_passed

    @property
    def consecutive_failed(self) -> int:
        return self._consecutive_failed

    @property
    def removal_due(self) -> bool:
        """True when the failure streak has just reached ``remove_after``."""
        return (
            self.remove_after is not None
            and self._consecutive_failed == self.remove_after
        )

    def on(self, event, handler) -> None:
        self.events.on(event, handler)

    def off(self, event, handler) -> bool:
        return self.events.off(event, handler)

    def record_success(self) -> Optional[BackendEvent]:
        """
        Apply a passed probe.

        Returns:
            Optional[BackendEvent]: HEALTHY if this success crossed the threshold, else None.
        """
        self._consecutive_failed = 0
        if self._state is BackendState.HEALTHY:
            return None
        self._consecutive_passed += 1
        if self._consecutive_passed == self.healthy_after:
            self._state = BackendState.HEALTHY
            return BackendEvent.HEALTHY
        return None

    def record_failure(self) -> Optional[BackendEvent]:
        """
        Apply a failed probe.

        The failure streak is not capped: it keeps counting since the last success
        so that ``remove_after`` can be reached from any state. When removal is due
        on this failure the UNHEALTHY transition is skipped; the caller removes the
        backend instead.

        Returns:
            Optional[BackendEvent]: UNHEALTHY if this failure crossed the threshold, else None.
        """
        self._consecutive_passed = 0
        self._consecutive_failed += 1
        if self.removal_due:
            return None
        if (
            self._state is BackendState.HEALTHY
            and self._consecutive_failed == self.unhealthy_after
        ):
            self._state = BackendState.UNHEALTHY
            return BackendEvent.UNHEALTHY
        return None

    def snapshot(self) -> BackendStatus:
        return BackendStatus(
            address=self.address,
            target_url=self.target_url,
            healthcheck_url=self.healthcheck.url,
            state=self._state,
            consecutive_passed=self._consecutive_passed,
            consecutive_failed=self._consecutive_failed,
            in_flight=self.in_flight,
        )

    def __repr__(self):
        return (
            f"Backend(address={self.label}, state={self._state.value}, "
            f"passed={self._consecutive_passed}, failed={self._consecutive_failed})"
        )
