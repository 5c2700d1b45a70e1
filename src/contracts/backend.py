from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    PositiveFloat,
    PositiveInt,
    field_validator,
    model_validator,
)


class BackendState(str, Enum):
    """
    Health state of a monitored backend.
    """

    NEW = "NEW"
    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"


class BackendEvent(str, Enum):
    """
    Event kinds emitted by backends and by the pool.
    """

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    REMOVE = "remove"


class HealthcheckRequest(BaseModel):
    """
    Request sent to a backend to probe its health.

    ``url`` may be a path (resolved against the backend address) or an absolute URL.
    """

    url: str
    method: Optional[str] = None
    headers: Dict[str, str] = {}
    data: Optional[Union[str, bytes]] = None

    @model_validator(mode="after")
    def _default_method(self):
        if self.method is None:
            self.method = "POST" if self.data is not None else "GET"
        else:
            self.method = self.method.upper()
        return self


def coerce_healthcheck(value: Any) -> Any:
    """Accept a bare string wherever a healthcheck request is expected."""
    if isinstance(value, str):
        return {"url": value}
    return value


class BackendOverrides(BaseModel):
    """
    Address plus the JSON-serializable per-backend tunables. Unset tunables fall back
    to pool defaults.
    """

    model_config = ConfigDict(extra="forbid")

    address: str
    healthcheck: Optional[HealthcheckRequest] = None
    healthy_after: Optional[PositiveInt] = None
    unhealthy_after: Optional[PositiveInt] = None
    remove_after: Optional[PositiveInt] = None
    check_interval: Optional[PositiveFloat] = None
    check_timeout: Optional[PositiveFloat] = None

    @field_validator("healthcheck", mode="before")
    @classmethod
    def _coerce_healthcheck(cls, value):
        return coerce_healthcheck(value)


class BackendSpec(BackendOverrides):
    """
    Registration input for a single backend, including an optional health predicate.
    """

    is_healthy: Optional[Callable[..., Any]] = None


class BackendStatus(BaseModel):
    """
    Serializable snapshot of a backend's health bookkeeping.
    """

    address: str
    target_url: str
    healthcheck_url: str
    state: BackendState
    consecutive_passed: int = 0
    consecutive_failed: int = 0
    in_flight: bool = False


class RegistrationRequest(BackendOverrides):
    """
    Body of a registration call on the admin API.
    """

    def to_spec(self) -> BackendSpec:
        return BackendSpec(**self.model_dump(exclude_none=True))


class RegistrationResponse(BaseModel):
    status: str
    backend: BackendStatus
