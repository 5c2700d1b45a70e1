from typing import Any, Callable, Optional

from pydantic import BaseModel, PositiveFloat, PositiveInt, field_validator

from config.config import Config
from contracts.backend import HealthcheckRequest, coerce_healthcheck


def status_is_200(response) -> bool:
    """Default health predicate: the probe passes only on HTTP 200."""
    return response.status_code == 200


class PoolOptions(BaseModel):
    """
    Pool-wide defaults applied to every backend that does not override them.
    """

    healthcheck: Optional[HealthcheckRequest] = None
    healthy_after: PositiveInt = 3
    unhealthy_after: PositiveInt = 1
    remove_after: Optional[PositiveInt] = None
    check_interval: PositiveFloat = 10.0
    check_timeout: PositiveFloat = 1.0
    is_healthy: Callable[..., Any] = status_is_200

    @field_validator("healthcheck", mode="before")
    @classmethod
    def _coerce_healthcheck(cls, value):
        return coerce_healthcheck(value)

    @classmethod
    def from_config(cls, **overrides) -> "PoolOptions":
        """
        Build options from environment configuration, with keyword overrides on top.
        """
        values = {
            "healthcheck": Config.HEALTHCHECK_PATH,
            "healthy_after": Config.HEALTHY_AFTER,
            "unhealthy_after": Config.UNHEALTHY_AFTER,
            "remove_after": Config.REMOVE_AFTER,
            "check_interval": Config.CHECK_INTERVAL_SECONDS,
            "check_timeout": Config.CHECK_TIMEOUT_SECONDS,
        }
        values.update(overrides)
        return cls(**values)
