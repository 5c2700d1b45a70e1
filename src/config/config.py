import os


def _env_number(name, default, cast=int):
    # Unset, empty or zero falls back to the default
    value = os.environ.get(name)
    parsed = cast(value) if value else 0
    return parsed or default


class Config:
    """
    Configuration class for environment variables and default settings.
    """

    # Healthcheck path resolved against every backend address unless overridden per backend
    HEALTHCHECK_PATH = os.environ.get("HEALTHCHECK_PATH") or None

    HEALTHY_AFTER = _env_number("HEALTHY_AFTER", 3)
    UNHEALTHY_AFTER = _env_number("UNHEALTHY_AFTER", 1)
    # Unset or 0 disables auto-removal
    REMOVE_AFTER = _env_number("REMOVE_AFTER", None)

    CHECK_INTERVAL_SECONDS = _env_number("CHECK_INTERVAL_SECONDS", 10.0, float)
    CHECK_TIMEOUT_SECONDS = _env_number("CHECK_TIMEOUT_SECONDS", 1.0, float)

    # Comma-separated addresses registered when the admin API starts
    BACKENDS = [
        address.strip()
        for address in os.environ.get("BACKENDS", "").split(",")
        if address.strip()
    ]
