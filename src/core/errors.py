class ConfigurationError(ValueError):
    """
    Raised when a backend cannot be registered because its configuration is incomplete,
    e.g. no healthcheck was given to add() and the pool has no default.
    """


class PoolClosedError(RuntimeError):
    """
    Raised by add() once the pool has been closed and can no longer probe.
    """
