"""Monitor exception hierarchy.

All library exceptions inherit from MonitorError. Only ConfigError is
expected to reach callers: invalid metric values are recovered locally and
faults raised by wrapped user code are re-raised unchanged.
"""


class MonitorError(Exception):
    """Base exception for all monitor errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigError(MonitorError, ValueError):
    """Raised when construction options are missing, invalid or deprecated."""

    def __init__(self, message: str, option: str | None = None) -> None:
        super().__init__(message)
        self.option = option


class InvalidMetricValue(MonitorError, TypeError):
    """Raised when a count or measure value is not a number."""

    def __init__(self, key: str, val: object) -> None:
        super().__init__(f"Metric values must be numbers, got {val!r} for {key!r}")
        self.key = key
        self.val = val
