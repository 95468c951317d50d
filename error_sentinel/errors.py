"""Exception hierarchy for the error sentinel."""


class SentinelError(Exception):
    """Base class for every error raised by the sentinel."""


class ConfigurationError(SentinelError):
    """Invalid configuration; raised at construction and fatal."""


class StoreError(SentinelError):
    """A local error store could not complete an operation."""


class DeliveryError(SentinelError):
    """A batch could not be delivered to the remote collector."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
