"""
Errors - exception hierarchy for the dashboard core
Malformed chart payloads, failed liveness checks, failed data requests
"""


class FinSentError(Exception):
    """Base class for every error raised by finsent."""


class MalformedPayload(FinSentError):
    """Chart payload is not shaped as a sequence of records; never retried."""


class ProbeFailure(FinSentError):
    """Liveness check failed. The poller treats this as "still warming up"."""


class NetworkError(FinSentError):
    """Transport failure or non-success status on a data request."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status
