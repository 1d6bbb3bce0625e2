"""
Exceptions raised by the load-test harness.

Per-request errors (NetworkFailure, BackoffExhausted, SerializationFailed)
never leave a worker: they are turned into error counters. EmptyLatencyData
is degraded to "no data" by the aggregator.
"""

from typing import Optional


class GuestbenchError(Exception):
    """Base class for harness errors."""


class NetworkFailure(GuestbenchError):
    """A single attempt failed: connection error, timeout or non-success status.

    Retried by the backoff requester.
    """

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class BackoffExhausted(GuestbenchError):
    """Every attempt of one logical request failed."""

    def __init__(self, url: str, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(f"exponential backoff exceeded after {attempts} attempts for {url}: {last_error}")
        self.url = url
        self.attempts = attempts
        self.last_error = last_error


class SerializationFailed(GuestbenchError):
    """The POST payload could not be encoded. Never retried."""


class EmptyLatencyData(GuestbenchError):
    """Percentiles were requested from an empty latency sequence."""
