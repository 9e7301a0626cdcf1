"""Domain exceptions for the key availability engine.

Run-level errors (InputError, FatalWorkerFault) abort a run. LookupFailure
and its subclasses describe the outcome of a single network call and are
classified by the retry controller as retryable or terminal.
"""

from typing import Optional


class NamesweepError(Exception):
    """Base class for all namesweep errors."""


# --- Run-level errors ---

class InputError(NamesweepError):
    """Invalid input detected before any network activity (bad key list, unknown resume key)."""


class FatalWorkerFault(NamesweepError):
    """A worker hit an unexpected internal fault. Aborts the whole run by default."""

    def __init__(self, worker_id: int, cause: BaseException):
        self.worker_id = worker_id
        self.cause = cause
        super().__init__(f"Worker {worker_id} failed: {type(cause).__name__}: {cause}")


# --- Per-call lookup failures ---

class LookupFailure(NamesweepError):
    """A classified failure of one lookup call (single key or batch group)."""

    retryable: bool = False


class RetryableNetworkError(LookupFailure):
    """Transient failure: recovered locally by retrying with backoff."""

    retryable = True


class RateLimitedError(RetryableNetworkError):
    """The lookup service answered 429."""

    def __init__(self, message: str = "Rate limited", retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__(message)


class ServerError(RetryableNetworkError):
    """The lookup service answered with a 5xx status."""

    def __init__(self, status_code: int):
        self.status_code = status_code
        super().__init__(f"Server error ({status_code})")


class RequestTimeoutError(RetryableNetworkError):
    """Connect, read, write or pool timeout."""


class ConnectionFailedError(RetryableNetworkError):
    """DNS failure, refused or aborted connection, broken protocol stream."""


class HttpStatusError(LookupFailure):
    """Any other non-2xx status. Retryable unless the status was configured as fatal."""

    def __init__(self, status_code: int, retryable: bool = True):
        self.status_code = status_code
        self.retryable = retryable
        super().__init__(f"HTTP {status_code}")


class ProtocolError(LookupFailure):
    """Response body could not be parsed into an accepted shape."""
