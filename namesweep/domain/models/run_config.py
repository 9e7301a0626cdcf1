"""Immutable run configuration shared read-only by every worker."""

import os
from dataclasses import dataclass, field
from typing import FrozenSet

from .common import BackoffPolicy

DEFAULT_BASE_URL = "https://api.hytl.tools"
DEFAULT_MIN_LENGTH = 3
DEFAULT_MAX_LENGTH = 10
DEFAULT_FATAL_STATUSES = frozenset({400, 401, 403, 404})


def default_worker_count() -> int:
    return min(8, os.cpu_count() or 1)


@dataclass(frozen=True)
class RunConfig:
    """Snapshot of every knob the engine reads. Never mutated after construction."""

    # Parallelism
    workers: int = field(default_factory=default_worker_count)
    concurrency: int = 200            # in-flight group operations per worker (C)
    batch_size: int = 1               # keys per HTTP batch group (B)
    max_connections: int = 100        # HTTP pool size per worker
    queue_size: int = 1000            # bound of the worker -> orchestrator queue
    emit_buffer_size: int = 1         # results coalesced per queue message

    # Request shaping
    shaping_enabled: bool = True
    delay_seconds: float = 0.0        # explicit delay before each call, 0 = random jitter

    # Retry / backoff
    max_retries: int = 5              # attempts after the first failure (R)
    rate_limit_backoff: float = 1.0   # base delay for 429s
    retry_backoff: float = 0.3        # base delay for other retryable errors
    backoff_jitter: float = 0.5
    max_backoff: float = 60.0
    fatal_statuses: FrozenSet[int] = DEFAULT_FATAL_STATUSES

    # HTTP
    base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 20.0     # connect/header timeout for every call
    batch_read_timeout: float = 30.0  # body timeout for the batch endpoint

    # Keys
    min_length: int = DEFAULT_MIN_LENGTH
    max_length: int = DEFAULT_MAX_LENGTH

    # Fault policy
    isolate_worker_faults: bool = False

    def __post_init__(self):
        if self.workers < 1:
            raise ValueError("workers must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.min_length < 1 or self.max_length < self.min_length:
            raise ValueError(
                f"Invalid key length bounds: {self.min_length}-{self.max_length}"
            )
        if self.emit_buffer_size < 1:
            raise ValueError("emit_buffer_size must be >= 1")

    @property
    def pool_size(self) -> int:
        return min(self.concurrency, self.max_connections)

    def backoff_policy(self) -> BackoffPolicy:
        return BackoffPolicy(
            max_retries=self.max_retries,
            rate_limit_base=self.rate_limit_backoff,
            base=self.retry_backoff,
            jitter=self.backoff_jitter,
            max_delay=self.max_backoff,
        )
