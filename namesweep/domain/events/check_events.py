"""Messages sent from workers to the orchestrator over the result queue.

The orchestrator is the only consumer; it drains these in arrival order and
serializes every sink write.
"""

from dataclasses import dataclass, field
import time
from typing import List, Optional

from namesweep.domain.models.check import CheckResult

# Base Event Class
@dataclass
class WorkerEvent:
    """Base class for worker -> orchestrator messages."""
    worker_id: int


@dataclass
class ResultBatch(WorkerEvent):
    """One or more finished CheckResults from a worker's emit buffer."""
    results: List[CheckResult] = field(default_factory=list)


@dataclass
class WorkerCompleted(WorkerEvent):
    """A worker finished its whole shard and released its network resources."""
    checked: int = 0
    timestamp: float = field(default_factory=time.time)


@dataclass
class WorkerFailed(WorkerEvent):
    """A worker stopped on an unexpected (non-network) exception."""
    error: Optional[BaseException] = None
    timestamp: float = field(default_factory=time.time)
