"""Domain models for key checks.

Includes the per-key result that flows from workers to the orchestrator,
the intermediate outcome produced by the batch requester, and the
run-level summaries reported back to the user.
"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from .common import FailureReason, Key


class CheckStatus(str, enum.Enum):
    """The three outcomes a key can be classified into."""
    AVAILABLE = "available"
    TAKEN = "taken"
    ERROR = "error"


@dataclass(frozen=True)
class KeyOutcome:
    """Raw outcome for one key as returned by the lookup layer (before timing)."""
    key: Key
    available: Optional[bool] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.available is not None


@dataclass(frozen=True)
class CheckResult:
    """Final classification of one key. Produced exactly once per key."""
    key: Key
    status: CheckStatus
    latency_ms: int
    error: Optional[FailureReason] = None

    @classmethod
    def from_outcome(cls, outcome: KeyOutcome, latency_ms: int) -> "CheckResult":
        if outcome.available is True:
            return cls(outcome.key, CheckStatus.AVAILABLE, latency_ms)
        if outcome.available is False:
            return cls(outcome.key, CheckStatus.TAKEN, latency_ms)
        return cls.failed(outcome.key, outcome.error or "Unknown", latency_ms)

    @classmethod
    def failed(cls, key: Key, reason: str, latency_ms: int = 0) -> "CheckResult":
        return cls(key, CheckStatus.ERROR, latency_ms, FailureReason(reason))

    @property
    def resolved(self) -> bool:
        """True when the key was classified as Available or Taken."""
        return self.status is not CheckStatus.ERROR


@dataclass(frozen=True)
class PreparedKeys:
    """A validated, deduplicated, sorted key list after resume offsets."""
    keys: List[Key]
    total_in_input: int   # distinct keys before the length filter
    filtered: int         # distinct keys dropped by the length filter
    skipped: int = 0      # keys skipped by resume offset / resume key

    @property
    def total_valid(self) -> int:
        return self.total_in_input - self.filtered


@dataclass
class RunStats:
    """Mutable counters kept by the orchestrator's aggregator."""
    checked: int = 0
    available: int = 0
    taken: int = 0
    errors: int = 0
    total_latency_ms: int = 0
    last_key: Optional[Key] = None

    def record(self, result: CheckResult) -> None:
        self.checked += 1
        self.total_latency_ms += result.latency_ms
        self.last_key = result.key
        if result.status is CheckStatus.AVAILABLE:
            self.available += 1
        elif result.status is CheckStatus.TAKEN:
            self.taken += 1
        else:
            self.errors += 1

    @property
    def mean_latency_ms(self) -> float:
        return self.total_latency_ms / self.checked if self.checked else 0.0


@dataclass
class RunSummary:
    """What a finished (or interrupted) run reports back to the caller."""
    total: int
    stats: RunStats = field(default_factory=RunStats)
    elapsed_seconds: float = 0.0
    interrupted: bool = False
    retry_mode: bool = False
    ledger_cleared: int = 0
    ledger_remaining: int = 0

    @property
    def rate_per_second(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return self.stats.checked / self.elapsed_seconds
