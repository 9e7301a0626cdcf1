"""Failure ledger: the persisted record of keys whose last check failed.

Stored as UTF-8 text, one ``key<TAB>reason`` per line. A retry run treats the
ledger's key column as its input and rewrites the file atomically at the end:

    new = (previous - resolved - retried_failures) + still_failing
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Set, Union

import aiofiles

from namesweep.domain.models.check import CheckResult
from namesweep.domain.models.common import FailureReason, Key

logger = logging.getLogger(__name__)

UNKNOWN_REASON = FailureReason("Unknown")


def clean_reason(reason: str) -> str:
    # Reasons must stay on one line and in one column
    return " ".join(str(reason).split()) or UNKNOWN_REASON


class FailureLedger:
    """Ordered mapping of key -> last seen failure reason."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        self._entries: Dict[Key, FailureReason] = {}
        for key, reason in (entries or {}).items():
            self.record(Key(key), reason)

    @classmethod
    def parse(cls, text: str) -> "FailureLedger":
        """Builds a ledger from file content. Blank lines are ignored; later duplicates win."""
        ledger = cls()
        for line in text.splitlines():
            key, _, reason = line.partition("\t")
            key = key.strip()
            if key:
                ledger.record(Key(key), reason.strip() or UNKNOWN_REASON)
        return ledger

    @classmethod
    async def load(cls, path: Union[str, Path]) -> "FailureLedger":
        """Reads a ledger file.

        Raises:
            FileNotFoundError: If the file does not exist.
        """
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            content = await f.read()
        ledger = cls.parse(content)
        logger.info(f"Loaded {len(ledger)} failed keys from {path}")
        return ledger

    def record(self, key: Key, reason: str) -> None:
        self._entries[key] = FailureReason(clean_reason(reason))

    def keys(self) -> List[Key]:
        return list(self._entries)

    def reason(self, key: Key) -> Optional[FailureReason]:
        return self._entries.get(key)

    def items(self):
        return self._entries.items()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[Key]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FailureLedger):
            return NotImplemented
        return self._entries == other._entries

    def rebuild(self, resolved: Set[Key], still_failing: Mapping[Key, str]) -> "FailureLedger":
        """Returns the ledger that should replace this one after a retry run.

        Args:
            resolved: Keys observed as Available or Taken during the run.
            still_failing: Keys that failed again, with their new reason.
        """
        rebuilt = FailureLedger()
        for key, reason in self._entries.items():
            if key not in resolved and key not in still_failing:
                rebuilt.record(key, reason)
        for key, reason in still_failing.items():
            if key not in resolved:
                rebuilt.record(key, reason)
        return rebuilt

    def to_text(self) -> str:
        lines = [f"{key}\t{reason}" for key, reason in self._entries.items()]
        return "\n".join(lines) + ("\n" if lines else "")

    async def save(self, path: Union[str, Path]) -> None:
        """Atomically replaces ``path`` with this ledger (temp file + rename)."""
        path = Path(path)
        temp_path = path.with_name(f".{path.name}.tmp")
        async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
            await f.write(self.to_text())
            await f.flush()
        os.replace(temp_path, path)
        logger.info(f"Saved {len(self)} failed keys to {path}")


@dataclass
class LedgerUpdate:
    """In-memory bookkeeping of a retry run, applied to the ledger at run end."""
    resolved: Set[Key] = field(default_factory=set)
    still_failing: Dict[Key, FailureReason] = field(default_factory=dict)

    def record(self, result: CheckResult) -> None:
        if result.resolved:
            self.resolved.add(result.key)
            self.still_failing.pop(result.key, None)
        else:
            self.still_failing[result.key] = FailureReason(clean_reason(result.error or UNKNOWN_REASON))

    def apply(self, previous: FailureLedger) -> FailureLedger:
        return previous.rebuild(self.resolved, self.still_failing)
