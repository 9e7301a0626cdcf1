"""Output sinks for the three result categories.

Available and Taken keys are written one per line; errors as
``key<TAB>reason`` (the failure ledger format). Files are opened with
aiofiles in append or overwrite mode. The orchestrator is the only writer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles

from namesweep.domain.models.check import CheckResult, CheckStatus
from namesweep.infrastructure.persistence.failure_ledger import UNKNOWN_REASON, clean_reason

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ResultSinks:
    """Append-or-overwrite writers for the Available, Taken and Error outputs.

    ``errors_path`` may be None, in which case error results are not written
    (retry mode keeps them in memory for the ledger rewrite instead).
    """

    def __init__(
        self,
        available_path: PathLike,
        taken_path: PathLike,
        errors_path: Optional[PathLike] = None,
        append: bool = False,
    ):
        self.paths: Dict[CheckStatus, Path] = {
            CheckStatus.AVAILABLE: Path(available_path),
            CheckStatus.TAKEN: Path(taken_path),
        }
        if errors_path is not None:
            self.paths[CheckStatus.ERROR] = Path(errors_path)
        self.append = append
        self.lines_written = 0
        self._files: Dict[CheckStatus, Any] = {}
        self._lock = asyncio.Lock()
        self._closed = False

    async def open(self) -> None:
        mode = "a" if self.append else "w"
        for status, path in self.paths.items():
            path.parent.mkdir(parents=True, exist_ok=True)
            self._files[status] = await aiofiles.open(path, mode=mode, encoding="utf-8")
        logger.debug(f"Opened result sinks ({'append' if self.append else 'overwrite'}): {list(map(str, self.paths.values()))}")

    async def write(self, result: CheckResult) -> None:
        """Writes one result to its category's sink."""
        handle = self._files.get(result.status)
        if handle is None:
            return
        if result.status is CheckStatus.ERROR:
            line = f"{result.key}\t{clean_reason(result.error or UNKNOWN_REASON)}\n"
        else:
            line = f"{result.key}\n"
        async with self._lock:
            if self._closed:
                raise RuntimeError("ResultSinks already closed")
            await handle.write(line)
            self.lines_written += 1

    async def flush(self) -> None:
        async with self._lock:
            for handle in self._files.values():
                await handle.flush()

    async def close(self) -> None:
        """Flushes and closes every sink. Safe to call more than once."""
        async with self._lock:
            if self._closed:
                return
            self._closed = True
            for handle in self._files.values():
                try:
                    await handle.flush()
                finally:
                    await handle.close()
            self._files.clear()
        logger.debug(f"Closed result sinks after {self.lines_written} lines")

    async def __aenter__(self) -> "ResultSinks":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Flush must complete even when the run task is being cancelled
        await asyncio.shield(self.close())
