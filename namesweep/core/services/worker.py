"""Core service that drives one shard of keys to completion.

A worker splits its shard into HTTP batch groups, admits at most
``config.concurrency`` groups at a time through its ConcurrencyLimiter,
runs each group through the RetryController around the BatchRequester, and
emits exactly one CheckResult per key onto the orchestrator's queue.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional

from namesweep.core.services.key_list import group_keys
from namesweep.domain.events.check_events import ResultBatch, WorkerCompleted, WorkerEvent
from namesweep.domain.models.check import CheckResult
from namesweep.domain.models.common import Key, Shard
from namesweep.domain.models.run_config import RunConfig
from namesweep.infrastructure.http.batch_requester import BatchRequester
from namesweep.infrastructure.http.lookup_client import LookupClient
from namesweep.infrastructure.resilience.api_retry import RetryController
from namesweep.infrastructure.resilience.concurrency_limiter import ConcurrencyLimiter

logger = logging.getLogger(__name__)


class Worker:
    """Owns one shard, one HTTP client, one limiter and one retry controller."""

    def __init__(
        self,
        worker_id: int,
        shard: Shard,
        config: RunConfig,
        client: LookupClient,
        events: "asyncio.Queue[WorkerEvent]",
        retry: Optional[RetryController] = None,
        limiter: Optional[ConcurrencyLimiter] = None,
        clock: Callable[[], float] = time.perf_counter,
    ):
        """Initializes the Worker.

        Args:
            worker_id: Index of this worker (also its shard index).
            shard: Keys this worker is responsible for.
            config: Read-only run configuration.
            client: Lookup client; closed when the worker finishes.
            events: Queue the orchestrator drains.
            retry: Retry controller (built from config if omitted).
            limiter: Admission gate (built from config if omitted).
            clock: Monotonic clock used for latency measurement.
        """
        self.worker_id = worker_id
        self.shard = shard
        self.config = config
        self.client = client
        self.events = events
        self.retry = retry or RetryController(config.backoff_policy(), label=f"worker-{worker_id}")
        self.limiter = limiter or ConcurrencyLimiter(config.concurrency)
        self.requester = BatchRequester(client, self.retry)
        self._clock = clock
        self._buffer: List[CheckResult] = []
        self.checked = 0

    async def run(self) -> None:
        """Processes the whole shard, then signals completion.

        Raises:
            Exception: Any unexpected fault (after flushing already known results).
        """
        groups = group_keys(self.shard, self.config.batch_size)
        logger.debug(f"Worker {self.worker_id} starting: {len(self.shard)} keys in {len(groups)} groups")
        try:
            tasks = [asyncio.create_task(self.limiter.run(self._process_group, group)) for group in groups]
            try:
                await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            await self._flush()
        except asyncio.CancelledError:
            raise
        except Exception:
            await self._flush()
            raise
        finally:
            await self.client.aclose()

        logger.debug(f"Worker {self.worker_id} finished: {self.checked} keys checked")
        await self.events.put(WorkerCompleted(self.worker_id, checked=self.checked))

    async def _process_group(self, group: List[Key]) -> None:
        started = self._clock()
        outcome = await self.retry.run(
            lambda: self.requester.request(group),
            description=f"group of {len(group)} starting at '{group[0]}'",
        )
        elapsed_ms = int((self._clock() - started) * 1000)

        if outcome.ok:
            per_key_ms = elapsed_ms // len(group)
            results = [CheckResult.from_outcome(o, per_key_ms) for o in outcome.value]
        else:
            results = [CheckResult.failed(key, outcome.error or "Unknown", elapsed_ms) for key in group]

        for result in results:
            await self._emit(result)

    async def _emit(self, result: CheckResult) -> None:
        self._buffer.append(result)
        self.checked += 1
        if len(self._buffer) >= self.config.emit_buffer_size:
            await self._flush()

    async def _flush(self) -> None:
        if not self._buffer:
            return
        batch, self._buffer = self._buffer, []
        await self.events.put(ResultBatch(self.worker_id, results=batch))
