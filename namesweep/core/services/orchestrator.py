"""Core service that runs a whole key check.

Prepares the key list, partitions it into shards, spawns one Worker task
per shard and drains their result queue. The drain loop is the single
writer for every output sink and for the statistics. In retry mode it also
rebuilds the failure ledger when the run ends, however it ends.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from namesweep.core.services.key_list import prepare_keys, shard_keys
from namesweep.core.services.worker import Worker
from namesweep.domain.events.check_events import ResultBatch, WorkerCompleted, WorkerEvent, WorkerFailed
from namesweep.domain.exceptions import FatalWorkerFault
from namesweep.domain.interfaces.request_shaping import RequestShapingPolicy
from namesweep.domain.interfaces.user_interface import UserInterface
from namesweep.domain.models.check import CheckResult, PreparedKeys, RunSummary
from namesweep.domain.models.common import Key, Shard
from namesweep.domain.models.run_config import RunConfig
from namesweep.infrastructure.http.lookup_client import LookupClient
from namesweep.infrastructure.http.request_shaping import create_shaping_policy
from namesweep.infrastructure.persistence.failure_ledger import FailureLedger, LedgerUpdate
from namesweep.infrastructure.persistence.result_sinks import ResultSinks

logger = logging.getLogger(__name__)

ShapingFactory = Callable[[int], RequestShapingPolicy]
ClientFactory = Callable[[int, RequestShapingPolicy], LookupClient]
ResultCallback = Callable[[CheckResult], None]


class CheckOrchestrator:
    """Runs normal and retry checks over a prepared key list."""

    def __init__(
        self,
        config: RunConfig,
        ui: Optional[UserInterface] = None,
        client_factory: Optional[ClientFactory] = None,
        shaping_factory: Optional[ShapingFactory] = None,
    ):
        """Initializes the orchestrator.

        Args:
            config: Immutable run configuration.
            ui: Optional user interface notified of every result.
            client_factory: Builds the per-worker LookupClient.
            shaping_factory: Builds the per-worker RequestShapingPolicy.
        """
        self.config = config
        self.ui = ui
        self.client_factory = client_factory or (
            lambda worker_id, shaping: LookupClient.from_config(config, shaping)
        )
        self.shaping_factory = shaping_factory or (
            lambda worker_id: create_shaping_policy(worker_id, config.shaping_enabled, config.delay_seconds)
        )
        self.last_summary: Optional[RunSummary] = None

    def prepare(self, raw_keys: Iterable[str], skip: int = 0, from_key: Optional[str] = None) -> PreparedKeys:
        """Validates, dedupes, sorts and applies resume offsets. Raises InputError."""
        return prepare_keys(
            raw_keys,
            self.config.min_length,
            self.config.max_length,
            skip=skip,
            from_key=from_key,
        )

    async def check(self, prepared: PreparedKeys, sinks: ResultSinks) -> RunSummary:
        """Normal mode: every result goes to its sink, errors included."""
        return await self.execute(prepared, sinks)

    async def retry(
        self,
        ledger: FailureLedger,
        ledger_path: Union[str, Path],
        prepared: PreparedKeys,
        sinks: ResultSinks,
    ) -> RunSummary:
        """Retry mode: re-checks ledger keys and rewrites the ledger at the end.

        ``prepared`` must come from ``self.prepare(ledger.keys(), ...)``.
        Errors are collected in memory (``sinks`` should have no error path);
        the rewritten ledger is saved even when the run is interrupted or
        aborted.
        """
        update = LedgerUpdate()
        summary: Optional[RunSummary] = None
        try:
            summary = await self.execute(prepared, sinks, on_result=update.record, retry_mode=True)
        finally:
            rebuilt = update.apply(ledger)
            await asyncio.shield(rebuilt.save(ledger_path))
            target = summary or self.last_summary
            if target is not None:
                target.ledger_cleared = len(update.resolved)
                target.ledger_remaining = len(rebuilt)
            logger.info(f"Ledger rewritten: {len(update.resolved)} cleared, {len(rebuilt)} remaining")
        return summary

    async def execute(
        self,
        prepared: PreparedKeys,
        sinks: ResultSinks,
        on_result: Optional[ResultCallback] = None,
        retry_mode: bool = False,
    ) -> RunSummary:
        """Shards the keys, runs all workers and aggregates their results.

        Raises:
            FatalWorkerFault: If a worker fails and fault isolation is off.
            asyncio.CancelledError: On external interrupt (sinks stay consistent).
        """
        summary = RunSummary(total=len(prepared.keys), retry_mode=retry_mode)
        self.last_summary = summary
        shards = shard_keys(prepared.keys, self.config.workers)
        queue: "asyncio.Queue[WorkerEvent]" = asyncio.Queue(maxsize=self.config.queue_size)
        outstanding: Dict[int, Dict[Key, None]] = {
            worker_id: dict.fromkeys(shard) for worker_id, shard in enumerate(shards) if shard
        }
        tasks = {
            worker_id: asyncio.create_task(
                self._run_worker(worker_id, shards[worker_id], queue),
                name=f"namesweep-worker-{worker_id}",
            )
            for worker_id in outstanding
        }
        logger.info(f"Started {len(tasks)} workers for {summary.total} keys")

        started = time.monotonic()
        running = len(tasks)
        try:
            while running:
                event = await queue.get()
                if isinstance(event, ResultBatch):
                    for result in event.results:
                        outstanding[event.worker_id].pop(result.key, None)
                        await self._record(result, sinks, summary, on_result)
                elif isinstance(event, WorkerCompleted):
                    running -= 1
                    logger.debug(f"Worker {event.worker_id} completed ({event.checked} keys)")
                elif isinstance(event, WorkerFailed):
                    running -= 1
                    await self._handle_worker_failure(event, outstanding, sinks, summary, on_result)
        except asyncio.CancelledError:
            summary.interrupted = True
            logger.warning(f"Run interrupted after {summary.stats.checked}/{summary.total} keys")
            raise
        finally:
            summary.elapsed_seconds = time.monotonic() - started
            await self._cancel_workers(tasks.values())
            await asyncio.shield(sinks.flush())

        return summary

    async def _run_worker(self, worker_id: int, shard: Shard, queue: "asyncio.Queue[WorkerEvent]") -> None:
        try:
            shaping = self.shaping_factory(worker_id)
            client = self.client_factory(worker_id, shaping)
            worker = Worker(worker_id, shard, self.config, client, queue)
            await worker.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Worker {worker_id} crashed: {e}", exc_info=True)
            await queue.put(WorkerFailed(worker_id, error=e))

    async def _handle_worker_failure(
        self,
        event: WorkerFailed,
        outstanding: Dict[int, Dict[Key, None]],
        sinks: ResultSinks,
        summary: RunSummary,
        on_result: Optional[ResultCallback],
    ) -> None:
        if not self.config.isolate_worker_faults:
            raise FatalWorkerFault(event.worker_id, event.error) from event.error

        unreported: List[Key] = list(outstanding.pop(event.worker_id, {}))
        logger.warning(
            f"Isolating fault in worker {event.worker_id}: marking {len(unreported)} unreported keys as errors"
        )
        reason = f"Worker fault: {type(event.error).__name__}: {event.error}"
        for key in unreported:
            await self._record(CheckResult.failed(key, reason), sinks, summary, on_result)

    async def _record(
        self,
        result: CheckResult,
        sinks: ResultSinks,
        summary: RunSummary,
        on_result: Optional[ResultCallback],
    ) -> None:
        summary.stats.record(result)
        await sinks.write(result)
        if on_result is not None:
            on_result(result)
        if self.ui is not None:
            self.ui.display_result(result)

    @staticmethod
    async def _cancel_workers(tasks: Iterable["asyncio.Task[None]"]) -> None:
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
