import asyncio
from pathlib import Path

import pytest

from conftest import FakeLookupService, fast_config
from namesweep.core.services.orchestrator import CheckOrchestrator
from namesweep.domain.exceptions import FatalWorkerFault
from namesweep.infrastructure.http.lookup_client import LookupClient
from namesweep.infrastructure.persistence.failure_ledger import FailureLedger
from namesweep.infrastructure.persistence.output_layout import OutputLayout
from namesweep.infrastructure.persistence.result_sinks import ResultSinks

FRUIT = ["apple", "banana", "cherry", "grape", "kiwi", "lemon", "mango", "melon", "peach", "plum", "sloe"]


class BrokenClient:
    """Lookup client double whose every call hits an internal bug."""

    async def check_single(self, key):
        raise RuntimeError("boom")

    async def check_batch(self, keys):
        raise RuntimeError("boom")

    async def aclose(self):
        pass


class BlockingClient:
    """Answers every key except ``stuck`` immediately; ``stuck`` never returns."""

    def __init__(self, stuck: str):
        self.stuck = stuck

    async def check_single(self, key):
        if key == self.stuck:
            await asyncio.Event().wait()
        return True

    async def check_batch(self, keys):
        raise RuntimeError("batch not expected")

    async def aclose(self):
        pass


def make_orchestrator(config, service=None, ui=None, broken_worker=None, client=None):
    service = service or FakeLookupService()

    def client_factory(worker_id, shaping):
        if client is not None:
            return client
        if worker_id == broken_worker:
            return BrokenClient()
        return LookupClient.from_config(config, shaping, transport=service.transport())

    return CheckOrchestrator(config, ui=ui, client_factory=client_factory)


def read_lines(path: Path):
    return path.read_text(encoding="utf-8").splitlines() if path.exists() else []


@pytest.mark.asyncio
@pytest.mark.parametrize("workers, batch_size", [(1, 1), (3, 1), (3, 4), (20, 2)])
async def test_every_key_gets_exactly_one_result(tmp_path: Path, mock_ui, workers, batch_size):
    config = fast_config(workers=workers, batch_size=batch_size)
    service = FakeLookupService(taken={"banana", "kiwi", "plum"}, statuses={"lemon": [404]})
    orchestrator = make_orchestrator(config, service, ui=mock_ui)
    layout = OutputLayout(tmp_path)

    prepared = orchestrator.prepare(FRUIT + ["ab", "apple"])
    async with ResultSinks(layout.available_path, layout.taken_path, layout.errors_path) as sinks:
        summary = await orchestrator.check(prepared, sinks)

    available = read_lines(layout.available_path)
    taken = read_lines(layout.taken_path)
    errors = read_lines(layout.errors_path)
    assert sorted(available + taken + [line.split("\t")[0] for line in errors]) == sorted(FRUIT)
    assert set(taken) == {"banana", "kiwi", "plum"}
    assert errors == ["lemon\tHTTP 404"]

    assert summary.total == len(FRUIT)
    assert summary.stats.checked == len(FRUIT)
    assert (summary.stats.available, summary.stats.taken, summary.stats.errors) == (7, 3, 1)
    assert not summary.interrupted
    assert mock_ui.display_result.call_count == len(FRUIT)


@pytest.mark.asyncio
async def test_worker_fault_aborts_run_by_default(tmp_path: Path):
    config = fast_config(workers=3)
    orchestrator = make_orchestrator(config, broken_worker=1)
    layout = OutputLayout(tmp_path)

    async with ResultSinks(layout.available_path, layout.taken_path, layout.errors_path) as sinks:
        with pytest.raises(FatalWorkerFault) as exc_info:
            await orchestrator.check(orchestrator.prepare(FRUIT), sinks)

    assert exc_info.value.worker_id == 1
    assert isinstance(exc_info.value.cause, RuntimeError)
    assert orchestrator.last_summary.stats.checked < len(FRUIT)


@pytest.mark.asyncio
async def test_isolated_worker_fault_marks_unreported_keys(tmp_path: Path):
    config = fast_config(workers=3, isolate_worker_faults=True)
    orchestrator = make_orchestrator(config, broken_worker=1)
    layout = OutputLayout(tmp_path)
    prepared = orchestrator.prepare(FRUIT)

    async with ResultSinks(layout.available_path, layout.taken_path, layout.errors_path) as sinks:
        summary = await orchestrator.check(prepared, sinks)

    broken_shard = set(prepared.keys[1::3])
    errors = dict(line.split("\t") for line in read_lines(layout.errors_path))
    assert set(errors) == broken_shard
    assert all(reason == "Worker fault: RuntimeError: boom" for reason in errors.values())
    assert summary.stats.checked == len(FRUIT)
    assert summary.stats.errors == len(broken_shard)


@pytest.mark.asyncio
async def test_retry_rewrites_ledger(tmp_path: Path):
    ledger_path = tmp_path / "errors.txt"
    ledger_path.write_text("apple\tTimeout\nbanana\tHTTP 500\ncherry\tRate limited\n", encoding="utf-8")
    (tmp_path / "available.txt").write_text("grape\n", encoding="utf-8")

    config = fast_config(max_retries=0)
    service = FakeLookupService(taken={"cherry"}, statuses={"banana": [404]})
    orchestrator = make_orchestrator(config, service)
    layout = OutputLayout(tmp_path)

    ledger = await FailureLedger.load(ledger_path)
    prepared = orchestrator.prepare(ledger.keys())
    async with ResultSinks(layout.available_path, layout.taken_path, append=True) as sinks:
        summary = await orchestrator.retry(ledger, ledger_path, prepared, sinks)

    assert ledger_path.read_text(encoding="utf-8") == "banana\tHTTP 404\n"
    assert read_lines(layout.available_path) == ["grape", "apple"]
    assert read_lines(layout.taken_path) == ["cherry"]
    assert summary.retry_mode
    assert summary.ledger_cleared == 2
    assert summary.ledger_remaining == 1


@pytest.mark.asyncio
async def test_retry_with_resume_keeps_skipped_keys_in_ledger(tmp_path: Path):
    ledger_path = tmp_path / "errors.txt"
    ledger_path.write_text("apple\tTimeout\nbanana\tTimeout\ncherry\tTimeout\n", encoding="utf-8")
    orchestrator = make_orchestrator(fast_config())
    layout = OutputLayout(tmp_path)

    ledger = await FailureLedger.load(ledger_path)
    prepared = orchestrator.prepare(ledger.keys(), from_key="banana")
    async with ResultSinks(layout.available_path, layout.taken_path, append=True) as sinks:
        await orchestrator.retry(ledger, ledger_path, prepared, sinks)

    assert ledger_path.read_text(encoding="utf-8") == "apple\tTimeout\n"


@pytest.mark.asyncio
async def test_interrupted_retry_still_rewrites_ledger(tmp_path: Path, mock_ui):
    ledger_path = tmp_path / "errors.txt"
    ledger_path.write_text("apple\tTimeout\nbanana\tTimeout\n", encoding="utf-8")
    first_result = asyncio.Event()
    mock_ui.display_result.side_effect = lambda result: first_result.set()

    config = fast_config(workers=1)
    orchestrator = make_orchestrator(config, ui=mock_ui, client=BlockingClient(stuck="banana"))
    layout = OutputLayout(tmp_path)
    ledger = await FailureLedger.load(ledger_path)
    prepared = orchestrator.prepare(ledger.keys())

    async def run():
        async with ResultSinks(layout.available_path, layout.taken_path, append=True) as sinks:
            await orchestrator.retry(ledger, ledger_path, prepared, sinks)

    task = asyncio.create_task(run())
    await asyncio.wait_for(first_result.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert ledger_path.read_text(encoding="utf-8") == "banana\tTimeout\n"
    assert read_lines(layout.available_path) == ["apple"]
    assert orchestrator.last_summary.interrupted
    assert orchestrator.last_summary.stats.last_key == "apple"


@pytest.mark.asyncio
async def test_interrupt_flushes_results_already_received(tmp_path: Path, mock_ui):
    first_result = asyncio.Event()
    mock_ui.display_result.side_effect = lambda result: first_result.set()
    orchestrator = make_orchestrator(fast_config(workers=1), ui=mock_ui, client=BlockingClient(stuck="banana"))
    layout = OutputLayout(tmp_path)

    async def run():
        async with ResultSinks(layout.available_path, layout.taken_path, layout.errors_path) as sinks:
            await orchestrator.check(orchestrator.prepare(["apple", "banana"]), sinks)

    task = asyncio.create_task(run())
    await asyncio.wait_for(first_result.wait(), timeout=5)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert read_lines(layout.available_path) == ["apple"]
    assert read_lines(layout.errors_path) == []
    assert orchestrator.last_summary.stats.checked == 1
