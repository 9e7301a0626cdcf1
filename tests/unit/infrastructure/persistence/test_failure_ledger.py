from pathlib import Path

import pytest

from namesweep.domain.models.check import CheckResult, CheckStatus
from namesweep.infrastructure.persistence.failure_ledger import FailureLedger, LedgerUpdate


def test_parse_ignores_blank_lines_and_keeps_last_duplicate():
    ledger = FailureLedger.parse("apple\tTimeout\n\nbanana\tHTTP 500\napple\tRate limited\ncherry\n")
    assert ledger.keys() == ["apple", "banana", "cherry"]
    assert ledger.reason("apple") == "Rate limited"
    assert ledger.reason("cherry") == "Unknown"


def test_reasons_are_kept_on_one_line():
    ledger = FailureLedger()
    ledger.record("apple", "line one\nline\ttwo")
    assert ledger.to_text() == "apple\tline one line two\n"


def test_rebuild_removes_resolved_and_replaces_reasons():
    previous = FailureLedger({"apple": "Timeout", "banana": "HTTP 500"})
    rebuilt = previous.rebuild(resolved={"apple"}, still_failing={"banana": "Rate limited"})
    assert list(rebuilt.items()) == [("banana", "Rate limited")]


def test_rebuild_keeps_keys_not_retried():
    previous = FailureLedger({"apple": "Timeout", "banana": "HTTP 500", "cherry": "Timeout"})
    rebuilt = previous.rebuild(resolved={"banana"}, still_failing={})
    assert rebuilt.keys() == ["apple", "cherry"]
    assert rebuilt.reason("apple") == "Timeout"


def test_rebuild_is_idempotent():
    previous = FailureLedger({"apple": "Timeout", "banana": "HTTP 500"})
    once = previous.rebuild({"apple"}, {"banana": "Rate limited"})
    twice = once.rebuild({"apple"}, {"banana": "Rate limited"})
    assert once == twice


def test_repeated_retries_converge_to_empty():
    ledger = FailureLedger({"apple": "Timeout", "banana": "HTTP 500", "cherry": "Timeout"})
    ledger = ledger.rebuild({"apple"}, {"banana": "Timeout", "cherry": "Timeout"})
    ledger = ledger.rebuild({"banana"}, {"cherry": "Timeout"})
    ledger = ledger.rebuild({"cherry"}, {})
    assert len(ledger) == 0
    assert ledger.to_text() == ""


def test_ledger_update_tracks_last_observation():
    update = LedgerUpdate()
    update.record(CheckResult.failed("apple", "Timeout"))
    update.record(CheckResult("banana", CheckStatus.TAKEN, 5))
    update.record(CheckResult("apple", CheckStatus.AVAILABLE, 5))
    update.record(CheckResult.failed("cherry", "HTTP 500"))

    rebuilt = update.apply(FailureLedger({"apple": "x", "banana": "y", "cherry": "z", "date": "w"}))

    assert update.resolved == {"apple", "banana"}
    assert list(rebuilt.items()) == [("date", "w"), ("cherry", "HTTP 500")]


@pytest.mark.asyncio
async def test_save_and_load(tmp_path: Path):
    path = tmp_path / "errors.txt"
    await FailureLedger({"apple": "Timeout", "banana": "HTTP 500"}).save(path)

    assert path.read_text(encoding="utf-8") == "apple\tTimeout\nbanana\tHTTP 500\n"
    assert not (tmp_path / ".errors.txt.tmp").exists()
    loaded = await FailureLedger.load(path)
    assert loaded == FailureLedger({"apple": "Timeout", "banana": "HTTP 500"})


@pytest.mark.asyncio
async def test_save_replaces_existing_file(tmp_path: Path):
    path = tmp_path / "errors.txt"
    path.write_text("old\tstale\n", encoding="utf-8")
    await FailureLedger().save(path)
    assert path.read_text(encoding="utf-8") == ""


@pytest.mark.asyncio
async def test_load_missing_file_raises(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        await FailureLedger.load(tmp_path / "missing.txt")
