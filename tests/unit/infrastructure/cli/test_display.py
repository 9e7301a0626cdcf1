import pytest
from rich.console import Console

from conftest import fast_config
from namesweep.domain.models.check import CheckResult, CheckStatus, PreparedKeys, RunStats, RunSummary
from namesweep.infrastructure.cli.display import ConsoleDisplay, format_duration


@pytest.fixture
def console():
    """A recording rich Console that never touches the terminal."""
    return Console(record=True, width=100, force_terminal=False, color_system=None)


@pytest.fixture
def console_display(console):
    return ConsoleDisplay(console=console)


def test_display_result_lines(console_display: ConsoleDisplay, console: Console):
    console_display.display_result(CheckResult("apple", CheckStatus.AVAILABLE, 12))
    console_display.display_result(CheckResult("grape", CheckStatus.TAKEN, 8))
    console_display.display_result(CheckResult.failed("melon", "Timeout", 20000))

    lines = console.export_text().splitlines()
    assert lines[0] == "✔ apple  12ms"
    assert lines[1] == "✗ grape  8ms"
    assert lines[2] == "⚠ melon  20000ms  Timeout"


def test_quiet_mode_hides_results_but_not_errors(console: Console):
    display = ConsoleDisplay(console=console, quiet=True)
    display.display_result(CheckResult("apple", CheckStatus.AVAILABLE, 12))
    display.display_info("hidden")
    display.display_error("Something went wrong")

    output = console.export_text()
    assert "apple" not in output
    assert "hidden" not in output
    assert "Something went wrong" in output


def test_hide_taken(console: Console):
    display = ConsoleDisplay(console=console, show_taken=False)
    display.display_result(CheckResult("grape", CheckStatus.TAKEN, 8))
    assert console.export_text() == ""


def test_run_header(console_display: ConsoleDisplay, console: Console):
    prepared = PreparedKeys(keys=["apple", "grape"], total_in_input=4, filtered=1, skipped=1)
    console_display.display_run_header(prepared, fast_config(workers=3), output="./*.txt", resume="apple")

    output = console.export_text()
    assert "Keys" in output and "2" in output
    assert "Filtered" in output
    assert "resuming at apple" in output
    assert "Workers" in output and "3" in output


def test_summary_panel(console_display: ConsoleDisplay, console: Console):
    stats = RunStats(checked=10, available=6, taken=3, errors=1, total_latency_ms=1000)
    console_display.display_summary(RunSummary(total=10, stats=stats, elapsed_seconds=2.0))

    output = console.export_text()
    assert "Done" in output
    assert "10 / 10" in output
    assert "5.0 keys/s" in output
    assert "100ms mean" in output


def test_retry_summary_mentions_ledger(console_display: ConsoleDisplay, console: Console):
    summary = RunSummary(total=3, retry_mode=True, ledger_cleared=2, ledger_remaining=1)
    console_display.display_summary(summary)
    assert "2 cleared, 1 remaining" in console.export_text()


def test_interrupted_panel_suggests_resume(console_display: ConsoleDisplay, console: Console):
    summary = RunSummary(total=10, stats=RunStats(checked=4, last_key="kiwi"), interrupted=True)
    console_display.display_interrupted(summary)
    output = console.export_text()
    assert "Checked 4 of 10" in output
    assert "--from kiwi" in output


@pytest.mark.parametrize("seconds, expected", [(2.5, "2.5s"), (75, "1m 15s"), (3725, "1h 2m 5s")])
def test_format_duration(seconds, expected):
    assert format_duration(seconds) == expected
