import logging
from datetime import datetime
from typing import Any, Optional

from rich.box import HEAVY, ROUNDED, SIMPLE
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from namesweep.domain.interfaces.user_interface import UserInterface
from namesweep.domain.models.check import CheckResult, CheckStatus, PreparedKeys, RunSummary
from namesweep.domain.models.run_config import RunConfig

logger = logging.getLogger(__name__)

_STATUS_STYLE = {
    CheckStatus.AVAILABLE: ("✔", "bold green"),
    CheckStatus.TAKEN: ("✗", "red"),
    CheckStatus.ERROR: ("⚠", "yellow"),
}


def format_duration(seconds: float) -> str:
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m {secs}s"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{seconds:.1f}s"


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None, quiet: bool = False, show_taken: bool = True):
        """Initializes the rich Console.

        Args:
            console: Console to print to (a fresh stdout console if omitted).
            quiet: Suppress per-key lines; header, summary and errors still print.
            show_taken: Print Taken keys too, not only Available and Error.
        """
        self._console = console or Console()
        self.quiet = quiet
        self.show_taken = show_taken

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_result(self, result: CheckResult) -> None:
        if self.quiet:
            return
        if result.status is CheckStatus.TAKEN and not self.show_taken:
            return
        symbol, style = _STATUS_STYLE[result.status]
        line = Text()
        line.append(f"{symbol} ", style=style)
        line.append(result.key, style=style)
        line.append(f"  {result.latency_ms}ms", style="dim")
        if result.error:
            line.append(f"  {result.error}", style="dim yellow")
        self.console.print(line)

    def display_run_header(self, prepared: PreparedKeys, config: RunConfig, **kwargs: Any) -> None:
        """Prints the run parameters as a compact table.

        Args:
            prepared: The validated key list.
            config: The run configuration.
            **kwargs: Optional ``output`` (str), ``mode`` (str) and ``resume`` (str).
        """
        table = Table(show_header=False, box=ROUNDED, border_style="cyan", padding=(0, 1))
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="bold")

        mode = kwargs.get("mode", "check")
        table.add_row("Mode", mode)
        table.add_row("Keys", f"{len(prepared.keys)}")
        if prepared.filtered:
            table.add_row("Filtered", f"{prepared.filtered} (length {config.min_length}-{config.max_length})")
        if prepared.skipped:
            resume = kwargs.get("resume")
            table.add_row("Skipped", f"{prepared.skipped}" + (f" (resuming at {resume})" if resume else ""))
        table.add_row("Workers", f"{config.workers}")
        table.add_row("Concurrency", f"{config.concurrency} per worker")
        table.add_row("Batch size", f"{config.batch_size}")
        table.add_row("Shaping", "on" if config.shaping_enabled else "off")
        if config.delay_seconds:
            table.add_row("Delay", f"{config.delay_seconds * 1000:.0f}ms")
        if kwargs.get("output"):
            table.add_row("Output", str(kwargs["output"]))
        table.add_row("Started", datetime.now().strftime("%Y-%m-%d %H:%M:%S"))

        self.console.print(table)

    def display_summary(self, summary: RunSummary) -> None:
        stats = summary.stats
        lines = [
            f"Checked:   [bold]{stats.checked}[/bold] / {summary.total}",
            f"Available: [bold green]{stats.available}[/bold green]",
            f"Taken:     [red]{stats.taken}[/red]",
            f"Errors:    [yellow]{stats.errors}[/yellow]",
            f"Time:      {format_duration(summary.elapsed_seconds)} ({summary.rate_per_second:.1f} keys/s)",
            f"Latency:   {stats.mean_latency_ms:.0f}ms mean",
        ]
        if summary.retry_mode:
            lines.append(
                f"Ledger:    {summary.ledger_cleared} cleared, {summary.ledger_remaining} remaining"
            )
        title = "[bold cyan]Retry complete[/bold cyan]" if summary.retry_mode else "[bold cyan]Done[/bold cyan]"
        self.console.print(Panel("\n".join(lines), title=title, border_style="cyan", box=ROUNDED, padding=(0, 1)))

    def display_interrupted(self, summary: RunSummary) -> None:
        stats = summary.stats
        lines = [
            f"Checked {stats.checked} of {summary.total} keys before the interrupt.",
            f"Available: {stats.available}  Taken: {stats.taken}  Errors: {stats.errors}",
        ]
        if stats.last_key:
            lines.append(f"Last key written: {stats.last_key}")
            lines.append(f"Resume with --from {stats.last_key}")
        if summary.retry_mode:
            lines.append(f"Ledger rewritten: {summary.ledger_remaining} keys remaining")
        self.console.print(Panel(
            Text("\n".join(lines), style="white"),
            title="[bold yellow]Interrupted[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        ))

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        panel = Panel(
            Text(error_message, style="white"),
            title="[bold red]Error[/bold red]",
            border_style="red",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        if self.quiet:
            return
        panel = Panel(
            Text(info_message, style="white"),
            title="[bold blue]Info[/bold blue]",
            border_style="blue",
            box=SIMPLE,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        logger.debug(f"Display warning: {warning_message}")
        panel = Panel(
            Text(warning_message, style="white"),
            title="[bold yellow]Warning[/bold yellow]",
            border_style="yellow",
            box=HEAVY,
            padding=(0, 1)
        )
        self.console.print(panel)
