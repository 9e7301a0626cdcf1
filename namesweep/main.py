"""Main entry point for the namesweep application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

# --- Core Layer ---
from namesweep.core.command_handler import CommandHandler, RunOptions, EXIT_FAILURE

# --- Infrastructure Layer ---
# Config
from namesweep.infrastructure.config.settings import (
    get_log_file,
    get_log_level,
    load_configuration,
    load_run_config,
)
# UI
from namesweep.infrastructure.cli.display import ConsoleDisplay
# Monitoring
from namesweep.infrastructure.monitoring.logger_setup import setup_logging

logger = logging.getLogger(__name__)


# --- Dependency Injection Container (Manual) ---

def create_dependencies(quiet: bool = False, verbose: bool = False) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command invocation.

    This acts as the Composition Root.
    """
    load_configuration()
    log_level = "DEBUG" if verbose else get_log_level()
    setup_logging(log_level=log_level, log_file=get_log_file())
    logger.info("Configuration and logging initialized.")

    dependencies: Dict[str, Any] = {}
    dependencies['ui'] = ConsoleDisplay(quiet=quiet)
    dependencies['command_handler'] = CommandHandler(ui=dependencies['ui'])
    return dependencies


# --- Typer App Definition ---
app = typer.Typer(
    name="namesweep",
    help="namesweep: concurrent, sharded availability checks for large key lists.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, int]) -> int:
    """Runs an async command handler from a sync Typer command."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        # SIGINT arrived outside the cancellable section
        return 130


# --- CLI Options ---

WorkersOption = Annotated[Optional[int], typer.Option("--workers", "-w", min=1, help="Number of workers (shards).")]
ConcurrencyOption = Annotated[Optional[int], typer.Option("--concurrency", "-c", min=1, help="In-flight requests per worker.")]
BatchOption = Annotated[Optional[int], typer.Option("--batch", "-b", min=1, help="Keys per HTTP batch request.")]
SleepOption = Annotated[Optional[float], typer.Option("--sleep", "-s", min=0.0, help="Delay before each request, in seconds (fractions allowed).")]
AppendOption = Annotated[bool, typer.Option("--append", "-a", help="Append to output files instead of overwriting.")]
LocalOption = Annotated[bool, typer.Option("--local", "-l", help="Write outputs next to the input file.")]
TagOption = Annotated[Optional[str], typer.Option("--tag", "-t", help="Prefix output files with '<tag>-'.")]
FromOption = Annotated[Optional[str], typer.Option("--from", "-f", help="Resume at this key (case-insensitive).")]
StartOption = Annotated[Optional[int], typer.Option("--start", help="Resume at this 1-indexed position.")]
MinLenOption = Annotated[Optional[int], typer.Option("--min-len", min=1, help="Minimum key length.")]
MaxLenOption = Annotated[Optional[int], typer.Option("--max-len", min=1, help="Maximum key length.")]
BaseUrlOption = Annotated[Optional[str], typer.Option("--base-url", help="Root URL of the lookup service.")]
NoShapingOption = Annotated[bool, typer.Option("--no-shaping", help="Disable header rotation and random jitter.")]
IsolateOption = Annotated[bool, typer.Option("--isolate-faults", help="Mark a crashed worker's keys as errors instead of aborting.")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]
QuietOption = Annotated[bool, typer.Option("--quiet", "-q", help="Only print the header and summary.")]


def _build_run_config(
    workers: Optional[int],
    concurrency: Optional[int],
    batch: Optional[int],
    sleep: Optional[float],
    min_len: Optional[int],
    max_len: Optional[int],
    base_url: Optional[str],
    no_shaping: bool,
    isolate_faults: bool,
):
    return load_run_config(
        workers=workers,
        concurrency=concurrency,
        batch_size=batch,
        delay_seconds=sleep,
        min_length=min_len,
        max_length=max_len,
        base_url=base_url,
        shaping_enabled=False if no_shaping else None,
        isolate_worker_faults=True if isolate_faults else None,
    )


# --- CLI Commands ---

@app.command()
def check(
    targets: Annotated[List[str], typer.Argument(help="Key list file, or keys (JSON array, comma or space separated).")],
    workers: WorkersOption = None,
    concurrency: ConcurrencyOption = None,
    batch: BatchOption = None,
    sleep: SleepOption = None,
    append: AppendOption = False,
    local: LocalOption = False,
    tag: TagOption = None,
    from_key: FromOption = None,
    start: StartOption = None,
    min_len: MinLenOption = None,
    max_len: MaxLenOption = None,
    base_url: BaseUrlOption = None,
    no_shaping: NoShapingOption = False,
    isolate_faults: IsolateOption = False,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
):
    """Check every key and sort it into available, taken or errors."""
    deps = create_dependencies(quiet=quiet, verbose=verbose)
    try:
        config = _build_run_config(
            workers, concurrency, batch, sleep, min_len, max_len, base_url, no_shaping, isolate_faults
        )
    except ValueError as e:
        deps['ui'].display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=EXIT_FAILURE)

    options = RunOptions(append=append, local=local, tag=tag, start=start, from_key=from_key)
    handler: CommandHandler = deps['command_handler']
    code = run_async(handler.handle_check(targets, config, options))
    raise typer.Exit(code=code)


@app.command()
def retry(
    targets: Annotated[Optional[List[str]], typer.Argument(help="Original key list file (its directory is searched for the ledger).")] = None,
    ledger: Annotated[Optional[Path], typer.Option("--ledger", help="Failure ledger to retry (default: errors.txt).")] = None,
    workers: WorkersOption = None,
    concurrency: ConcurrencyOption = None,
    batch: BatchOption = None,
    sleep: SleepOption = None,
    tag: TagOption = None,
    from_key: FromOption = None,
    start: StartOption = None,
    min_len: MinLenOption = None,
    max_len: MaxLenOption = None,
    base_url: BaseUrlOption = None,
    no_shaping: NoShapingOption = False,
    isolate_faults: IsolateOption = False,
    verbose: VerboseOption = False,
    quiet: QuietOption = False,
):
    """Re-check the keys in the failure ledger and rewrite it.

    Results are appended next to the ledger, using the --tag prefix if given.
    """
    deps = create_dependencies(quiet=quiet, verbose=verbose)
    try:
        config = _build_run_config(
            workers, concurrency, batch, sleep, min_len, max_len, base_url, no_shaping, isolate_faults
        )
    except ValueError as e:
        deps['ui'].display_error(f"Invalid configuration: {e}")
        raise typer.Exit(code=EXIT_FAILURE)

    options = RunOptions(append=True, tag=tag, start=start, from_key=from_key, ledger=ledger)
    handler: CommandHandler = deps['command_handler']
    code = run_async(handler.handle_retry(targets or [], config, options))
    raise typer.Exit(code=code)


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    cli_entry_point()
