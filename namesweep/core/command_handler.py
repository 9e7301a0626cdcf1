"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py), resolves inputs and
output locations, and delegates the run to the CheckOrchestrator. Translates
InputError, FatalWorkerFault and interrupts into UI messages and exit codes.
"""

import asyncio
import contextlib
import logging
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Sequence

import httpx

from namesweep.core.services.orchestrator import CheckOrchestrator
from namesweep.domain.exceptions import FatalWorkerFault, InputError
from namesweep.domain.interfaces.user_interface import UserInterface
from namesweep.domain.models.check import RunSummary
from namesweep.domain.models.run_config import RunConfig
from namesweep.infrastructure.filesystem.key_source import KeySource, load_key_source
from namesweep.infrastructure.http.lookup_client import LookupClient
from namesweep.infrastructure.persistence.failure_ledger import FailureLedger
from namesweep.infrastructure.persistence.output_layout import LEDGER_FILE_NAME, OutputLayout, locate_ledger
from namesweep.infrastructure.persistence.result_sinks import ResultSinks

logger = logging.getLogger(__name__)

# --- Exit Codes ---
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


@dataclass(frozen=True)
class RunOptions:
    """Per-invocation options that are not part of the engine configuration."""
    append: bool = False
    local: bool = False
    tag: Optional[str] = None
    start: Optional[int] = None      # 1-indexed position to resume at
    from_key: Optional[str] = None
    ledger: Optional[Path] = None    # explicit failure ledger for retry mode

    def skip_count(self) -> int:
        if self.start is None:
            return 0
        if self.start < 1:
            raise InputError(f"--start must be >= 1, got {self.start}")
        return self.start - 1


@contextlib.contextmanager
def cancel_on_sigint() -> Iterator[None]:
    """Routes SIGINT to cancelling the current task while the block runs.

    Where the loop cannot install signal handlers, asyncio.run's own SIGINT
    handling cancels the main task instead.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    installed = False
    if task is not None:
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(signal.SIGINT, task.cancel)
            installed = True
    try:
        yield
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


class CommandHandler:
    """Handles incoming commands and delegates to the orchestrator."""

    def __init__(
        self,
        ui: UserInterface,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        orchestrator_factory: Optional[Callable[[RunConfig], CheckOrchestrator]] = None,
    ):
        """Initializes the CommandHandler.

        Args:
            ui: Console (or test) user interface.
            transport: Optional httpx transport shared by every worker's client.
            orchestrator_factory: Builds the orchestrator for a given RunConfig.
        """
        self.ui = ui
        self.transport = transport
        self.orchestrator_factory = orchestrator_factory or self._default_orchestrator

    def _default_orchestrator(self, config: RunConfig) -> CheckOrchestrator:
        return CheckOrchestrator(
            config,
            ui=self.ui,
            client_factory=lambda worker_id, shaping: LookupClient.from_config(
                config, shaping, transport=self.transport
            ),
        )

    async def handle_check(self, targets: Sequence[str], config: RunConfig, options: RunOptions) -> int:
        """Handles the 'check' command: inline keys or a key list file."""
        logger.info(f"Handling 'check' command with {len(targets)} argument(s)")
        orchestrator = self.orchestrator_factory(config)
        try:
            source = await load_key_source(targets, config.max_length)
            prepared = orchestrator.prepare(source.keys, skip=options.skip_count(), from_key=options.from_key)
            layout = self._output_layout(source, options)
            self.ui.display_run_header(
                prepared, config, mode="check", output=layout.describe(), resume=options.from_key
            )
            with cancel_on_sigint():
                async with ResultSinks(
                    layout.available_path, layout.taken_path, layout.errors_path, append=options.append
                ) as sinks:
                    summary = await orchestrator.check(prepared, sinks)
        except InputError as e:
            logger.error(f"Invalid input: {e}")
            self.ui.display_error(str(e))
            return EXIT_FAILURE
        except FatalWorkerFault as e:
            logger.error(f"Run aborted: {e}")
            self.ui.display_error(f"Run aborted: {e}")
            return EXIT_FAILURE
        except asyncio.CancelledError:
            return self._interrupted(orchestrator)

        self.ui.display_summary(summary)
        return EXIT_OK

    async def handle_retry(self, targets: Sequence[str], config: RunConfig, options: RunOptions) -> int:
        """Handles the 'retry' command: re-checks the keys in the failure ledger.

        ``targets`` optionally names the original key list file; its directory
        is searched for the ledger before the current directory.
        """
        logger.info("Handling 'retry' command")
        orchestrator = self.orchestrator_factory(config)
        try:
            source_dir = self._source_directory(targets)
            # The ledger name is never tagged; --tag only names the outputs
            ledger_path = options.ledger or locate_ledger(self._ledger_search_dirs(source_dir))
            if ledger_path is None or not Path(ledger_path).is_file():
                raise InputError(f"No {LEDGER_FILE_NAME} found to retry.")
            layout = OutputLayout(directory=Path(ledger_path).resolve().parent, tag=options.tag)

            ledger = await FailureLedger.load(ledger_path)
            if not len(ledger):
                self.ui.display_info(f"{ledger_path} is empty. Nothing to retry.")
                return EXIT_OK

            prepared = orchestrator.prepare(ledger.keys(), skip=options.skip_count(), from_key=options.from_key)
            self.ui.display_run_header(
                prepared, config, mode=f"retry ({ledger_path})", output=layout.describe(), resume=options.from_key
            )
            with cancel_on_sigint():
                # Retry mode always appends and keeps errors in memory for the ledger rewrite
                async with ResultSinks(layout.available_path, layout.taken_path, append=True) as sinks:
                    summary = await orchestrator.retry(ledger, ledger_path, prepared, sinks)
        except InputError as e:
            logger.error(f"Invalid input: {e}")
            self.ui.display_error(str(e))
            return EXIT_FAILURE
        except FatalWorkerFault as e:
            logger.error(f"Retry aborted: {e}")
            self.ui.display_error(f"Retry aborted: {e}. {ledger_path} was rewritten with the remaining keys.")
            return EXIT_FAILURE
        except asyncio.CancelledError:
            return self._interrupted(orchestrator)

        self.ui.display_summary(summary)
        if summary.ledger_remaining == 0:
            self.ui.display_info(f"All failed keys resolved. {ledger_path} is now empty.")
        return EXIT_OK

    # --- Helpers ---

    def _interrupted(self, orchestrator: CheckOrchestrator) -> int:
        logger.warning("Run interrupted by user")
        summary = orchestrator.last_summary or RunSummary(total=0, interrupted=True)
        self.ui.display_interrupted(summary)
        return EXIT_INTERRUPTED

    @staticmethod
    def _output_layout(source: KeySource, options: RunOptions) -> OutputLayout:
        if options.local and source.path is not None:
            directory = source.path.parent
        else:
            directory = Path.cwd()
        return OutputLayout(directory=directory, tag=options.tag)

    @staticmethod
    def _source_directory(targets: Sequence[str]) -> Optional[Path]:
        if len(targets) != 1:
            return None
        candidate = Path(targets[0]).expanduser()
        if candidate.is_file():
            return candidate.resolve().parent
        if candidate.is_dir():
            return candidate.resolve()
        raise InputError(f"File not found: {candidate.resolve()}")

    @staticmethod
    def _ledger_search_dirs(source_dir: Optional[Path]) -> List[Path]:
        dirs = [source_dir] if source_dir else []
        cwd = Path.cwd()
        if cwd not in dirs:
            dirs.append(cwd)
        return dirs

