"""Interface for interacting with the user (output only).

Defines the contract for displaying per-key results, run headers, summaries,
errors and warnings, allowing different UI implementations (e.g., rich
console, silent/quiet mode in tests).
"""

import abc
from typing import Any

# Import relevant domain models
from namesweep.domain.models.check import CheckResult, PreparedKeys, RunSummary
from namesweep.domain.models.run_config import RunConfig


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_result(self, result: CheckResult) -> None:
        """Displays the outcome of a single key check.

        Called from the orchestrator's single writer, once per key.

        Args:
            result: The finished check result.
        """
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    def display_run_header(self, prepared: PreparedKeys, config: RunConfig, **kwargs: Any) -> None:
        """Displays what is about to be checked and with which parallelism.

        Args:
            prepared: The validated key list (with filter/skip counts).
            config: The run configuration.
            **kwargs: Extra context (e.g., output location, resume target).
        """
        pass

    def display_summary(self, summary: RunSummary) -> None:
        """Displays the end-of-run summary.

        Args:
            summary: Counters and timing of the finished run.
        """
        pass

    def display_interrupted(self, summary: RunSummary) -> None:
        """Displays progress after an external interrupt.

        Args:
            summary: Counters of the partial run.
        """
        pass
