"""Where a run's output files live.

The engine never decides placement; the command layer builds an OutputLayout
from the CLI flags (output directory, tag prefix) and hands the resulting
paths to ResultSinks.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

AVAILABLE_FILE_NAME = "available.txt"
TAKEN_FILE_NAME = "taken.txt"
LEDGER_FILE_NAME = "errors.txt"


@dataclass(frozen=True)
class OutputLayout:
    """Output directory plus optional ``<tag>-`` file prefix."""
    directory: Path
    tag: Optional[str] = None

    def path_for(self, file_name: str) -> Path:
        prefix = f"{self.tag}-" if self.tag else ""
        return self.directory / f"{prefix}{file_name}"

    @property
    def available_path(self) -> Path:
        return self.path_for(AVAILABLE_FILE_NAME)

    @property
    def taken_path(self) -> Path:
        return self.path_for(TAKEN_FILE_NAME)

    @property
    def errors_path(self) -> Path:
        return self.path_for(LEDGER_FILE_NAME)

    def describe(self) -> str:
        prefix = f"{self.tag}-" if self.tag else ""
        return f"{self.directory}/{prefix}*.txt"


def locate_ledger(search_dirs: Iterable[Path], file_name: str = LEDGER_FILE_NAME) -> Optional[Path]:
    """Returns the first existing ledger file among ``search_dirs``."""
    for directory in search_dirs:
        candidate = Path(directory) / file_name
        if candidate.is_file():
            logger.debug(f"Found failure ledger at {candidate}")
            return candidate
    return None
