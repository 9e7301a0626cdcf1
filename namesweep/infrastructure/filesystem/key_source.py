"""Reads the raw key list a run starts from.

A run's input is either a list file (one key per line) or keys given inline
on the command line as a JSON array, a comma-separated list, a
whitespace-separated list, or a single key. Uses `aiofiles` for async I/O.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

import aiofiles

from namesweep.domain.exceptions import InputError
from namesweep.domain.models.run_config import DEFAULT_MAX_LENGTH

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeySource:
    """Raw (unvalidated) keys plus where they came from."""
    keys: List[str]
    path: Optional[Path] = None

    @property
    def inline(self) -> bool:
        return self.path is None


def parse_key_input(text: str) -> List[str]:
    """Splits inline input into keys.

    Tries a JSON array first, then commas, then whitespace; otherwise the
    whole (trimmed) text is a single key.
    """
    stripped = text.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        try:
            parsed = json.loads(stripped)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]

    if "," in stripped:
        return [part.strip() for part in stripped.split(",") if part.strip()]
    if any(ch.isspace() for ch in stripped):
        return stripped.split()
    return [stripped] if stripped else []


def looks_like_path(value: str, max_length: int = DEFAULT_MAX_LENGTH) -> bool:
    """Heuristic: would a user have meant this argument as a file name?"""
    return (
        os.sep in value
        or "/" in value
        or bool(Path(value).suffix)
        or len(value) > max_length
    )


async def read_key_file(path: Path) -> List[str]:
    """Reads one key per line, dropping blank lines and surrounding whitespace."""
    logger.debug(f"Attempting to read key list: {path}")
    if not path.is_file():
        raise InputError(f"File not found: {path}")
    try:
        async with aiofiles.open(path, mode="r", encoding="utf-8") as f:
            content = await f.read()
    except PermissionError as e:
        logger.error(f"Permission denied reading file: {path}")
        raise InputError(f"Permission denied: {path}") from e
    except UnicodeDecodeError as e:
        raise InputError(f"Key list is not valid UTF-8 text: {path}") from e
    keys = [line.strip() for line in content.splitlines() if line.strip()]
    logger.debug(f"Read {len(keys)} lines from {path}")
    return keys


async def load_key_source(targets: Sequence[str], max_length: int = DEFAULT_MAX_LENGTH) -> KeySource:
    """Resolves CLI arguments into a KeySource.

    Raises:
        InputError: If nothing usable was given or a named file does not exist.
    """
    if not targets:
        raise InputError("No input specified")

    if len(targets) == 1:
        candidate = Path(targets[0]).expanduser()
        if candidate.is_file():
            return KeySource(keys=await read_key_file(candidate.resolve()), path=candidate.resolve())

    parsed = parse_key_input(" ".join(targets))
    if len(parsed) > 1:
        return KeySource(keys=parsed)
    if len(parsed) == 1:
        if looks_like_path(parsed[0], max_length):
            raise InputError(f"File not found: {Path(parsed[0]).resolve()}")
        return KeySource(keys=parsed)
    raise InputError("No keys found in input")
