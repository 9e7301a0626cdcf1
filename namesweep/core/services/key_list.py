"""Key list preparation: validation, deduplication, sorting, resume and sharding.

Everything here is pure and deterministic, and runs before any network
activity, so every InputError is raised before a worker starts.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from namesweep.domain.exceptions import InputError
from namesweep.domain.models.check import PreparedKeys
from namesweep.domain.models.common import Key, Shard

logger = logging.getLogger(__name__)


def sort_key(key: str) -> str:
    return key.lower()


def normalize_keys(raw: Iterable[str], min_length: int, max_length: int) -> Tuple[List[Key], int, int]:
    """Deduplicates, length-filters and case-insensitively sorts ``raw``.

    Returns:
        (sorted keys, distinct keys seen, distinct keys filtered out)
    """
    distinct = list(dict.fromkeys(k.strip() for k in raw if k and k.strip()))
    valid = [Key(k) for k in distinct if min_length <= len(k) <= max_length]
    valid.sort(key=sort_key)
    return valid, len(distinct), len(distinct) - len(valid)


def apply_resume(keys: Sequence[Key], skip: int = 0, from_key: Optional[str] = None) -> Tuple[List[Key], int]:
    """Drops the keys before the resume point.

    ``skip`` removes the first N keys by position. ``from_key`` then removes
    everything before the first case-insensitive match of that key.

    Returns:
        (remaining keys, number of keys skipped)

    Raises:
        InputError: If ``skip`` is negative or ``from_key`` is not in the list.
    """
    if skip < 0:
        raise InputError(f"Resume offset must be >= 0, got {skip}")
    skipped = min(skip, len(keys))
    remaining = list(keys[skipped:])

    if from_key is not None:
        target = from_key.strip().lower()
        index = next((i for i, k in enumerate(remaining) if k.lower() == target), -1)
        if index == -1:
            raise InputError(f'Key "{from_key}" not found in list.')
        skipped += index
        remaining = remaining[index:]

    return remaining, skipped


def prepare_keys(
    raw: Iterable[str],
    min_length: int,
    max_length: int,
    skip: int = 0,
    from_key: Optional[str] = None,
) -> PreparedKeys:
    """Runs the full preparation pipeline used by every run.

    Raises:
        InputError: If no valid keys remain or the resume key is unknown.
    """
    keys, total, filtered = normalize_keys(raw, min_length, max_length)
    keys, skipped = apply_resume(keys, skip=skip, from_key=from_key)
    if not keys:
        raise InputError(f"No valid keys ({min_length}-{max_length} chars).")
    logger.info(f"Prepared {len(keys)} keys ({filtered} filtered, {skipped} skipped)")
    return PreparedKeys(keys=keys, total_in_input=total, filtered=filtered, skipped=skipped)


def shard_keys(keys: Sequence[Key], worker_count: int) -> List[Shard]:
    """Round-robin partition: key ``i`` goes to shard ``i % worker_count``.

    Order within each shard follows the input order. Empty shards are kept
    so shard index always equals worker index.
    """
    if worker_count < 1:
        raise ValueError("worker_count must be >= 1")
    buckets: List[List[Key]] = [[] for _ in range(worker_count)]
    for index, key in enumerate(keys):
        buckets[index % worker_count].append(key)
    return [tuple(bucket) for bucket in buckets]


def group_keys(shard: Sequence[Key], batch_size: int) -> List[List[Key]]:
    """Splits a shard into HTTP batch groups of ``batch_size`` (last may be smaller)."""
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [list(shard[i:i + batch_size]) for i in range(0, len(shard), batch_size)]
