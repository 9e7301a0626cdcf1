"""Turns a group of keys into lookup outcomes.

A group of one is a plain single-key query whose errors propagate to the
caller's retry controller. Larger groups try the batch endpoint first; if
that call fails or its body cannot be used, every key that did not get an
answer is queried on its own, concurrently, each under its own retry.
"""

import asyncio
import logging
from typing import Dict, List, Sequence

from namesweep.domain.exceptions import LookupFailure
from namesweep.domain.models.check import KeyOutcome
from namesweep.domain.models.common import Key
from namesweep.infrastructure.http.lookup_client import LookupClient
from namesweep.infrastructure.resilience.api_retry import RetryController

logger = logging.getLogger(__name__)


class BatchRequester:
    """Batch-first lookup with per-key fallback."""

    def __init__(self, client: LookupClient, retry: RetryController):
        self.client = client
        self.retry = retry

    async def request(self, keys: Sequence[Key]) -> List[KeyOutcome]:
        """Returns exactly one outcome per key, in input order.

        Raises:
            LookupFailure: Only for a group of one (left to the caller to retry).
        """
        if not keys:
            return []
        if len(keys) == 1:
            available = await self.client.check_single(keys[0])
            return [KeyOutcome(keys[0], available=available)]

        try:
            answered = await self.client.check_batch(keys)
        except LookupFailure as e:
            logger.debug(f"Batch of {len(keys)} failed ({e}); falling back to single lookups")
            answered = {}

        missing = [key for key in keys if key not in answered]
        if answered and missing:
            logger.debug(f"Batch answered {len(answered)}/{len(keys)} keys; checking the rest individually")
        fallback = await self._check_individually(missing) if missing else {}

        return [
            KeyOutcome(key, available=answered[key]) if key in answered else fallback[key]
            for key in keys
        ]

    async def _check_individually(self, keys: Sequence[Key]) -> Dict[Key, KeyOutcome]:
        outcomes = await asyncio.gather(*(self._check_one(key) for key in keys))
        return {outcome.key: outcome for outcome in outcomes}

    async def _check_one(self, key: Key) -> KeyOutcome:
        result = await self.retry.run(lambda: self.client.check_single(key), description=f"key '{key}'")
        if result.ok:
            return KeyOutcome(key, available=result.value)
        return KeyOutcome(key, error=result.error)
