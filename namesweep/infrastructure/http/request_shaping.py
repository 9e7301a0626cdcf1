"""Request shaping policies (best-effort anti-throttling).

Headers are picked deterministically from fixed pools using the worker id
and a per-instance request counter, so a run is reproducible given the same
counters. Each worker owns its own policy instance.
"""

import asyncio
import logging
import random
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from namesweep.domain.interfaces.request_shaping import RequestShapingPolicy

logger = logging.getLogger(__name__)

USER_AGENTS = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_2 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.2 Mobile/15E148 Safari/604.1",
)

ACCEPT_LANGUAGES = (
    "en-US,en;q=0.9",
    "en-GB,en;q=0.9",
    "en-US,en;q=0.9,es;q=0.8",
    "en,en-US;q=0.9",
)

BASE_HEADERS = {
    "accept": "application/json, text/plain, */*",
    "cache-control": "no-cache",
    "pragma": "no-cache",
}

DEFAULT_JITTER_RANGE = (0.005, 0.030)  # seconds


class RotatingShapingPolicy(RequestShapingPolicy):
    """Rotates user-agent / accept-language and waits a little before each call."""

    def __init__(
        self,
        worker_id: int,
        delay_seconds: float = 0.0,
        jitter_range: Tuple[float, float] = DEFAULT_JITTER_RANGE,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the policy for one worker.

        Args:
            worker_id: Index of the owning worker; offsets the user-agent rotation.
            delay_seconds: Fixed delay before each request. 0 means random jitter.
            jitter_range: Bounds of the random delay used when no fixed delay is set.
            rng: Random source for the jitter.
            sleep: Awaitable used to wait (injectable for tests).
        """
        self.worker_id = worker_id
        self.delay_seconds = delay_seconds
        self.jitter_range = jitter_range
        self.request_count = 0
        self._rng = rng or random.Random()
        self._sleep = sleep

    def headers(self) -> Dict[str, str]:
        self.request_count += 1
        user_agent = USER_AGENTS[(self.request_count + self.worker_id) % len(USER_AGENTS)]
        language = ACCEPT_LANGUAGES[self.request_count % len(ACCEPT_LANGUAGES)]
        return {**BASE_HEADERS, "accept-language": language, "user-agent": user_agent}

    def next_delay(self) -> float:
        if self.delay_seconds > 0:
            return self.delay_seconds
        low, high = self.jitter_range
        return self._rng.uniform(low, high)

    async def pause(self) -> None:
        delay = self.next_delay()
        if delay > 0:
            await self._sleep(delay)


class PassthroughShapingPolicy(RequestShapingPolicy):
    """Static headers and no jitter. Used when shaping is disabled."""

    def __init__(self, delay_seconds: float = 0.0):
        self.delay_seconds = delay_seconds

    def headers(self) -> Dict[str, str]:
        return dict(BASE_HEADERS)

    async def pause(self) -> None:
        # --sleep still applies with shaping off
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)


def create_shaping_policy(worker_id: int, enabled: bool = True, delay_seconds: float = 0.0) -> RequestShapingPolicy:
    """Default policy factory used by the orchestrator."""
    if enabled:
        return RotatingShapingPolicy(worker_id, delay_seconds=delay_seconds)
    logger.debug(f"Request shaping disabled for worker {worker_id}")
    return PassthroughShapingPolicy(delay_seconds=delay_seconds)
