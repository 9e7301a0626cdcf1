"""Interface for request shaping (anti-throttling) policies.

A policy decides the client-identity headers sent with each request and the
delay inserted before it. It has no correctness role: swapping or disabling
it must never change how a key is classified.
"""

import abc
from typing import Dict


class RequestShapingPolicy(abc.ABC):
    """Abstract Base Class for per-worker request shaping."""

    @abc.abstractmethod
    def headers(self) -> Dict[str, str]:
        """Returns the headers for the next request and advances the request counter."""
        pass

    @abc.abstractmethod
    async def pause(self) -> None:
        """Waits before a request is sent (configured or randomized delay)."""
        pass
