"""HTTP client for the remote availability lookup service, using httpx.

Translates transport exceptions and status codes into the lookup error
taxonomy (namesweep.domain.exceptions) so the retry controller can classify
them without knowing anything about HTTP.
"""

import logging
from typing import Any, Collection, Dict, Optional, Sequence
from urllib.parse import quote

import httpx

from namesweep.domain.exceptions import (
    ConnectionFailedError,
    HttpStatusError,
    ProtocolError,
    RateLimitedError,
    RequestTimeoutError,
    ServerError,
)
from namesweep.domain.interfaces.request_shaping import RequestShapingPolicy
from namesweep.domain.models.common import Key
from namesweep.domain.models.run_config import DEFAULT_FATAL_STATUSES, RunConfig

logger = logging.getLogger(__name__)

SINGLE_PATH = "/check/{key}"
BATCH_PATH = "/check/batch"
BATCH_OK_STATUSES = (200, 201)
KEEPALIVE_EXPIRY_SECONDS = 10.0


def _describe(exc: Exception) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        # HTTP-date form is not used by the lookup service
        return None


def parse_batch_payload(payload: Any, keys: Sequence[Key]) -> Dict[Key, bool]:
    """Extracts availability flags for ``keys`` from a batch response body.

    Accepts ``{"results": [{"key": k, "available": bool}, ...]}`` (``username``
    is accepted as an alias of ``key``) or a flat ``{k: bool}`` map. Keys that
    are absent or not boolean are left out of the returned mapping.

    Raises:
        ProtocolError: If the body matches neither shape or carries no usable entry.
    """
    wanted = set(keys)
    parsed: Dict[Key, bool] = {}

    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        for record in payload["results"]:
            if not isinstance(record, dict):
                continue
            key = record.get("key", record.get("username"))
            available = record.get("available")
            if isinstance(key, str) and key in wanted and isinstance(available, bool):
                parsed[Key(key)] = available
    elif isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, bool):
                parsed[key] = value
    else:
        raise ProtocolError(f"Unexpected batch response type: {type(payload).__name__}")

    if not parsed:
        raise ProtocolError("Batch response contained no usable results")
    return parsed


class LookupClient:
    """Async client owning one connection pool. One instance per worker."""

    def __init__(
        self,
        shaping: RequestShapingPolicy,
        base_url: str,
        request_timeout: float = 20.0,
        batch_read_timeout: float = 30.0,
        max_connections: int = 100,
        fatal_statuses: Collection[int] = DEFAULT_FATAL_STATUSES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the client.

        Args:
            shaping: Per-worker header rotation / delay policy.
            base_url: Root URL of the lookup service.
            request_timeout: Timeout (seconds) for connecting and waiting on headers.
            batch_read_timeout: Read timeout (seconds) for the batch endpoint body.
            max_connections: Size of the connection pool.
            fatal_statuses: Non-2xx statuses that must not be retried.
            transport: Optional httpx transport (e.g., httpx.MockTransport in tests).
        """
        self.shaping = shaping
        self.fatal_statuses = frozenset(fatal_statuses)
        self._single_timeout = httpx.Timeout(request_timeout)
        self._batch_timeout = httpx.Timeout(request_timeout, read=batch_read_timeout)
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=self._single_timeout,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_connections,
                keepalive_expiry=KEEPALIVE_EXPIRY_SECONDS,
            ),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: RunConfig,
        shaping: RequestShapingPolicy,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "LookupClient":
        return cls(
            shaping=shaping,
            base_url=config.base_url,
            request_timeout=config.request_timeout,
            batch_read_timeout=config.batch_read_timeout,
            max_connections=config.pool_size,
            fatal_statuses=config.fatal_statuses,
            transport=transport,
        )

    async def check_single(self, key: Key) -> bool:
        """Queries one key. Returns True if available, False if taken."""
        response = await self._send(
            "GET", SINGLE_PATH.format(key=quote(key, safe="")), timeout=self._single_timeout
        )
        self._raise_for_status(response)
        payload = self._json(response)
        available = payload.get("available") if isinstance(payload, dict) else None
        if not isinstance(available, bool):
            raise ProtocolError("Invalid response")
        return available

    async def check_batch(self, keys: Sequence[Key]) -> Dict[Key, bool]:
        """Queries a group of keys with one POST. May return a subset of ``keys``."""
        response = await self._send(
            "POST",
            BATCH_PATH,
            json={"keys": list(keys)},
            headers={"content-type": "application/json"},
            timeout=self._batch_timeout,
        )
        if response.status_code not in BATCH_OK_STATUSES:
            self._raise_for_status(response)
            raise ProtocolError(f"Unexpected batch status {response.status_code}")
        return parse_batch_payload(self._json(response), keys)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LookupClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def _send(self, method: str, path: str, headers: Optional[Dict[str, str]] = None, **kwargs: Any) -> httpx.Response:
        await self.shaping.pause()
        request_headers = self.shaping.headers()
        if headers:
            request_headers.update(headers)
        try:
            return await self._client.request(method, path, headers=request_headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(_describe(e)) from e
        except httpx.TransportError as e:
            raise ConnectionFailedError(_describe(e)) from e
        except httpx.DecodingError as e:
            # body arrived but its content-encoding is corrupt
            raise ProtocolError(_describe(e)) from e
        except httpx.RequestError as e:
            raise ConnectionFailedError(_describe(e)) from e

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status == 429:
            raise RateLimitedError(retry_after=_parse_retry_after(response.headers.get("retry-after")))
        if status >= 500:
            raise ServerError(status)
        if status < 200 or status >= 300:
            raise HttpStatusError(status, retryable=status not in self.fatal_statuses)

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ProtocolError("Invalid response") from e
