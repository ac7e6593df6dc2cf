"""Rate-limited async JSON-RPC client for Ethereum nodes.

Wraps httpx.AsyncClient with interval rate limiting and retry logic, and
decodes ``eth_getLogs`` results into typed event records before they
leave this module.

HTTP-level failures (timeouts, 429, connection errors) are retried here
with exponential backoff. JSON-RPC error objects (e.g. "query returned
more than 10000 results") are raised immediately as RpcTransientError so
that the batch fetcher can shrink the range instead.

Rules Applied:
    - #23 Exception Handling: Domain-driven hierarchy
    - #19 Git Security: No secrets in code
"""

from __future__ import annotations

import asyncio
import itertools
import time
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from vendor_sync.chain.abi import decode_values, function_selector, normalize_address
from vendor_sync.chain.events import ChainEvent, EventFilter, decode_log
from vendor_sync.core.exceptions import RateLimitError, RpcTransientError

if TYPE_CHECKING:
    from vendor_sync.config.settings import SyncSettings

DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 2.0
DEFAULT_TIMEOUT = 30.0
DEFAULT_REQUESTS_PER_MINUTE = 300

HTTP_TOO_MANY_REQUESTS = 429


class RateLimiter:
    """Interval-based rate limiter using asyncio.Lock.

    Ensures minimum interval between requests to the node.
    """

    def __init__(self, requests_per_minute: int) -> None:
        """Initialize rate limiter.

        Args:
            requests_per_minute: Maximum requests per minute.
        """
        self._interval = 60.0 / requests_per_minute
        self._last_request: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def interval(self) -> float:
        """Minimum interval between requests (seconds)."""
        return self._interval

    async def acquire(self) -> None:
        """Wait for rate limit slot."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request
            if elapsed < self._interval:
                await asyncio.sleep(self._interval - elapsed)
            self._last_request = time.monotonic()


class JsonRpcChainClient:
    """Rate-limited async JSON-RPC chain client.

    Example:
        >>> async with JsonRpcChainClient("https://eth.llamarpc.com") as client:
        ...     head = await client.current_height()
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._rpc_url = rpc_url
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self._rate_limiter = RateLimiter(requests_per_minute)
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: SyncSettings) -> JsonRpcChainClient:
        """Build a client from SyncSettings."""
        return cls(
            settings.rpc_url,
            requests_per_minute=settings.rpc_requests_per_minute,
            max_retries=settings.max_retries,
            backoff_base=settings.backoff_base,
            timeout=settings.request_timeout,
        )

    async def __aenter__(self) -> JsonRpcChainClient:
        """Enter async context: create httpx client."""
        self._client = httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(self._timeout),
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        """Exit async context: close httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # ChainClient
    # ------------------------------------------------------------------

    async def current_height(self) -> int:
        """``eth_blockNumber``."""
        result = await self.request("eth_blockNumber", [])
        return int(str(result), 16)

    async def query_events(
        self,
        event_filter: EventFilter,
        from_block: int,
        to_block: int,
    ) -> list[ChainEvent]:
        """``eth_getLogs`` over an inclusive block range, decoded and sorted.

        Raises:
            RpcTransientError: node or transport failure
            EventDecodeError: a returned log could not be decoded
        """
        params = {
            "address": event_filter.address,
            "topics": event_filter.topics,
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }
        result = await self.request("eth_getLogs", [params])
        if not isinstance(result, list):
            raise RpcTransientError(
                "eth_getLogs returned a non-list result",
                context={"filter": event_filter.describe(), "type": type(result).__name__},
            )

        events = [decode_log(entry) for entry in result if not entry.get("removed", False)]
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    async def call(self, address: str, signature: str, output_type: str = "address") -> object:
        """``eth_call`` of an argument-less view function at ``latest``."""
        payload = {"to": address, "data": function_selector(signature)}
        result = await self.request("eth_call", [payload, "latest"])
        (value,) = decode_values([output_type], str(result))
        if output_type == "address":
            return normalize_address(value)
        return value

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    async def request(self, method: str, params: list[Any]) -> Any:
        """Send a JSON-RPC request with rate limiting and retry.

        Returns:
            The ``result`` member of the JSON-RPC response.

        Raises:
            RuntimeError: Client not initialized (use async with).
            RpcTransientError: JSON-RPC error, or transport failure after retries.
            RateLimitError: HTTP 429 persisted after retries.
        """
        if self._client is None:
            msg = "Client not initialized. Use 'async with JsonRpcChainClient(...)' context manager."
            raise RuntimeError(msg)

        body = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        last_exc: Exception | None = None

        for attempt in range(self._max_retries):
            await self._rate_limiter.acquire()
            try:
                response = await self._client.post(self._rpc_url, json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                last_exc = e
                wait = self._backoff_base ** (attempt + 1)
                if e.response.status_code == HTTP_TOO_MANY_REQUESTS:
                    logger.warning(
                        "Rate limited by RPC (429) on {}, retry {}/{} in {:.1f}s",
                        method,
                        attempt + 1,
                        self._max_retries,
                        wait,
                    )
                else:
                    logger.warning(
                        "HTTP {} from RPC on {}, retry {}/{} in {:.1f}s",
                        e.response.status_code,
                        method,
                        attempt + 1,
                        self._max_retries,
                        wait,
                    )
                await asyncio.sleep(wait)
            except httpx.HTTPError as e:
                last_exc = e
                wait = self._backoff_base ** (attempt + 1)
                logger.warning(
                    "RPC transport error on {}: {}, retry {}/{} in {:.1f}s",
                    method,
                    e,
                    attempt + 1,
                    self._max_retries,
                    wait,
                )
                await asyncio.sleep(wait)
            else:
                return self._unwrap(method, response)

        if (
            isinstance(last_exc, httpx.HTTPStatusError)
            and last_exc.response.status_code == HTTP_TOO_MANY_REQUESTS
        ):
            raise RateLimitError(
                f"RPC rate limit exceeded after {self._max_retries} retries",
                context={"method": method},
            ) from last_exc

        raise RpcTransientError(
            f"RPC {method} failed after {self._max_retries} retries",
            context={"method": method, "last_error": str(last_exc)},
        ) from last_exc

    @staticmethod
    def _unwrap(method: str, response: httpx.Response) -> Any:
        try:
            payload = response.json()
        except ValueError as e:
            raise RpcTransientError(
                f"RPC {method} returned invalid JSON",
                context={"method": method},
            ) from e

        error = payload.get("error") if isinstance(payload, dict) else None
        if error:
            details = error if isinstance(error, dict) else {"message": error}
            raise RpcTransientError(
                f"RPC {method} error: {details.get('message', details)}",
                context={"method": method, "code": details.get("code")},
            )
        if not isinstance(payload, dict) or "result" not in payload:
            raise RpcTransientError(f"RPC {method} response has no result", context={"method": method})
        return payload["result"]
