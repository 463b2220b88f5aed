"""Single-endpoint EVM JSON-RPC backend with a per-endpoint throttle."""
from __future__ import annotations

import asyncio
import itertools
import json
import logging
import ssl
from typing import Any

import aiohttp
import certifi

from ...errors import RateLimitedError, RpcError

logger = logging.getLogger(__name__)

# JSON-RPC error codes providers use for "too many requests".
RATE_LIMIT_CODES = frozenset({429, -32005})


def is_rate_limit_payload(error: Any) -> bool:
    """True if a JSON-RPC ``error`` member carries a 429-equivalent code."""
    if not isinstance(error, dict):
        return "429" in str(error)
    code = error.get("code")
    if code in RATE_LIMIT_CODES:
        return True
    message = str(error.get("message", "")).lower()
    return "429" in message or "too many requests" in message


class _Throttle:
    """Enforce a minimum spacing between consecutive requests."""

    def __init__(self, slot_interval: float) -> None:
        self._interval = slot_interval
        self._next_slot = 0.0
        self._lock = asyncio.Lock()

    async def wait(self) -> None:
        if self._interval <= 0:
            return
        async with self._lock:
            loop = asyncio.get_running_loop()
            now = loop.time()
            delay = self._next_slot - now
            if delay > 0:
                await asyncio.sleep(delay)
                now = loop.time()
            self._next_slot = now + self._interval


class JsonRpcBackend:
    """One RPC endpoint. Makes exactly one attempt per request.

    Rate-limit responses raise ``RateLimitedError`` so the rotating provider
    can move on; everything else (``RpcError``, ``aiohttp.ClientError``,
    ``asyncio.TimeoutError``) propagates unchanged.
    """

    def __init__(self, url: str, timeout: float = 30, slot_interval: float = 0.25) -> None:
        self.url = url
        self.timeout = timeout
        self._throttle = _Throttle(slot_interval)
        self._ids = itertools.count(1)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            ssl_context = ssl.create_default_context(cafile=certifi.where())
            connector = aiohttp.TCPConnector(ssl=ssl_context)
            self._session = aiohttp.ClientSession(connector=connector)
        return self._session

    async def request(self, method: str, params: list[Any]) -> Any:
        """POST one JSON-RPC request and return its ``result`` member."""
        await self._throttle.wait()

        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        session = self._get_session()

        async with session.post(
            self.url,
            json=payload,
            timeout=aiohttp.ClientTimeout(total=self.timeout),
        ) as response:
            if response.status == 429:
                raise RateLimitedError(f"HTTP 429 from {self.url}", url=self.url)
            text = await response.text()

        if '"code":429' in text.replace(" ", ""):
            raise RateLimitedError(f"Rate limited by {self.url}", url=self.url)

        try:
            body = json.loads(text)
        except ValueError as e:
            raise RpcError(
                f"Malformed response from {self.url} (HTTP {response.status})"
            ) from e

        if not isinstance(body, dict):
            raise RpcError(f"Unexpected response shape from {self.url}")

        error = body.get("error")
        if error:
            if is_rate_limit_payload(error):
                code = error.get("code") if isinstance(error, dict) else 429
                raise RateLimitedError(f"Rate limited by {self.url}: {error}", url=self.url, code=code)
            code = error.get("code") if isinstance(error, dict) else None
            raise RpcError(f"RPC Error: {error}", code=code)

        if response.status >= 400:
            raise RpcError(f"HTTP {response.status} from {self.url}")
        if "result" not in body:
            raise RpcError(f"Response from {self.url} has no result")

        return body["result"]

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
