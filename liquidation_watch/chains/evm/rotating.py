"""Rotating read provider: sticky active backend, rotate on rate-limit."""
from __future__ import annotations

import logging
from typing import Any, Sequence

from ...config import RpcConfig
from ...errors import ConfigError, RateLimitedError, RotationExhaustedError
from ...interfaces.read_provider import ReadBackend
from .backend import JsonRpcBackend

logger = logging.getLogger(__name__)


class RotatingProvider:
    """Serve reads from one preferred backend, hopping only on rate limits.

    ``active_index`` only ever moves to a backend that just answered
    successfully. Only the request that started from the current active
    backend may move it, so concurrent requests do not fight over it.
    """

    def __init__(
        self,
        backends: Sequence[ReadBackend],
        chain_id: int,
        rotation_depth: int | None = None,
    ) -> None:
        if not backends:
            raise ConfigError("RotatingProvider needs at least one backend")
        self._backends = list(backends)
        self.chain_id = chain_id
        n = len(self._backends)
        self._depth = n if rotation_depth is None else max(1, min(rotation_depth, n))
        self._active_index = 0
        logger.info(
            "RPC rotation over %d endpoint(s), starting with %s",
            n, self._backends[0].url,
        )

    @classmethod
    def from_config(cls, config: RpcConfig, chain_id: int) -> RotatingProvider:
        backends = [
            JsonRpcBackend(
                url,
                timeout=config.timeout,
                slot_interval=config.slot_interval_ms / 1000,
            )
            for url in config.endpoints
        ]
        return cls(backends, chain_id=chain_id, rotation_depth=config.rotation_depth)

    @property
    def active_index(self) -> int:
        return self._active_index

    @property
    def active_url(self) -> str:
        return self._backends[self._active_index].url

    async def perform(self, method: str, params: list[Any]) -> Any:
        start = self._active_index
        n = len(self._backends)
        last_error: RateLimitedError | None = None

        for hop in range(self._depth):
            idx = (start + hop) % n
            backend = self._backends[idx]
            try:
                result = await backend.request(method, params)
            except RateLimitedError as e:
                last_error = e
                logger.warning(
                    "429 on backend #%d (%s) method=%s; trying next", idx, backend.url, method
                )
                continue

            if idx != self._active_index and self._active_index == start:
                logger.info("Switched RPC backend %d -> %d (%s)", start, idx, backend.url)
                self._active_index = idx
            return result

        raise RotationExhaustedError(
            f"All {self._depth} RPC backend(s) rate-limited for {method}", last_error
        ) from last_error

    async def close(self) -> None:
        for backend in self._backends:
            close = getattr(backend, "close", None)
            if close is not None:
                await close()
