"""Thin eth_* helpers over a read provider."""
from __future__ import annotations

import logging

from ...errors import RpcError
from ...interfaces.read_provider import ReadProvider
from .abi import bytes_to_hex, hex_to_bytes

logger = logging.getLogger(__name__)


class EvmClient:
    """EVM read calls routed through a (rotating) read provider."""

    def __init__(self, provider: ReadProvider, block: str = "latest") -> None:
        self._provider = provider
        self._block = block

    async def eth_call(self, to: str, data: bytes) -> bytes:
        result = await self._provider.perform(
            "eth_call", [{"to": to, "data": bytes_to_hex(data)}, self._block]
        )
        if not isinstance(result, str):
            raise RpcError(f"eth_call returned {type(result).__name__}, expected hex string")
        try:
            return hex_to_bytes(result)
        except ValueError as e:
            raise RpcError(f"Malformed eth_call result: {result[:66]!r}") from e

    async def chain_id(self) -> int:
        result = await self._provider.perform("eth_chainId", [])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise RpcError(f"Malformed eth_chainId result: {result!r}") from e
