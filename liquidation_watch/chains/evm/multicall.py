"""Multicall3 batching with per-call failure isolation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence, TypeVar

from ...errors import DecodeError
from .abi import AbiFunction, checksum
from .client import EvmClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

AGGREGATE3 = AbiFunction(
    "aggregate3",
    inputs=("(address,bool,bytes)[]",),
    outputs=("(bool,bytes)[]",),
)


@dataclass(frozen=True)
class Call:
    target: str
    call_data: bytes


class MulticallBatcher:
    """Send many independent calls as one ``aggregate3`` eth_call.

    Every sub-call has ``allowFailure`` set, so one revert only empties its
    own slot. The batch is sent as given; callers split large sets.
    """

    def __init__(self, client: EvmClient, address: str) -> None:
        self._client = client
        self._address = checksum(address)

    async def aggregate(self, calls: Sequence[Call]) -> list[bytes | None]:
        """Return one slot per call: return data, or ``None`` if it reverted."""
        if not calls:
            return []

        data = AGGREGATE3.encode(
            [(checksum(c.target), True, c.call_data) for c in calls]
        )
        raw = await self._client.eth_call(self._address, data)
        (results,) = AGGREGATE3.decode(raw)

        if len(results) != len(calls):
            raise DecodeError(
                f"aggregate3 returned {len(results)} results for {len(calls)} calls"
            )
        return [bytes(ret) if ok else None for ok, ret in results]

    async def map(
        self, calls: Sequence[Call], decoder: Callable[[bytes], T]
    ) -> list[T | None]:
        """Aggregate, then decode each slot independently."""
        raws = await self.aggregate(calls)
        decoded: list[T | None] = []
        for i, raw in enumerate(raws):
            if raw is None:
                decoded.append(None)
                continue
            try:
                decoded.append(decoder(raw))
            except (DecodeError, ValueError) as e:
                logger.warning("Multicall slot %d could not be decoded: %s", i, e)
                decoded.append(None)
        return decoded
