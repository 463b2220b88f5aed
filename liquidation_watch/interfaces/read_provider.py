"""Read provider protocols: JSON-RPC backend and rotating provider abstraction."""
from typing import Any, Protocol


class ReadBackend(Protocol):
    """A single network endpoint that performs one attempt per request."""

    url: str

    async def request(self, method: str, params: list[Any]) -> Any: ...


class ReadProvider(Protocol):
    """One logical read interface, possibly backed by several endpoints."""

    async def perform(self, method: str, params: list[Any]) -> Any: ...
