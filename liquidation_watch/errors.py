"""Exception hierarchy shared across the read layer, model and services."""
from __future__ import annotations

import asyncio

import aiohttp


class LiquidationWatchError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(LiquidationWatchError, ValueError):
    """Invalid or missing configuration. Fatal at startup."""


class InvalidInputError(LiquidationWatchError, ValueError):
    """Non-positive price, balance or bonus passed to the financial model."""


class DecodeError(LiquidationWatchError, ValueError):
    """Return data could not be decoded into the expected ABI types."""


class RpcError(LiquidationWatchError, RuntimeError):
    """JSON-RPC error payload or unexpected response from a backend."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class RateLimitedError(RpcError):
    """The backend rejected the request with a 429-equivalent status."""

    def __init__(self, message: str, url: str = "", code: int | None = 429) -> None:
        super().__init__(message, code=code)
        self.url = url


class RotationExhaustedError(RpcError):
    """Every backend in one rotation was rate-limited."""

    def __init__(self, message: str, last_error: Exception | None = None) -> None:
        super().__init__(message, code=getattr(last_error, "code", None))
        self.last_error = last_error


class SubgraphError(LiquidationWatchError, RuntimeError):
    """The discovery subgraph returned an HTTP error or GraphQL ``errors``."""


# Failures of one read through the provider, handled as transient.
READ_ERRORS = (RpcError, DecodeError, aiohttp.ClientError, asyncio.TimeoutError)
