"""EVM read layer: JSON-RPC backends, rotation, ABI helpers and Multicall3."""
from .backend import JsonRpcBackend
from .client import EvmClient
from .multicall import Call, MulticallBatcher
from .rotating import RotatingProvider

__all__ = ["Call", "EvmClient", "JsonRpcBackend", "MulticallBatcher", "RotatingProvider"]
