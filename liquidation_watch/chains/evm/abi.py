"""Minimal ABI function descriptors built on eth-abi / eth-utils."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ...errors import DecodeError


@dataclass(frozen=True)
class AbiFunction:
    """A contract function described by its input and output type strings."""

    name: str
    inputs: tuple[str, ...] = ()
    outputs: tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode(self, *args: Any) -> bytes:
        """Calldata: 4-byte selector followed by the ABI-encoded arguments."""
        return self.selector + encode(list(self.inputs), list(args))

    def decode(self, data: bytes) -> tuple[Any, ...]:
        """Decode return data; raises ``DecodeError`` on malformed input."""
        if not data:
            raise DecodeError(f"{self.name}: empty return data")
        try:
            return tuple(decode(list(self.outputs), data))
        except (DecodingError, OverflowError, TypeError, ValueError) as e:
            raise DecodeError(f"{self.name}: {e}") from e


def checksum(address: str) -> str:
    return to_checksum_address(address)


def hex_to_bytes(value: str) -> bytes:
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return bytes.fromhex(value)


def bytes_to_hex(data: bytes) -> str:
    return "0x" + data.hex()
