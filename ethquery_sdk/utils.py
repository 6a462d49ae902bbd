"""
Utility functions for the EthQuery SDK.
"""
import re
from typing import Any, Optional, Union

from web3 import Web3

from .exceptions import DecodeError

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
_HEX_RE = re.compile(r"0x[0-9a-fA-F]*")


def keccak256(data: bytes) -> bytes:
    """Keccak-256 digest (not NIST SHA3-256)."""
    return bytes(Web3.keccak(data))


def to_checksum_address(value: Union[str, bytes]) -> str:
    """
    Normalize an address to its EIP-55 checksum form.

    Input is accepted in any letter case; a mixed-case input is not required
    to carry a valid checksum.

    Args:
        value: 0x-prefixed hex string or 20 raw bytes

    Returns:
        Checksummed 0x-prefixed address

    Raises:
        ValueError: If the value is not a 20-byte address
    """
    if isinstance(value, (bytes, bytearray)):
        if len(value) != 20:
            raise ValueError(f"Address must be 20 bytes, got {len(value)}")
        value = "0x" + bytes(value).hex()
    if not isinstance(value, str) or not _ADDRESS_RE.fullmatch(value):
        raise ValueError(f"Invalid address: {value!r}")
    return Web3.to_checksum_address(value.lower())


def address_to_bytes(address: str) -> bytes:
    """Return the 20 raw bytes of a 0x-prefixed address."""
    return bytes.fromhex(to_checksum_address(address)[2:])


def parse_hash(value: Union[str, bytes], name: str = "hash") -> bytes:
    """
    Parse a caller-supplied 32-byte hash.

    Raises:
        ValueError: If the value is not a 32-byte hash
    """
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str) and _HEX_RE.fullmatch(value):
        raw = bytes.fromhex(value[2:]) if len(value) % 2 == 0 else b""
    else:
        raise ValueError(f"Invalid {name}: {value!r}")
    if len(raw) != 32:
        raise ValueError(f"{name} must be 32 bytes, got {value!r}")
    return raw


def format_hex(data: bytes) -> str:
    """Format raw bytes as 0x-prefixed lowercase hex."""
    return "0x" + bytes(data).hex()


def to_quantity(value: int) -> str:
    """Encode a non-negative integer as a JSON-RPC hex quantity."""
    if value < 0:
        raise ValueError(f"Quantity must be non-negative, got {value}")
    return hex(value)


def hex_to_int(value: Any, field: str) -> int:
    """
    Decode a JSON-RPC hex quantity returned by the endpoint.

    Raises:
        DecodeError: If the value is missing or not a hex quantity
    """
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise DecodeError(f"Negative quantity {value}", field=field)
        return value
    if not isinstance(value, str) or not _HEX_RE.fullmatch(value) or value == "0x":
        raise DecodeError(f"Expected hex quantity, got {value!r}", field=field)
    return int(value, 16)


def hex_to_bytes(value: Any, field: str, length: Optional[int] = None) -> bytes:
    """
    Decode a JSON-RPC hex data string returned by the endpoint.

    Args:
        value: 0x-prefixed hex string
        field: Field name used in error context
        length: Required byte length, if fixed

    Raises:
        DecodeError: If the value is not even-length hex or has the wrong length
    """
    if not isinstance(value, str) or not _HEX_RE.fullmatch(value) or len(value) % 2:
        raise DecodeError(f"Expected hex data, got {_truncate(value)!r}", field=field)
    raw = bytes.fromhex(value[2:])
    if length is not None and len(raw) != length:
        raise DecodeError(f"Expected {length} bytes, got {len(raw)}", field=field)
    return raw


def hex_to_address(value: Any, field: str) -> str:
    """Decode an address returned by the endpoint into checksum form."""
    try:
        return to_checksum_address(value)
    except ValueError as e:
        raise DecodeError(str(e), field=field)


def _truncate(value: Any, limit: int = 66) -> Any:
    if isinstance(value, str) and len(value) > limit:
        return value[:limit] + "..."
    return value
