"""ABI helpers: topic hashes, function selectors, word decoding."""

from __future__ import annotations

from typing import Any

from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import decode_hex, encode_hex, keccak, to_checksum_address

from vendor_sync.core.exceptions import EventDecodeError

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def event_topic(signature: str) -> str:
    """Canonical event signature → topic0 (``0x``-prefixed keccak hash)."""
    return encode_hex(keccak(text=signature))


def function_selector(signature: str) -> str:
    """Canonical function signature → 4-byte selector (``0x``-prefixed)."""
    return encode_hex(keccak(text=signature)[:4])


def to_bytes(value: str | bytes) -> bytes:
    """Hex string (``0x``...) or raw bytes → bytes."""
    if isinstance(value, bytes):
        return value
    return decode_hex(value) if value not in ("", "0x") else b""


def decode_values(types: list[str], payload: str | bytes) -> tuple[Any, ...]:
    """ABI-decode ``payload`` as ``types``.

    Raises:
        EventDecodeError: payload does not match the given types
    """
    raw = to_bytes(payload)
    try:
        return tuple(decode(types, raw))
    except (DecodingError, ValueError, TypeError) as e:
        raise EventDecodeError(
            f"Failed to decode {types}",
            context={"payload": encode_hex(raw)[:80], "error": str(e)},
        ) from e


def decode_address(payload: str | bytes) -> str:
    """32-byte word (indexed topic or call result) → checksum address."""
    (address,) = decode_values(["address"], payload)
    return to_checksum_address(address)


def normalize_address(address: str) -> str:
    """Any-case hex address → checksum address."""
    try:
        return to_checksum_address(address)
    except ValueError as e:
        raise EventDecodeError(f"Invalid address: {address}", context={"address": address}) from e


def same_address(a: str | None, b: str | None) -> bool:
    """Case-insensitive address comparison."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()
