"""
ERC-8004 Registration Utility Module

Hashing and serialization helpers shared by the encoder and the event decoder.

Functions:
    canonical_json: Canonical JSON serialization (bytes)
    keccak256_hex: Keccak-256 hash (hexadecimal)
    keccak256_bytes: Keccak-256 hash (bytes)
    event_topic: topic0 of an event signature
    to_hex_str: Normalize bytes/HexBytes/str to a 0x-prefixed lowercase string

Note:
    Keccak-256 is the Ethereum hash, not NIST SHA3-256.
"""

from typing import Any, Dict, Union
import json

from Crypto.Hash import keccak


def canonical_json(payload: Dict[str, Any]) -> bytes:
    """
    Serialize dictionary to canonical JSON bytes.

    Keys sorted, compact separators, UTF-8 with non-ASCII characters kept.

    Example:
        >>> canonical_json({"b": 2, "a": 1})
        b'{"a":1,"b":2}'
    """
    return json.dumps(
        payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False
    ).encode("utf-8")


def keccak256_hex(payload: bytes) -> str:
    """
    Calculate Keccak-256 hash value (0x-prefixed hex).

    Example:
        >>> keccak256_hex(b"hello")
        '0x1c8aff950685c2ed4bc3174f3472287b56d9517b9c948127319a09a7a36deac8'
    """
    hasher = keccak.new(digest_bits=256)
    hasher.update(payload)
    return "0x" + hasher.hexdigest()


def keccak256_bytes(payload: bytes) -> bytes:
    """Calculate Keccak-256 hash value (32 raw bytes)."""
    hasher = keccak.new(digest_bits=256)
    hasher.update(payload)
    return hasher.digest()


def event_topic(signature: str) -> str:
    """
    Compute topic0 for an event signature.

    Args:
        signature: Canonical signature, e.g. "Registered(uint256,string,address)"

    Returns:
        0x-prefixed lowercase hex topic
    """
    return keccak256_hex(signature.encode("ascii"))


def to_hex_str(value: Union[bytes, bytearray, str]) -> str:
    """
    Normalize a hex-ish value to a 0x-prefixed lowercase string.

    Accepts raw bytes (including HexBytes) and hex strings with or without
    prefix.

    Example:
        >>> to_hex_str(b"\\x01\\xab")
        '0x01ab'
        >>> to_hex_str("ABCD")
        '0xabcd'
    """
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    cleaned = value.lower()
    if cleaned.startswith("0x"):
        cleaned = cleaned[2:]
    return "0x" + cleaned
