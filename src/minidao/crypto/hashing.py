"""
Hash functions and utilities for minidao.

Implements SHA-256 hashing used for proposal descriptions, invocation
digests and the audit trail hash chain.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, List, Union

HASH_SIZE = 32


@dataclass(frozen=True)
class Hash:
    """Immutable 32-byte hash value with comparison and string representation."""

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray)) or len(self.value) != HASH_SIZE:
            raise ValueError(f"Hash must be exactly {HASH_SIZE} bytes")

    def __str__(self) -> str:
        return self.value.hex()

    def __repr__(self) -> str:
        return f"Hash('{self.value.hex()}')"

    def __lt__(self, other: "Hash") -> bool:
        return self.value < other.value

    @classmethod
    def from_hex(cls, hex_string: str) -> "Hash":
        """Create a Hash from a hexadecimal string."""
        return cls(bytes.fromhex(hex_string))

    @classmethod
    def zero(cls) -> "Hash":
        """Create a zero hash (all zeros)."""
        return cls(b"\x00" * HASH_SIZE)

    def to_hex(self) -> str:
        """Convert hash to hexadecimal string."""
        return self.value.hex()


class SHA256Hasher:
    """SHA-256 hasher."""

    @staticmethod
    def hash(data: Union[bytes, str]) -> Hash:
        """
        Hash data using SHA-256.

        Args:
            data: Data to hash (bytes or string)

        Returns:
            Hash object containing the SHA-256 hash
        """
        if isinstance(data, str):
            data = data.encode("utf-8")

        return Hash(hashlib.sha256(data).digest())

    @staticmethod
    def hash_list(items: List[Union[bytes, str]]) -> Hash:
        """
        Hash a list of items by concatenating them.

        Args:
            items: List of items to hash

        Returns:
            Hash of the concatenated items
        """
        combined = b""
        for item in items:
            if isinstance(item, str):
                combined += item.encode("utf-8")
            else:
                combined += item

        return SHA256Hasher.hash(combined)

    @staticmethod
    def hash_json(data: Any) -> Hash:
        """
        Hash the canonical JSON encoding of ``data``.

        Keys are sorted and separators are compact so equal structures
        always hash equal. Bytes values are hex encoded.

        Args:
            data: JSON-compatible structure

        Returns:
            Hash of the canonical encoding
        """
        return SHA256Hasher.hash(canonical_json(data))


def canonical_json(data: Any) -> str:
    """Deterministic JSON text for ``data``."""
    return json.dumps(
        data, sort_keys=True, separators=(",", ":"), default=_encode_default
    )


def _encode_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return value.hex()
    if isinstance(value, Hash):
        return value.to_hex()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
