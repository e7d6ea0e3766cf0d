"""
Cryptographic primitives for minidao.

This module provides SHA-256 hashing and secp256k1 ECDSA signatures used to
identify ledger accounts and authorize invocations.
"""

from .hashing import HASH_SIZE, Hash, SHA256Hasher, canonical_json
from .signatures import PrivateKey, PublicKey, Signature

__all__ = [
    "Hash",
    "HASH_SIZE",
    "SHA256Hasher",
    "canonical_json",
    "PrivateKey",
    "PublicKey",
    "Signature",
]
