"""
PromiseSeal Hashing

All digests are SHA-256. Hex output is lowercase; challenges use base64url.
"""

import hashlib
import hmac
from typing import Any, Union

from .canonicalization import canonicalize


def sha256_bytes(data: Union[bytes, str]) -> bytes:
    """Compute SHA-256 hash and return raw digest bytes."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as lowercase hex string."""
    return sha256_bytes(data).hex()


def canonical_hash(obj: Any) -> bytes:
    """SHA-256 over the canonical JSON form of obj."""
    return sha256_bytes(canonicalize(obj))


def fingerprint_hash(credential_id: str) -> str:
    """
    Fingerprint hash stored alongside a promise.

    Deterministic over the authenticator credential identifier:
    the same credential id always yields the same hex digest.
    """
    return sha256_hex(credential_id)


def hmac_sha256_hex(key: bytes, message: bytes) -> str:
    """HMAC-SHA256 of message under key, lowercase hex."""
    return hmac.new(key, message, hashlib.sha256).hexdigest()
