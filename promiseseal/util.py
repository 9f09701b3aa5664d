"""
Encoding and time helpers shared across PromiseSeal.

WebAuthn material travels as base64url without padding, sealed envelopes and
certificates as standard base64, key and tag material as lowercase hex.
"""

import base64
import binascii
import hmac
import time
from typing import Union


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Strict base64 decode; raises binascii.Error on non-alphabet input."""
    return base64.b64decode(s.encode('ascii'), validate=True)


def b64url_encode(b: bytes) -> str:
    """URL-safe base64 encode bytes to string (no padding)."""
    return base64.urlsafe_b64encode(b).rstrip(b'=').decode('ascii')


def b64url_decode(s: str) -> bytes:
    """URL-safe base64 decode string to bytes (handles missing padding)."""
    if not isinstance(s, str):
        raise TypeError("base64url input must be a string")
    padding = 4 - (len(s) % 4)
    if padding != 4:
        s += '=' * padding
    return base64.b64decode(s.encode('ascii'), altchars=b'-_', validate=True)


def hex_decode(s: str) -> bytes:
    """Decode a hex string; raises binascii.Error or TypeError on bad input."""
    if not isinstance(s, str):
        raise TypeError("hex input must be a string")
    return binascii.unhexlify(s)


def now_ms() -> int:
    """Current Unix time in milliseconds, the timestamp unit used on the wire."""
    return int(time.time() * 1000)


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """
    Compare two strings/bytes in constant time to prevent timing attacks.
    """
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)
