"""
PromiseSeal Content Sealing

AES-256-GCM envelopes for a promise's sensitive payload.

Known limitation: the symmetric key travels inside the envelope it protects.
Anyone holding the envelope can open it, so the envelope gives tamper
evidence (the GCM tag) and opacity, not confidentiality. Confidentiality
requires a key the verifier does not also receive, e.g. a server-held secret.
"""

import binascii
import json
import secrets
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .canonicalization import canonicalize
from .errors import DecryptionError
from .hashing import sha256_bytes
from .util import b64d, b64e, hex_decode, now_ms

ASSOCIATED_DATA = b"promise-auth-context"
KEY_BYTES = 32
IV_BYTES = 16
TAG_BYTES = 16

_ENVELOPE_FIELDS = ("key", "iv", "authTag", "ciphertext")
_PAYLOAD_FIELDS = ("content", "privateKeyMaterial", "fingerprint", "timestamp")


@dataclass(frozen=True)
class SealedPayload:
    """Plaintext recovered from a sealed envelope."""
    content: str
    private_key_material: str
    fingerprint: str
    timestamp: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "content": self.content,
            "privateKeyMaterial": self.private_key_material,
            "fingerprint": self.fingerprint,
            "timestamp": self.timestamp,
        }


def _encrypt(key: bytes, iv: bytes, plaintext: bytes, aad: Optional[bytes]):
    sealed = AESGCM(key).encrypt(iv, plaintext, aad)
    return sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]


def _decrypt(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes, aad: Optional[bytes]) -> bytes:
    if len(key) != KEY_BYTES:
        raise DecryptionError("envelope key has wrong length")
    if len(tag) != TAG_BYTES:
        raise DecryptionError("authentication tag has wrong length")
    try:
        return AESGCM(key).decrypt(iv, ciphertext + tag, aad)
    except InvalidTag:
        raise DecryptionError("authentication tag mismatch")
    except ValueError as e:
        raise DecryptionError(f"invalid cipher parameters: {e}")


class ContentSealer:
    """
    Seals and opens promise envelopes.

    Each seal() call draws a fresh key and IV, so sealing the same content
    twice yields unrelated envelopes.
    """

    def __init__(
        self,
        clock: Callable[[], int] = now_ms,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes
    ):
        self._clock = clock
        self._random_bytes = random_bytes

    def seal(self, content: str, private_key_material: str, fingerprint_token: str) -> str:
        """
        Encrypt content, private key material and fingerprint token.

        Returns:
            base64(JSON{key, iv, authTag, ciphertext}) with hex values
        """
        payload = {
            "content": content,
            "privateKeyMaterial": private_key_material,
            "fingerprint": fingerprint_token,
            "timestamp": self._clock(),
        }
        key = self._random_bytes(KEY_BYTES)
        iv = self._random_bytes(IV_BYTES)
        ciphertext, tag = _encrypt(key, iv, canonicalize(payload), ASSOCIATED_DATA)

        envelope = {
            "key": key.hex(),
            "iv": iv.hex(),
            "authTag": tag.hex(),
            "ciphertext": ciphertext.hex(),
        }
        return b64e(json.dumps(envelope, separators=(',', ':')).encode('utf-8'))

    def open(self, envelope: str) -> SealedPayload:
        """
        Decode and decrypt an envelope.

        Raises:
            DecryptionError: malformed envelope, failed tag, or bad plaintext
        """
        try:
            package = json.loads(b64d(envelope).decode('utf-8'))
        except (binascii.Error, ValueError, TypeError, AttributeError, RecursionError) as e:
            raise DecryptionError(f"envelope is not base64 JSON: {e}")

        if not isinstance(package, dict):
            raise DecryptionError("envelope must be a JSON object")
        missing = [f for f in _ENVELOPE_FIELDS if not isinstance(package.get(f), str)]
        if missing:
            raise DecryptionError(f"envelope missing fields: {', '.join(missing)}")

        try:
            key = hex_decode(package["key"])
            iv = hex_decode(package["iv"])
            tag = hex_decode(package["authTag"])
            ciphertext = hex_decode(package["ciphertext"])
        except (binascii.Error, TypeError) as e:
            raise DecryptionError(f"envelope field is not hex: {e}")

        plaintext = _decrypt(key, iv, ciphertext, tag, ASSOCIATED_DATA)

        try:
            data = json.loads(plaintext.decode('utf-8'))
        except (ValueError, RecursionError) as e:
            raise DecryptionError(f"decrypted payload is not JSON: {e}")
        if not isinstance(data, dict) or any(f not in data for f in _PAYLOAD_FIELDS):
            raise DecryptionError("decrypted payload is missing fields")

        return SealedPayload(
            content=data["content"],
            private_key_material=data["privateKeyMaterial"],
            fingerprint=data["fingerprint"],
            timestamp=data["timestamp"],
        )


def seal_content(content: str, key_material: str) -> str:
    """
    Content-only seal used for artifact archival.

    The AES key is SHA256(key_material); no associated data.

    Returns:
        JSON{encrypted, iv, authTag} with hex values
    """
    iv = secrets.token_bytes(IV_BYTES)
    ciphertext, tag = _encrypt(sha256_bytes(key_material), iv, content.encode('utf-8'), None)
    return json.dumps({
        "encrypted": ciphertext.hex(),
        "iv": iv.hex(),
        "authTag": tag.hex(),
    }, separators=(',', ':'))


def open_content(blob: str, key_material: str) -> str:
    """Reverse seal_content(); raises DecryptionError on any failure."""
    try:
        package = json.loads(blob)
        ciphertext = hex_decode(package["encrypted"])
        iv = hex_decode(package["iv"])
        tag = hex_decode(package["authTag"])
    except (binascii.Error, ValueError, TypeError, KeyError, RecursionError) as e:
        raise DecryptionError(f"content blob is malformed: {e}")

    plaintext = _decrypt(sha256_bytes(key_material), iv, ciphertext, tag, None)
    try:
        return plaintext.decode('utf-8')
    except UnicodeDecodeError as e:
        raise DecryptionError(f"content is not UTF-8: {e}")


_default_sealer = ContentSealer()


def seal(content: str, private_key_material: str, fingerprint_token: str) -> str:
    """Seal with the module-level sealer."""
    return _default_sealer.seal(content, private_key_material, fingerprint_token)


def open_envelope(envelope: str) -> SealedPayload:
    """Open with the module-level sealer."""
    return _default_sealer.open(envelope)
