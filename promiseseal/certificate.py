"""
PromiseSeal Certificate Authority

A certificate binds a promise id to its public key and the creator's
fingerprint hash under an HMAC-SHA256 keyed by the authority secret.

The authority key is SHA256(secret). With the default secret this is a
single long-lived key with no rotation; deployments provision their own
through PROMISESEAL_AUTHORITY_SECRET.
"""

import binascii
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from . import config
from .canonicalization import canonicalize
from .errors import MalformedCertificate
from .hashing import hmac_sha256_hex, sha256_bytes
from .util import b64d, b64e, constant_time_compare, now_ms

CERTIFICATE_FIELDS = ("promiseId", "publicKey", "fingerprintHash", "issuedAt", "issuer")


@dataclass(frozen=True)
class CertificateRecord:
    """Decoded certificate: the signed data and its hex HMAC."""
    data: Dict[str, Any]
    signature: str

    @property
    def promise_id(self) -> str:
        return self.data["promiseId"]

    @property
    def issued_at(self) -> int:
        return self.data["issuedAt"]

    def to_dict(self) -> Dict[str, Any]:
        return {"data": dict(self.data), "signature": self.signature}


class CertificateAuthority:
    """
    Issues and verifies promise certificates.

    Args:
        secret: Shared authority secret (default: config.AUTHORITY_SECRET)
        issuer: Issuer name written into every certificate
        clock: Millisecond clock for issuedAt
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        issuer: Optional[str] = None,
        clock: Callable[[], int] = now_ms
    ):
        if secret is None:
            if config.is_production() and config.AUTHORITY_SECRET == config.DEFAULT_AUTHORITY_SECRET:
                raise RuntimeError("PROMISESEAL_AUTHORITY_SECRET must be set in production")
            secret = config.AUTHORITY_SECRET
        self._key = sha256_bytes(secret)
        self.issuer = issuer or config.AUTHORITY_NAME
        self._clock = clock

    def _sign(self, data: Dict[str, Any]) -> str:
        return hmac_sha256_hex(self._key, canonicalize(data))

    def issue(self, promise_id: str, public_key: str, fingerprint_hash: str) -> str:
        """
        Issue a certificate.

        Returns:
            base64(JSON{data, signature})
        """
        data = {
            "promiseId": promise_id,
            "publicKey": public_key,
            "fingerprintHash": fingerprint_hash,
            "issuedAt": self._clock(),
            "issuer": self.issuer,
        }
        cert = {"data": data, "signature": self._sign(data)}
        return b64e(json.dumps(cert, separators=(',', ':')).encode('utf-8'))

    @staticmethod
    def decode(certificate: str) -> CertificateRecord:
        """
        Decode a certificate without checking its signature.

        Raises:
            MalformedCertificate: not base64 JSON, or fields missing
        """
        try:
            cert = json.loads(b64d(certificate).decode('utf-8'))
        except (binascii.Error, ValueError, TypeError, AttributeError, RecursionError) as e:
            raise MalformedCertificate(f"certificate is not base64 JSON: {e}")

        if not isinstance(cert, dict):
            raise MalformedCertificate("certificate must be a JSON object")
        data = cert.get("data")
        signature = cert.get("signature")
        if not isinstance(data, dict) or not isinstance(signature, str):
            raise MalformedCertificate("certificate requires data object and signature string")
        missing = [f for f in CERTIFICATE_FIELDS if f not in data]
        if missing:
            raise MalformedCertificate(f"certificate data missing: {', '.join(missing)}")
        return CertificateRecord(data=data, signature=signature)

    def verify(self, certificate: str, public_key: str) -> bool:
        """
        Verify a certificate for a given public key.

        Fail-closed: any decoding problem, missing field, HMAC mismatch or
        a certificate issued for another key yields False.
        """
        try:
            record = self.decode(certificate)
            expected = self._sign(record.data)
        except (MalformedCertificate, ValueError, RecursionError):
            return False

        if not constant_time_compare(expected, record.signature):
            return False
        return record.data.get("publicKey") == public_key


_default_authority: Optional[CertificateAuthority] = None


def default_authority() -> CertificateAuthority:
    """Process-wide authority built from configuration on first use."""
    global _default_authority
    if _default_authority is None:
        _default_authority = CertificateAuthority()
    return _default_authority


def issue_certificate(promise_id: str, public_key: str, fingerprint_hash: str) -> str:
    return default_authority().issue(promise_id, public_key, fingerprint_hash)


def verify_certificate(certificate: str, public_key: str) -> bool:
    return default_authority().verify(certificate, public_key)
