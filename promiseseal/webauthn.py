"""
PromiseSeal WebAuthn Assertion Verification

Checks an authenticator assertion against an expected challenge and the
credential public key registered with the identity provider.

Per the WebAuthn signing procedure the authenticator signs

    authenticatorData || SHA256(clientDataJSON)

with the credential private key. The three checks reported here are
independent: a verifier can learn that the signature is cryptographically
sound while the challenge it covers is not the one expected.

Signature-counter replay protection is the identity provider's job and is
assumed to have happened before a live assertion reaches this module;
parse_authenticator_data() exposes the counter for that purpose.
"""

import binascii
import json
import struct
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature, encode_dss_signature
from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from . import config
from .errors import MalformedAssertion
from .hashing import sha256_bytes
from .keys import PublicKey, load_public_key
from .util import b64url_decode

CLIENT_DATA_TYPE_GET = "webauthn.get"

# Authenticator data flags
FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04

_EC_HASHES = {
    "secp256r1": hashes.SHA256,
    "secp384r1": hashes.SHA384,
    "secp521r1": hashes.SHA512,
}


@dataclass(frozen=True)
class Assertion:
    """Authenticator assertion; all byte fields are base64url strings."""
    credential_id: str
    client_data_json: str
    authenticator_data: str
    signature: str
    user_handle: Optional[str] = None

    @classmethod
    def from_dict(cls, obj: Mapping[str, Any]) -> 'Assertion':
        """
        Build from the wire form (camelCase keys).

        Raises:
            MalformedAssertion: not an object, or a signed field missing
        """
        if not isinstance(obj, Mapping):
            raise MalformedAssertion("assertion must be an object")
        for name in ("clientDataJSON", "authenticatorData", "signature"):
            if not isinstance(obj.get(name), str) or not obj.get(name):
                raise MalformedAssertion(f"assertion.{name} is required")
        user_handle = obj.get("userHandle")
        return cls(
            credential_id=str(obj.get("credentialId") or ""),
            client_data_json=obj["clientDataJSON"],
            authenticator_data=obj["authenticatorData"],
            signature=obj["signature"],
            user_handle=user_handle if isinstance(user_handle, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "credentialId": self.credential_id,
            "clientDataJSON": self.client_data_json,
            "authenticatorData": self.authenticator_data,
            "signature": self.signature,
            "userHandle": self.user_handle,
        }


@dataclass(frozen=True)
class AuthenticatorData:
    """Fixed-length prefix of the authenticator data structure."""
    rp_id_hash: bytes
    flags: int
    sign_count: int

    @property
    def user_present(self) -> bool:
        return bool(self.flags & FLAG_USER_PRESENT)

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)

    def rp_id_matches(self, rp_id: str) -> bool:
        return self.rp_id_hash == sha256_bytes(rp_id)


@dataclass
class AssertionCheck:
    """Outcome of verify_assertion(); error is set for unparsable input."""
    is_challenge_valid: bool = False
    is_client_data_valid: bool = False
    is_signature_valid: bool = False
    error: Optional[str] = None

    def all_passed(self) -> bool:
        return self.is_challenge_valid and self.is_client_data_valid and self.is_signature_valid

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isChallengeValid": self.is_challenge_valid,
            "isClientDataValid": self.is_client_data_valid,
            "isSignatureValid": self.is_signature_valid,
            "error": self.error,
        }


def parse_authenticator_data(raw: bytes) -> AuthenticatorData:
    """
    Parse rpIdHash (32 bytes), flags (1 byte) and signCount (4 bytes, big endian).

    Raises:
        MalformedAssertion: fewer than 37 bytes
    """
    if len(raw) < 37:
        raise MalformedAssertion("authenticator data shorter than 37 bytes")
    flags = raw[32]
    (sign_count,) = struct.unpack(">I", raw[33:37])
    return AuthenticatorData(rp_id_hash=bytes(raw[:32]), flags=flags, sign_count=sign_count)


def decode_client_data(client_data_json: str) -> Dict[str, Any]:
    """
    Decode base64url clientDataJSON into a dict.

    Raises:
        MalformedAssertion: bad base64url, bad UTF-8/JSON, or not an object
    """
    try:
        client_data = json.loads(b64url_decode(client_data_json).decode('utf-8'))
    except (binascii.Error, ValueError, TypeError, RecursionError) as e:
        raise MalformedAssertion(f"clientDataJSON is not base64url JSON: {e}")
    if not isinstance(client_data, dict):
        raise MalformedAssertion("clientDataJSON must decode to an object")
    return client_data


def _decode_field(name: str, value: str) -> bytes:
    try:
        return b64url_decode(value)
    except (binascii.Error, ValueError, TypeError) as e:
        raise MalformedAssertion(f"{name} is not base64url: {e}")


def _load_key(public_key_pem: str) -> PublicKey:
    try:
        return load_public_key(public_key_pem)
    except ValueError as e:
        raise MalformedAssertion(f"public key is unparsable: {e}")


def _ecdsa_der(signature: bytes, curve: ec.EllipticCurve) -> bytes:
    """Authenticators emit DER; accept raw r||s as a fallback."""
    try:
        decode_dss_signature(signature)
        return signature
    except ValueError:
        pass
    size = (curve.key_size + 7) // 8
    if len(signature) != 2 * size:
        return signature
    r = int.from_bytes(signature[:size], "big")
    s = int.from_bytes(signature[size:], "big")
    return encode_dss_signature(r, s)


def verify_signature(public_key: PublicKey, message: bytes, signature: bytes) -> bool:
    """
    Verify a signature with the algorithm implied by the key type.

    EC keys use ECDSA with the curve's matching SHA-2 hash, RSA keys use
    PKCS#1 v1.5 with SHA-256, Ed25519 keys use PyNaCl over the raw message.
    """
    try:
        if isinstance(public_key, ed25519.Ed25519PublicKey):
            raw = public_key.public_bytes(
                encoding=serialization.Encoding.Raw,
                format=serialization.PublicFormat.Raw,
            )
            VerifyKey(raw).verify(message, signature)
            return True
        if isinstance(public_key, ec.EllipticCurvePublicKey):
            hash_cls = _EC_HASHES.get(public_key.curve.name, hashes.SHA256)
            public_key.verify(_ecdsa_der(signature, public_key.curve), message, ec.ECDSA(hash_cls()))
            return True
        if isinstance(public_key, rsa.RSAPublicKey):
            public_key.verify(signature, message, padding.PKCS1v15(), hashes.SHA256())
            return True
    except (InvalidSignature, BadSignatureError, ValueError):
        return False
    return False


def verify_assertion(
    assertion: Union[Assertion, Mapping[str, Any]],
    public_key_pem: str,
    expected_challenge: str,
    rp_id: Optional[str] = None
) -> AssertionCheck:
    """
    Verify an assertion.

    1. Decode clientDataJSON (base64url -> UTF-8 JSON); type must be webauthn.get
    2. is_challenge_valid: clientData.challenge == expected_challenge
    3. is_client_data_valid: challenge valid, type correct, origin contains rp_id
    4. signed message: authenticatorData || SHA256(clientDataJSON bytes)
    5. is_signature_valid: asymmetric verification under the registered key

    Never raises. Unparsable input returns all False with error set.
    """
    rp_id = rp_id if rp_id is not None else config.RP_ID

    try:
        if not isinstance(assertion, Assertion):
            assertion = Assertion.from_dict(assertion)
        client_data_bytes = _decode_field("clientDataJSON", assertion.client_data_json)
        client_data = decode_client_data(assertion.client_data_json)
        authenticator_data = _decode_field("authenticatorData", assertion.authenticator_data)
        signature = _decode_field("signature", assertion.signature)
        public_key = _load_key(public_key_pem)
    except MalformedAssertion as e:
        return AssertionCheck(error=e.message)

    is_challenge_valid = (
        isinstance(expected_challenge, str)
        and client_data.get("challenge") == expected_challenge
    )

    origin = client_data.get("origin")
    is_client_data_valid = (
        is_challenge_valid
        and client_data.get("type") == CLIENT_DATA_TYPE_GET
        and isinstance(origin, str)
        and bool(rp_id)
        and rp_id in origin
    )

    signed_message = authenticator_data + sha256_bytes(client_data_bytes)
    is_signature_valid = verify_signature(public_key, signed_message, signature)

    return AssertionCheck(
        is_challenge_valid=is_challenge_valid,
        is_client_data_valid=is_client_data_valid,
        is_signature_valid=is_signature_valid,
    )
