"""
Software authenticator for tests.

Produces genuine WebAuthn assertions (ES256, ES384, RS256, EdDSA) over a given
challenge, the way a platform authenticator would after a successful
biometric check.
"""

import hashlib
import json
import struct

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa
from nacl.signing import SigningKey

from promiseseal.util import b64url_encode

FLAGS_UP_UV = 0x05

_EC_CURVES = {
    "ES256": (ec.SECP256R1, hashes.SHA256),
    "ES384": (ec.SECP384R1, hashes.SHA384),
}


class SoftwareAuthenticator:
    def __init__(self, algorithm: str = "ES256", rp_id: str = "localhost", credential_id: bytes = b"cred-0001"):
        self.algorithm = algorithm
        self.rp_id = rp_id
        self.credential_id = b64url_encode(credential_id)
        self.sign_count = 0

        if algorithm in _EC_CURVES:
            self._key = ec.generate_private_key(_EC_CURVES[algorithm][0]())
            public_key = self._key.public_key()
        elif algorithm == "RS256":
            self._key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
            public_key = self._key.public_key()
        elif algorithm == "EdDSA":
            self._key = SigningKey.generate()
            public_key = ed25519.Ed25519PublicKey.from_public_bytes(bytes(self._key.verify_key))
        else:
            raise ValueError(f"unsupported algorithm {algorithm}")

        self.public_key_pem = public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode('ascii')

    def _sign(self, message: bytes) -> bytes:
        if self.algorithm in _EC_CURVES:
            return self._key.sign(message, ec.ECDSA(_EC_CURVES[self.algorithm][1]()))
        if self.algorithm == "RS256":
            return self._key.sign(message, padding.PKCS1v15(), hashes.SHA256())
        return self._key.sign(message).signature

    def get_assertion(
        self,
        challenge: str,
        origin: str = None,
        type_: str = "webauthn.get",
        user_handle: str = None
    ) -> dict:
        """Return the wire form of an assertion over challenge."""
        self.sign_count += 1
        client_data = json.dumps({
            "type": type_,
            "challenge": challenge,
            "origin": origin or f"https://{self.rp_id}",
            "crossOrigin": False,
        }).encode('utf-8')
        auth_data = (
            hashlib.sha256(self.rp_id.encode('utf-8')).digest()
            + bytes([FLAGS_UP_UV])
            + struct.pack(">I", self.sign_count)
        )
        signature = self._sign(auth_data + hashlib.sha256(client_data).digest())
        return {
            "credentialId": self.credential_id,
            "clientDataJSON": b64url_encode(client_data),
            "authenticatorData": b64url_encode(auth_data),
            "signature": b64url_encode(signature),
            "userHandle": user_handle,
        }


def make_promise(**overrides) -> dict:
    promise = {
        "id": "promise-42",
        "title": "Rent",
        "content": "Pay $500 by 2025-03-01",
        "deliveryDate": "2025-03-01",
        "createdAt": "2025-02-01T10:00:00Z",
        "creator": {"id": "user-7", "username": "alice"},
    }
    promise.update(overrides)
    return promise
