"""
Key handling for PromiseSeal.

Each promise gets its own RSA-2048 key pair at creation time: the private
half is sealed into the promise envelope, the public half is bound into the
promise certificate. Authenticator public keys arrive as PEM from the
identity provider and are loaded here for signature verification.
"""

from dataclasses import dataclass
from typing import Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

PublicKey = Union[ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey]


@dataclass(frozen=True)
class PromiseKeyPair:
    """PEM-encoded per-promise key pair."""
    public_key_pem: str
    private_key_pem: str


def generate_promise_keypair(key_size: int = 2048) -> PromiseKeyPair:
    """
    Generate an RSA key pair for a new promise.

    Both halves are PKCS#1 PEM ("BEGIN RSA PUBLIC KEY" / "BEGIN RSA PRIVATE KEY").
    """
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=key_size)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.PKCS1,
    )
    return PromiseKeyPair(
        public_key_pem=public_pem.decode('ascii'),
        private_key_pem=private_pem.decode('ascii'),
    )


def load_public_key(pem: str) -> PublicKey:
    """
    Load a PEM public key (SubjectPublicKeyInfo, or PKCS#1 for RSA).

    Raises:
        ValueError: unparsable PEM or an unsupported key type
    """
    if not isinstance(pem, str) or not pem.strip():
        raise ValueError("public key must be a non-empty PEM string")
    try:
        key = serialization.load_pem_public_key(pem.strip().encode('ascii'))
    except UnicodeEncodeError:
        raise ValueError("public key PEM must be ASCII")
    except UnsupportedAlgorithm as e:
        raise ValueError(f"unsupported public key algorithm: {e}")

    if not isinstance(key, (ec.EllipticCurvePublicKey, rsa.RSAPublicKey, ed25519.Ed25519PublicKey)):
        raise ValueError(f"unsupported public key type: {type(key).__name__}")
    return key
