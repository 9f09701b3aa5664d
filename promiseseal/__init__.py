"""
PromiseSeal Reference Implementation

Version: 1.0.0

Binds a promise to the exact content it was signed over.

A promise snapshot (id, title, content, delivery date, creator) is hashed
into a WebAuthn challenge; the creator's authenticator signs it; the result
is a self-contained artifact anyone can verify offline:

    challenge = base64url(SHA256(canonical_json(snapshot)))

Editing any snapshot field after signing makes the recomputed challenge
diverge from the signed one, and verification fails.

Usage:
    from promiseseal import (
        PromiseSnapshot,
        derive_challenge,
        build_artifact,
        verify_document,
    )

    snapshot = PromiseSnapshot.from_mapping(promise)
    challenge = derive_challenge(snapshot)

    # ... authenticator signs `challenge`, producing `assertion` ...

    artifact = build_artifact(promise, assertion, public_key_pem, challenge)
    result = verify_document(artifact.to_dict())

    if result.is_valid:
        # signature, challenge and client data all check out
        ...
    else:
        print(result.error_details)
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import (
    sha256_bytes,
    sha256_hex,
    canonical_hash,
    fingerprint_hash,
)

# Errors
from .errors import (
    PromiseSealError,
    DecryptionError,
    MalformedCertificate,
    MalformedAssertion,
    ChallengeMismatch,
    SignatureInvalid,
    LifecycleError,
)

# Sealing
from .sealing import (
    ContentSealer,
    SealedPayload,
    seal,
    open_envelope,
    seal_content,
    open_content,
)

# Challenges
from .challenge import PromiseSnapshot, derive_challenge
from .registry import ChallengeRegistry

# Certificates
from .certificate import (
    CertificateAuthority,
    CertificateRecord,
    issue_certificate,
    verify_certificate,
)

# Keys and assertions
from .keys import PromiseKeyPair, generate_promise_keypair, load_public_key
from .webauthn import (
    Assertion,
    AssertionCheck,
    AuthenticatorData,
    parse_authenticator_data,
    verify_assertion,
)

# Artifacts
from .artifact import (
    PromiseArtifact,
    ArtifactVerification,
    build_artifact,
    verify_artifact,
    build_record_document,
    verify_record,
    verify_document,
    artifact_filename,
)

# Lifecycle
from .lifecycle import PromiseLifecycle, PromiseState


__all__ = [
    # Version
    "__version__",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",

    # Hashing
    "sha256_bytes",
    "sha256_hex",
    "canonical_hash",
    "fingerprint_hash",

    # Errors
    "PromiseSealError",
    "DecryptionError",
    "MalformedCertificate",
    "MalformedAssertion",
    "ChallengeMismatch",
    "SignatureInvalid",
    "LifecycleError",

    # Sealing
    "ContentSealer",
    "SealedPayload",
    "seal",
    "open_envelope",
    "seal_content",
    "open_content",

    # Challenges
    "PromiseSnapshot",
    "derive_challenge",
    "ChallengeRegistry",

    # Certificates
    "CertificateAuthority",
    "CertificateRecord",
    "issue_certificate",
    "verify_certificate",

    # Keys and assertions
    "PromiseKeyPair",
    "generate_promise_keypair",
    "load_public_key",
    "Assertion",
    "AssertionCheck",
    "AuthenticatorData",
    "parse_authenticator_data",
    "verify_assertion",

    # Artifacts
    "PromiseArtifact",
    "ArtifactVerification",
    "build_artifact",
    "verify_artifact",
    "build_record_document",
    "verify_record",
    "verify_document",
    "artifact_filename",

    # Lifecycle
    "PromiseLifecycle",
    "PromiseState",
]
