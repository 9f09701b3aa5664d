"""
PromiseSeal Signed-Promise Artifacts

A signed-promise artifact is a self-contained JSON file: the promise facts,
the authenticator assertion over their challenge, and the credential public
key. Anyone holding the file can verify it offline.

Downloaded files come in two shapes, told apart by an explicit "kind"
discriminator rather than by sniffing for fields:

    "signed-promise"  full offline verification (challenge + assertion)
    "promise-record"  plain record carrying only the stored fingerprint;
                      verified against the backing store
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from . import config
from .challenge import PromiseSnapshot, creator_id_of, derive_challenge
from .sealing import seal_content
from .util import constant_time_compare, now_ms
from .webauthn import Assertion, verify_assertion

KIND_SIGNED = "signed-promise"
KIND_RECORD = "promise-record"

FingerprintLookup = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class PromiseArtifact:
    """Downloadable signed promise."""
    id: str
    title: str
    content: str
    delivery_date: str
    created_at: Optional[str]
    creator: Dict[str, str]
    encrypted_content: str
    signature: Assertion
    public_key: str
    challenge: str
    rp_id: str

    def snapshot(self) -> PromiseSnapshot:
        return PromiseSnapshot(
            id=self.id,
            title=self.title,
            content=self.content,
            delivery_date=self.delivery_date,
            creator_id=self.creator["id"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": KIND_SIGNED,
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "deliveryDate": self.delivery_date,
            "createdAt": self.created_at,
            "creator": dict(self.creator),
            "encryptedContent": self.encrypted_content,
            "signature": self.signature.to_dict(),
            "publicKey": self.public_key,
            "challenge": self.challenge,
            "rpId": self.rp_id,
        }


@dataclass
class ArtifactVerification:
    """Composite verification result. Never carries decrypted content."""
    is_valid: bool = False
    is_signature_valid: bool = False
    is_challenge_valid: bool = False
    is_client_data_valid: bool = False
    is_data_intact: bool = False
    creator: str = "Unknown"
    kind: Optional[str] = None
    is_fingerprint_valid: Optional[bool] = None
    error_details: Optional[str] = None
    failed_checks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "isValid": self.is_valid,
            "isSignatureValid": self.is_signature_valid,
            "isChallengeValid": self.is_challenge_valid,
            "isClientDataValid": self.is_client_data_valid,
            "isDataIntact": self.is_data_intact,
            "creator": self.creator,
            "kind": self.kind,
        }
        if self.is_fingerprint_valid is not None:
            result["isFingerprintValid"] = self.is_fingerprint_valid
        if self.error_details is not None:
            result["errorDetails"] = self.error_details
        return result


def artifact_filename(title: str, promise_id: str) -> str:
    """Download file name: promise-<title, non-alphanumerics as _>-<id>.json"""
    return f"promise-{re.sub(r'[^a-zA-Z0-9]', '_', title)}-{promise_id}.json"


def _creator_of(promise: Mapping[str, Any]) -> Dict[str, str]:
    creator = promise.get("creator")
    if isinstance(creator, Mapping) and "id" in creator:
        username = creator.get("username", "")
    else:
        username = promise.get("creatorUsername", "")
    return {"id": creator_id_of(promise), "username": username}


def build_artifact(
    promise: Mapping[str, Any],
    assertion: Any,
    public_key: str,
    challenge: str,
    rp_id: Optional[str] = None,
    clock: Callable[[], int] = now_ms
) -> PromiseArtifact:
    """
    Assemble a signed-promise artifact.

    The content is additionally sealed for archival under a key derived
    from "<promiseId>-<creatorId>-<timestamp>"; the plaintext content stays
    in the artifact for display and for challenge recomputation.

    Args:
        promise: Promise record (id, title, content, deliveryDate, createdAt,
            and creator {id, username} or creatorId)
        assertion: Assertion or its wire dict
        public_key: Credential public key PEM
        challenge: Challenge the assertion was produced over

    Raises:
        KeyError / ValueError: promise record lacks snapshot fields
        MalformedAssertion: assertion lacks signed fields
    """
    if not isinstance(assertion, Assertion):
        assertion = Assertion.from_dict(assertion)

    creator = _creator_of(promise)
    snapshot = PromiseSnapshot.from_mapping({**promise, "creatorId": creator["id"]})
    archival_key = f"{snapshot.id}-{snapshot.creator_id}-{clock()}"

    created_at = promise.get("createdAt")
    return PromiseArtifact(
        id=snapshot.id,
        title=snapshot.title,
        content=snapshot.content,
        delivery_date=snapshot.delivery_date,
        created_at=str(created_at) if created_at is not None else None,
        creator=creator,
        encrypted_content=seal_content(snapshot.content, archival_key),
        signature=assertion,
        public_key=public_key,
        challenge=challenge,
        rp_id=rp_id if rp_id is not None else config.RP_ID,
    )


def _missing_signed_fields(doc: Mapping[str, Any]) -> List[str]:
    missing = [
        name for name in ("id", "title", "content", "deliveryDate", "publicKey", "challenge", "rpId")
        if not isinstance(doc.get(name), str)
    ]
    creator = doc.get("creator")
    if not isinstance(creator, Mapping) or not isinstance(creator.get("id"), str):
        missing.append("creator.id")
    signature = doc.get("signature")
    if not isinstance(signature, Mapping):
        missing.append("signature")
    else:
        missing.extend(
            f"signature.{name}"
            for name in ("clientDataJSON", "authenticatorData", "signature")
            if not isinstance(signature.get(name), str)
        )
    return missing


def _creator_name(doc: Any) -> str:
    creator = doc.get("creator") if isinstance(doc, Mapping) else None
    if isinstance(creator, Mapping) and isinstance(creator.get("username"), str) and creator["username"]:
        return creator["username"]
    return "Unknown"


def verify_artifact(document: Any) -> ArtifactVerification:
    """
    Verify a signed-promise artifact offline.

    1. is_data_intact: the document carries every required field
    2. recompute the challenge from id/title/content/deliveryDate/creator.id
    3. is_challenge_valid: stored challenge equals the recomputed one
    4. assertion check against the stored challenge and public key
    5. is_valid: all of the above

    Never raises; structural failures come back as is_valid=False with
    error_details naming the failed checks.
    """
    result = ArtifactVerification(kind=KIND_SIGNED, creator=_creator_name(document))

    if not isinstance(document, Mapping):
        result.failed_checks = ["data_intact"]
        result.error_details = "Artifact is not a JSON object"
        return result

    missing = _missing_signed_fields(document)
    if missing:
        result.failed_checks = ["data_intact"]
        result.error_details = f"Artifact missing or invalid fields: {', '.join(missing)}"
        return result
    result.is_data_intact = True

    try:
        expected = derive_challenge(PromiseSnapshot.from_mapping({
            "id": document["id"],
            "title": document["title"],
            "content": document["content"],
            "deliveryDate": document["deliveryDate"],
            "creatorId": document["creator"]["id"],
        }))
        result.is_challenge_valid = constant_time_compare(document["challenge"], expected)

        check = verify_assertion(
            document["signature"],
            document["publicKey"],
            document["challenge"],
            rp_id=document["rpId"],
        )
    except Exception as e:
        result.is_data_intact = False
        result.is_challenge_valid = False
        result.failed_checks = ["verification_error"]
        result.error_details = f"Verification failed: {e}"
        return result

    result.is_client_data_valid = check.is_client_data_valid
    result.is_signature_valid = check.is_signature_valid

    failed = []
    if not result.is_challenge_valid:
        failed.append("challenge")
    if not result.is_client_data_valid:
        failed.append("client_data")
    if not result.is_signature_valid:
        failed.append("signature")
    result.failed_checks = failed
    result.is_valid = not failed and result.is_data_intact

    if failed:
        details = f"Failed checks: {', '.join(failed)}"
        if check.error:
            details += f" ({check.error})"
        result.error_details = details
    return result


def build_record_document(
    promise: Mapping[str, Any],
    fingerprint: str,
    encrypted_data: str,
    certificates: Optional[List[Any]] = None,
    recipient: Optional[Mapping[str, Any]] = None,
    metadata: Optional[Mapping[str, Any]] = None
) -> Dict[str, Any]:
    """
    Build the plain downloadable record of a promise.

    It carries the stored fingerprint hash and sealed envelope but no
    assertion, so it can only be verified against the backing store.
    """
    creator = _creator_of(promise)
    return {
        "kind": KIND_RECORD,
        "id": promise["id"],
        "title": promise["title"],
        "content": promise["content"],
        "creator": creator,
        "recipient": dict(recipient) if recipient else None,
        "deliveryDate": promise.get("deliveryDate"),
        "createdAt": promise.get("createdAt"),
        "certificates": list(certificates or []),
        "verification": {
            "fingerprint": fingerprint,
            "encryptedData": encrypted_data,
        },
        "metadata": dict(metadata or {}),
    }


def verify_record(
    document: Mapping[str, Any],
    fingerprint_lookup: Optional[FingerprintLookup]
) -> ArtifactVerification:
    """
    Verify a plain record by comparing its fingerprint with the stored one.

    Signature and challenge flags stay False: a record carries neither.
    """
    result = ArtifactVerification(kind=KIND_RECORD, creator=_creator_name(document))

    verification = document.get("verification")
    fingerprint = verification.get("fingerprint") if isinstance(verification, Mapping) else None
    promise_id = document.get("id")
    if not isinstance(fingerprint, str) or not isinstance(promise_id, str):
        result.is_data_intact = True
        result.failed_checks = ["fingerprint"]
        result.error_details = "Missing verification data in promise file"
        return result

    if fingerprint_lookup is None:
        result.is_data_intact = True
        result.failed_checks = ["fingerprint"]
        result.error_details = "No promise store available to verify a plain record"
        return result

    try:
        stored = fingerprint_lookup(promise_id)
    except Exception as e:
        result.failed_checks = ["lookup"]
        result.error_details = f"Promise lookup failed: {e}"
        return result

    if stored is None:
        result.failed_checks = ["not_found"]
        result.error_details = "Promise not found in database"
        return result

    result.is_data_intact = True
    result.is_fingerprint_valid = isinstance(stored, str) and constant_time_compare(stored, fingerprint)
    result.is_valid = result.is_fingerprint_valid
    if not result.is_valid:
        result.failed_checks = ["fingerprint"]
        result.error_details = "Promise fingerprint does not match database record"
    return result


def verify_document(
    document: Any,
    fingerprint_lookup: Optional[FingerprintLookup] = None
) -> ArtifactVerification:
    """
    Verification entry point for any downloaded promise file.

    Dispatches on the "kind" discriminator; an unknown or missing kind is
    reported as invalid rather than guessed.
    """
    kind = document.get("kind") if isinstance(document, Mapping) else None
    if kind == KIND_SIGNED:
        return verify_artifact(document)
    if kind == KIND_RECORD:
        return verify_record(document, fingerprint_lookup)

    return ArtifactVerification(
        kind=kind if isinstance(kind, str) else None,
        creator=_creator_name(document),
        failed_checks=["kind"],
        error_details=f"Unknown promise file kind: {kind!r}",
    )
