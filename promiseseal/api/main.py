from typing import Any, Callable, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request

from .. import __version__, config
from ..artifact import artifact_filename, build_artifact, verify_document
from ..certificate import default_authority
from ..challenge import PromiseSnapshot, derive_challenge
from ..errors import ChallengeMismatch, DecryptionError, PromiseSealError, SignatureInvalid
from ..lifecycle import SIGN_PURPOSE
from ..logging_config import audit_log, configure_logging, set_request_id
from ..registry import ChallengeRegistry
from ..sealing import ContentSealer
from ..util import constant_time_compare
from ..webauthn import verify_assertion
from .models import (
    ArtifactRequest,
    AssertionVerifyRequest,
    CertificateRequest,
    CertificateVerifyRequest,
    ChallengeRequest,
    OpenRequest,
    SealRequest,
    SigningBeginRequest,
    SigningCompleteRequest,
)
from .security import (
    ValidationError,
    sanitize_for_logging,
    validate_assertion,
    validate_base64url,
    validate_hex,
    validate_promise,
    validate_promise_id,
)

app = FastAPI(title="PromiseSeal", version=__version__)

SEALER = ContentSealer()
REGISTRY = ChallengeRegistry()
# Backing-store lookup for plain promise records: promise id -> stored fingerprint hash
FINGERPRINT_LOOKUP: Optional[Callable[[str], Optional[str]]] = None


def set_fingerprint_lookup(lookup: Optional[Callable[[str], Optional[str]]]) -> None:
    global FINGERPRINT_LOOKUP
    FINGERPRINT_LOOKUP = lookup


def _invalid(e: ValidationError):
    audit_log.security_event("request_validation_failed", severity="low", field=e.field)
    return HTTPException(422, {"field": e.field, "message": e.message})


def _failed(e: PromiseSealError, status: int = 400):
    return HTTPException(status, {"code": e.code, "message": e.message})


def _snapshot(promise: Dict[str, Any]) -> PromiseSnapshot:
    try:
        validate_promise(promise)
        return PromiseSnapshot.from_mapping(promise)
    except ValidationError as e:
        raise _invalid(e)
    except (KeyError, ValueError) as e:
        raise _invalid(ValidationError("promise", str(e)))


@app.on_event("startup")
def _startup():
    configure_logging(config.LOG_LEVEL, config.LOG_JSON, config.LOG_FILE)
    checks = config.validate_config()
    failed = [name for name, ok in checks.items() if not ok]
    if failed:
        audit_log.security_event("config_check_failed", severity="high", checks=failed)
    if not checks["authority_secret_provisioned"]:
        raise RuntimeError("PROMISESEAL_AUTHORITY_SECRET must be set in production")


@app.middleware("http")
async def _request_id(request: Request, call_next):
    request_id = set_request_id(request.headers.get("x-request-id"))
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


@app.get("/health")
def health():
    checks = config.validate_config()
    return {
        "status": "ok" if all(checks.values()) else "degraded",
        "version": __version__,
        "env": config.ENV,
        "checks": checks,
        "pending_challenges": len(REGISTRY),
    }


@app.post("/seal")
def seal(req: SealRequest):
    envelope = SEALER.seal(req.content, req.private_key_material, req.fingerprint_token)
    return {"envelope": envelope}


@app.post("/open")
def open_envelope(req: OpenRequest):
    try:
        payload = SEALER.open(req.envelope)
    except DecryptionError as e:
        audit_log.security_event("envelope_open_failed", severity="medium", reason=e.message)
        raise _failed(e)
    return payload.to_dict()


@app.post("/certificates")
def issue_certificate(req: CertificateRequest):
    try:
        validate_promise_id(req.promise_id)
        validate_hex(req.fingerprint_hash, "fingerprint_hash", expected_length=64)
    except ValidationError as e:
        raise _invalid(e)

    authority = default_authority()
    certificate = authority.issue(req.promise_id, req.public_key, req.fingerprint_hash)
    record = authority.decode(certificate)
    audit_log.certificate_issued(req.promise_id, authority.issuer, record.issued_at)
    return {"certificate": certificate, "data": record.data}


@app.post("/certificates/verify")
def verify_certificate(req: CertificateVerifyRequest):
    is_valid = default_authority().verify(req.certificate, req.public_key)
    if not is_valid:
        audit_log.security_event("certificate_rejected", severity="medium")
    return {"isValid": is_valid}


@app.post("/challenge")
def challenge(req: ChallengeRequest):
    snapshot = _snapshot(req.promise)
    return {"challenge": derive_challenge(snapshot), "snapshot": snapshot.to_dict()}


@app.post("/assertions/verify")
def verify_assertion_route(req: AssertionVerifyRequest):
    check = verify_assertion(req.assertion, req.public_key, req.expected_challenge, rp_id=req.rp_id)
    if not check.all_passed():
        audit_log.security_event(
            "assertion_rejected",
            severity="medium",
            **sanitize_for_logging(check.to_dict()),
        )
    return check.to_dict()


@app.post("/artifacts")
def create_artifact(req: ArtifactRequest):
    snapshot = _snapshot(req.promise)
    try:
        validate_assertion(req.assertion)
        validate_base64url(req.challenge, "challenge")
    except ValidationError as e:
        raise _invalid(e)

    artifact = build_artifact(req.promise, req.assertion, req.public_key, req.challenge)
    audit_log.artifact_built(snapshot.id, req.challenge)
    return {
        "filename": artifact_filename(snapshot.title, snapshot.id),
        "artifact": artifact.to_dict(),
    }


@app.post("/verify-promise")
def verify_promise(document: Dict[str, Any] = Body(...)):
    result = verify_document(document, fingerprint_lookup=FINGERPRINT_LOOKUP)
    audit_log.artifact_verified(
        document.get("id") if isinstance(document.get("id"), str) else None,
        result.kind or "unknown",
        result.is_valid,
        result.failed_checks,
    )
    return result.to_dict()


@app.post("/signing/begin")
def signing_begin(req: SigningBeginRequest):
    snapshot = _snapshot(req.promise)
    challenge = REGISTRY.issue(
        snapshot.creator_id,
        f"{SIGN_PURPOSE}:{snapshot.id}",
        derive_challenge(snapshot),
    )
    return {"challenge": challenge, "rpId": config.RP_ID, "timeoutSeconds": config.CHALLENGE_TTL_SECONDS}


@app.post("/signing/complete")
def signing_complete(req: SigningCompleteRequest):
    snapshot = _snapshot(req.promise)
    try:
        validate_assertion(req.assertion)
    except ValidationError as e:
        raise _invalid(e)

    stored = REGISTRY.consume(snapshot.creator_id, f"{SIGN_PURPOSE}:{snapshot.id}")
    if stored is None:
        raise HTTPException(409, {"code": "CHALLENGE_UNAVAILABLE", "message": "challenge expired or already used"})

    if not constant_time_compare(stored, derive_challenge(snapshot)):
        audit_log.security_event("content_changed_during_signing", severity="high", promise_id=snapshot.id)
        raise _failed(ChallengeMismatch("promise changed after the challenge was issued"))

    check = verify_assertion(req.assertion, req.public_key, stored)
    if not check.all_passed():
        audit_log.security_event(
            "signing_assertion_rejected",
            severity="high",
            promise_id=snapshot.id,
            **sanitize_for_logging(check.to_dict()),
        )
        raise _failed(SignatureInvalid(check.error or "assertion did not verify"))

    artifact = build_artifact(req.promise, req.assertion, req.public_key, stored)
    audit_log.artifact_built(snapshot.id, stored)
    return {
        "filename": artifact_filename(snapshot.title, snapshot.id),
        "artifact": artifact.to_dict(),
    }
