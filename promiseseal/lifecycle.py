"""
PromiseSeal Promise Lifecycle

Drives one promise through the core operations in their only valid order:

    CREATED -> SEALED -> CERTIFIED -> CHALLENGE_ISSUED -> SIGNED -> ARTIFACT_BUILT

Each step is a pure core call plus an audit event. Calling a step from the
wrong state raises LifecycleError; verify() is a read and allowed once the
promise is signed.
"""

from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional

from .artifact import ArtifactVerification, PromiseArtifact, build_artifact, verify_artifact
from .certificate import CertificateAuthority, default_authority
from .challenge import PromiseSnapshot, derive_challenge
from .errors import LifecycleError
from .hashing import fingerprint_hash
from .keys import PromiseKeyPair, generate_promise_keypair
from .logging_config import audit_log
from .registry import ChallengeRegistry
from .sealing import ContentSealer
from .util import now_ms
from .webauthn import Assertion

SIGN_PURPOSE = "sign"


class PromiseState(str, Enum):
    """
    Lifecycle states.

    CREATED: promise record exists, nothing bound yet
    SEALED: envelope holds content, private key and fingerprint token
    CERTIFIED: authority bound promise id, public key and fingerprint hash
    CHALLENGE_ISSUED: content-bound challenge handed to the authenticator
    SIGNED: assertion over the challenge received
    ARTIFACT_BUILT: downloadable signed artifact assembled (terminal)
    """
    CREATED = "CREATED"
    SEALED = "SEALED"
    CERTIFIED = "CERTIFIED"
    CHALLENGE_ISSUED = "CHALLENGE_ISSUED"
    SIGNED = "SIGNED"
    ARTIFACT_BUILT = "ARTIFACT_BUILT"


class PromiseLifecycle:
    """
    One promise moving from creation to a verifiable artifact.

    Args:
        promise: Promise record (id, title, content, deliveryDate, createdAt,
            creator {id, username})
        credential_id: Creator's authenticator credential id
        credential_public_key: Credential public key PEM from the identity provider
        authority: Certificate authority (default: process-wide authority)
        sealer: Content sealer
        registry: Optional challenge registry; when given, the challenge is
            registered on issue and must still be live when the assertion arrives
        keypair_factory: Per-promise key pair generator
        clock: Millisecond clock for artifact timestamps
    """

    def __init__(
        self,
        promise: Mapping[str, Any],
        credential_id: str,
        credential_public_key: str,
        authority: Optional[CertificateAuthority] = None,
        sealer: Optional[ContentSealer] = None,
        registry: Optional[ChallengeRegistry] = None,
        keypair_factory: Callable[[], PromiseKeyPair] = generate_promise_keypair,
        clock: Callable[[], int] = now_ms
    ):
        self.promise = dict(promise)
        self.snapshot = PromiseSnapshot.from_mapping(self.promise)
        self.credential_id = credential_id
        self.credential_public_key = credential_public_key
        self.fingerprint_hash = fingerprint_hash(credential_id)

        self._authority = authority or default_authority()
        self._sealer = sealer or ContentSealer()
        self._registry = registry
        self._keypair_factory = keypair_factory
        self._clock = clock

        self.state = PromiseState.CREATED
        self.keypair: Optional[PromiseKeyPair] = None
        self.envelope: Optional[str] = None
        self.certificate: Optional[str] = None
        self.challenge: Optional[str] = None
        self.assertion: Optional[Assertion] = None
        self.artifact: Optional[PromiseArtifact] = None

    @property
    def promise_id(self) -> str:
        return self.snapshot.id

    def _require(self, *states: PromiseState) -> None:
        if self.state not in states:
            expected = " or ".join(s.value for s in states)
            raise LifecycleError(
                f"promise {self.promise_id} is {self.state.value}, expected {expected}"
            )

    def seal(self) -> str:
        """Generate the promise key pair and seal content, private key and fingerprint."""
        self._require(PromiseState.CREATED)
        self.keypair = self._keypair_factory()
        self.envelope = self._sealer.seal(
            self.snapshot.content,
            self.keypair.private_key_pem,
            self.credential_id,
        )
        self.state = PromiseState.SEALED
        audit_log.promise_sealed(self.promise_id, self.fingerprint_hash)
        return self.envelope

    def certify(self) -> str:
        """Bind promise id, promise public key and fingerprint hash."""
        self._require(PromiseState.SEALED)
        self.certificate = self._authority.issue(
            self.promise_id,
            self.keypair.public_key_pem,
            self.fingerprint_hash,
        )
        record = self._authority.decode(self.certificate)
        self.state = PromiseState.CERTIFIED
        audit_log.certificate_issued(self.promise_id, self._authority.issuer, record.issued_at)
        return self.certificate

    def issue_challenge(self) -> str:
        """Derive the content-bound challenge, registering it when a registry is attached."""
        self._require(PromiseState.CERTIFIED)
        self.challenge = derive_challenge(self.snapshot)
        if self._registry is not None:
            self._registry.issue(self.snapshot.creator_id, self._purpose(), self.challenge)
        self.state = PromiseState.CHALLENGE_ISSUED
        return self.challenge

    def sign(self, assertion: Any) -> Assertion:
        """
        Accept the authenticator's assertion.

        With a registry attached the challenge is consumed here; an expired or
        already used challenge raises LifecycleError and leaves the state as is.
        """
        self._require(PromiseState.CHALLENGE_ISSUED)
        if not isinstance(assertion, Assertion):
            assertion = Assertion.from_dict(assertion)

        if self._registry is not None:
            live = self._registry.consume(self.snapshot.creator_id, self._purpose())
            if live is None or live != self.challenge:
                audit_log.security_event(
                    "signing_challenge_unavailable",
                    severity="medium",
                    promise_id=self.promise_id,
                )
                raise LifecycleError(f"signing challenge for promise {self.promise_id} expired or already used")

        self.assertion = assertion
        self.state = PromiseState.SIGNED
        return assertion

    def build_artifact(self, rp_id: Optional[str] = None) -> PromiseArtifact:
        """Assemble the downloadable signed artifact."""
        self._require(PromiseState.SIGNED)
        self.artifact = build_artifact(
            self.promise,
            self.assertion,
            self.credential_public_key,
            self.challenge,
            rp_id=rp_id,
            clock=self._clock,
        )
        self.state = PromiseState.ARTIFACT_BUILT
        audit_log.artifact_built(self.promise_id, self.challenge)
        return self.artifact

    def verify(self) -> ArtifactVerification:
        """Verify the artifact, building it first when only signed so far."""
        self._require(PromiseState.SIGNED, PromiseState.ARTIFACT_BUILT)
        artifact = self.artifact or build_artifact(
            self.promise,
            self.assertion,
            self.credential_public_key,
            self.challenge,
            clock=self._clock,
        )
        result = verify_artifact(artifact.to_dict())
        audit_log.artifact_verified(self.promise_id, result.kind, result.is_valid, result.failed_checks)
        return result

    def _purpose(self) -> str:
        return f"{SIGN_PURPOSE}:{self.promise_id}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "promiseId": self.promise_id,
            "state": self.state.value,
            "fingerprintHash": self.fingerprint_hash,
            "certificate": self.certificate,
            "challenge": self.challenge,
        }
