"""
PromiseSeal error taxonomy.

Sealing and issuance fail fast by raising. Verification fails closed:
the verifiers catch these internally and report them as False flags plus
a human-readable detail string.
"""


class PromiseSealError(Exception):
    """Base class for all PromiseSeal errors."""
    code = "PROMISESEAL_ERROR"

    def __init__(self, message: str = ""):
        self.message = message or self.__class__.__name__
        super().__init__(self.message)


class DecryptionError(PromiseSealError):
    """Sealed envelope is malformed or its authentication tag does not verify."""
    code = "DECRYPTION_FAILED"


class MalformedCertificate(PromiseSealError):
    """Certificate cannot be decoded or lacks required fields."""
    code = "MALFORMED_CERTIFICATE"


class MalformedAssertion(PromiseSealError):
    """Assertion material (base64url, client data JSON, public key) cannot be parsed."""
    code = "MALFORMED_ASSERTION"


class ChallengeMismatch(PromiseSealError):
    """Signed challenge does not match the challenge derived from the content."""
    code = "CHALLENGE_MISMATCH"


class SignatureInvalid(PromiseSealError):
    """Assertion signature does not verify under the registered public key."""
    code = "SIGNATURE_INVALID"


class LifecycleError(PromiseSealError):
    """A promise lifecycle step was attempted out of order."""
    code = "LIFECYCLE_ORDER"
