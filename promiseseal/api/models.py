from pydantic import BaseModel
from typing import Dict, Any, Optional

class SealRequest(BaseModel):
    content: str
    private_key_material: str
    fingerprint_token: str

class OpenRequest(BaseModel):
    envelope: str

class CertificateRequest(BaseModel):
    promise_id: str
    public_key: str
    fingerprint_hash: str

class CertificateVerifyRequest(BaseModel):
    certificate: str
    public_key: str

class ChallengeRequest(BaseModel):
    promise: Dict[str, Any]

class AssertionVerifyRequest(BaseModel):
    assertion: Dict[str, Any]
    public_key: str
    expected_challenge: str
    rp_id: Optional[str] = None

class ArtifactRequest(BaseModel):
    promise: Dict[str, Any]
    assertion: Dict[str, Any]
    public_key: str
    challenge: str

class SigningBeginRequest(BaseModel):
    promise: Dict[str, Any]

class SigningCompleteRequest(BaseModel):
    promise: Dict[str, Any]
    assertion: Dict[str, Any]
    public_key: str
