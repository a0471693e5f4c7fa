# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import datetime
from enum import Enum

from pydantic import BaseModel, Field

from common.model.iden3comm import AuthorizationScope


class VerificationType(Enum):
    """Business question the verifier asks about the holder's credential."""

    degree = "degree"
    age = "age"
    cibil = "cibil"
    skill = "skill"
    graduated = "graduated"
    custom = "custom"


class VerificationConditions(BaseModel):
    """Parameters of the verification. Which ones are required depends on the `VerificationType`."""

    degree_type: str | None = None
    min_age: int | None = None
    max_age: int | None = None
    min_score: int | None = None
    max_score: int | None = None
    required_skills: list[str] | None = None
    """Every skill is asked in its own scope."""
    is_graduated: bool | None = None
    custom_query: dict | None = None
    """Used as `credentialSubject` query as is, e.g. `{"grade": {"$eq": "A"}}`."""


class VerificationRequest(BaseModel):
    verification_type: VerificationType
    conditions: VerificationConditions = Field(default_factory=VerificationConditions)
    reason: str | None = None
    """Shown to the holder in the wallet. Defaults to `Verification: <type>`."""
    verifier_id: str | None = None
    """Identifies the verifying organisation, sessions can be listed per verifier."""


class ChallengeRequest(BaseModel):
    """Authorization challenge proving that an operator holds a credential at all."""

    reason: str | None = None
    verifier_id: str | None = None


class VerificationStatus(Enum):
    """
    Status of a verification. Only `pending` is not terminal,
    every other status is written once and never changed.
    """

    pending = "pending"
    """The authorization request was created, the wallet has not answered yet."""
    verified = "verified"
    failed = "failed"
    """The proof was unusable or the issuer is not authorized."""
    expired = "expired"
    """No answer within the verification window."""

    @property
    def is_terminal(self) -> bool:
        return self != VerificationStatus.pending


class SessionKind(Enum):
    verification = "verification"
    challenge = "challenge"


class VerificationResult(BaseModel):
    verified: bool
    holder_did: str | None = None
    issuer_did: str | None = None
    issuer_authorized: bool
    """False if the registry denies the issuer or could not be asked."""
    proof_type: str
    disclosed_fields: list[str] = Field(default_factory=list)
    """Credential subject fields the proof makes a statement about. Their values are never disclosed."""
    verified_at: datetime.datetime
    error: str | None = None


class VerificationSession(BaseModel):
    id: str
    kind: SessionKind = SessionKind.verification
    verifier_id: str | None = None
    verification_type: VerificationType | None = None
    conditions: VerificationConditions = Field(default_factory=VerificationConditions)
    scopes: list[AuthorizationScope]
    authorization_request: dict
    status: VerificationStatus = VerificationStatus.pending
    created_at: datetime.datetime
    expires_at: datetime.datetime
    updated_at: datetime.datetime
    result: VerificationResult | None = None

    def is_overdue(self, now: datetime.datetime) -> bool:
        return self.status == VerificationStatus.pending and now > self.expires_at


class OpenVerificationResponse(BaseModel):
    request_id: str
    qr_code_data: str
    deep_link: str
    universal_link: str
    expires_at: datetime.datetime


class VerificationStatusResponse(BaseModel):
    request_id: str
    status: VerificationStatus
    created_at: datetime.datetime
    expires_at: datetime.datetime
    result: VerificationResult | None = None

    @staticmethod
    def from_session(session: VerificationSession) -> "VerificationStatusResponse":
        return VerificationStatusResponse(
            request_id=session.id,
            status=session.status,
            created_at=session.created_at,
            expires_at=session.expires_at,
            result=session.result,
        )


class VerificationStats(BaseModel):
    total: int
    pending: int
    verified: int
    failed: int
    expired: int


class BatchRequirements(BaseModel):
    """Conditions checked against the stored credential subject. Unset conditions always hold."""

    is_graduated: bool | None = None
    min_cibil_score: int | None = None
    """Credentials without a score (-1) never meet a minimum score."""
    skill_set: str | None = None
    """Case insensitive, holds if the skill set of the credential contains it."""


class BatchVerificationItem(BaseModel):
    claim_id: str
    """Claim id or reference id (REF-...) of the credential."""
    requirements: BatchRequirements | None = None


class BatchVerificationRequest(BaseModel):
    verifications: list[BatchVerificationItem] = Field(default_factory=list)


class BatchItemStatus(Enum):
    pending = "pending"
    issued = "issued"
    revoked = "revoked"
    not_found = "not_found"
    error = "error"


class BatchVerificationResult(BaseModel):
    claim_id: str
    verified: bool
    """Issued, issuer authorized and all requirements met."""
    issuer_authorized: bool
    status: BatchItemStatus
    meets_requirements: bool
    holder_name: str | None = None
    skill_set: str | None = None
    error: str | None = None


class BatchVerificationResponse(BaseModel):
    total: int
    verified: int
    failed: int
    results: list[BatchVerificationResult]
