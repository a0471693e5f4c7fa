# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import datetime
from enum import Enum

from pydantic import BaseModel, Field


class ClaimStatus(Enum):
    """
    Lifecycle of a claim. Transitions only move forward:
    pending -> issued, pending -> revoked, issued -> revoked
    """

    pending = "pending"
    """Offer created, the wallet has not fetched the credential yet."""
    issued = "issued"
    """The wallet fetched the credential."""
    revoked = "revoked"
    """Revoked by the issuer. Terminal."""

    def can_transition_to(self, target: "ClaimStatus") -> bool:
        return target in _CLAIM_TRANSITIONS[self]


_CLAIM_TRANSITIONS: dict[ClaimStatus, set[ClaimStatus]] = {
    ClaimStatus.pending: {ClaimStatus.issued, ClaimStatus.revoked},
    ClaimStatus.issued: {ClaimStatus.revoked},
    ClaimStatus.revoked: set(),
}


class CreateClaimRequest(BaseModel):
    """
    Data of the person the credential is issued to.
    All fields are validated together so every problem is reported at once.
    """

    holder_did: str | None = None
    """Wallet identifier of the holder, e.g. did:polygonid:polygon:amoy:..."""
    full_name: str | None = None
    national_id: str | None = None
    """12 digit national id (Aadhaar). Only its salted hash is kept."""
    date_of_birth: str | None = None
    """ISO date YYYY-MM-DD"""
    skill_set: str | None = None
    is_graduated: bool | None = None
    cibil_score: int | None = None
    """300 - 900, -1 if not applicable."""
    institution_name: str = ""
    degree_title: str = ""
    completion_year: int | None = None
    grade: str = ""


class CredentialSubject(BaseModel):
    """Attributes of the issued credential. Field names follow the credential schema."""

    id: str
    """Holder identifier"""
    type: str
    referenceId: str
    nationalIdHash: str
    fullName: str
    dateOfBirth: int
    """Unix timestamp (seconds) of midnight UTC of the birthday. Age scopes compare against it."""
    skillSet: str
    isGraduated: bool
    cibilScore: int = -1
    institutionName: str = ""
    degreeTitle: str = ""
    completionYear: int = 0
    grade: str = ""


class Claim(BaseModel):
    """One credential issuance attempt as persisted."""

    id: str
    reference_id: str
    holder_did: str
    credential_subject: CredentialSubject
    credential: dict
    """Finished credential delivered to the wallet on fetch."""
    offer: dict
    status: ClaimStatus = ClaimStatus.pending
    created_at: datetime.datetime
    updated_at: datetime.datetime
    issued_at: datetime.datetime | None = None
    issued_to: str | None = None
    """Identifier the wallet used when fetching the credential."""
    issuance: dict | None = None
    """Issuance message sent on the first fetch, repeated on every further fetch."""
    revoked_at: datetime.datetime | None = None
    revocation_reason: str | None = None
    backend_credential_id: str | None = None
    """Credential id at the issuer node, None for locally signed credentials."""
    locally_signed: bool = False
    revocation_nonce: int


class CreateClaimResponse(BaseModel):
    claim_id: str
    reference_id: str
    status: ClaimStatus
    qr_code_data: str
    deep_link: str
    universal_link: str
    locally_signed: bool
    """True if the issuer node was unavailable and the credential was signed by this service."""


class ClaimSummary(BaseModel):
    """Fields of a claim which may be shown to operators."""

    id: str
    reference_id: str
    holder_did: str
    full_name: str
    skill_set: str
    is_graduated: bool
    status: ClaimStatus
    created_at: datetime.datetime
    issued_at: datetime.datetime | None = None
    revoked_at: datetime.datetime | None = None
    revocation_reason: str | None = None

    @staticmethod
    def from_claim(claim: Claim) -> "ClaimSummary":
        return ClaimSummary(
            id=claim.id,
            reference_id=claim.reference_id,
            holder_did=claim.holder_did,
            full_name=claim.credential_subject.fullName,
            skill_set=claim.credential_subject.skillSet,
            is_graduated=claim.credential_subject.isGraduated,
            status=claim.status,
            created_at=claim.created_at,
            issued_at=claim.issued_at,
            revoked_at=claim.revoked_at,
            revocation_reason=claim.revocation_reason,
        )


class ClaimList(BaseModel):
    claims: list[ClaimSummary]
    limit: int
    offset: int
    has_more: bool


class RevokeRequest(BaseModel):
    reason: str | None = None


class RevokeResponse(BaseModel):
    success: bool
    claim_id: str
    reason: str | None = None


class RevocationStatus(BaseModel):
    claim_id: str
    is_revoked: bool
    revoked_at: datetime.datetime | None = None
    reason: str | None = None


class ClaimStats(BaseModel):
    total: int
    pending: int
    issued: int
    revoked: int
    issued_today: int
    """Claims fetched by a wallet since midnight UTC and not revoked since."""
    skill_breakdown: dict[str, int] = Field(default_factory=dict)


EMPTY_TREE_ROOT = "0" * 64


class IssuerTreeState(BaseModel):
    """State of the issuer merkle trees. This service keeps no trees, so all roots are empty."""

    state: str = EMPTY_TREE_ROOT
    rootOfRoots: str = EMPTY_TREE_ROOT
    claimsTreeRoot: str = EMPTY_TREE_ROOT
    revocationTreeRoot: str = EMPTY_TREE_ROOT


class MerkleTreeProof(BaseModel):
    existence: bool
    """True if the revocation nonce is part of the revocation tree, i.e. the credential is revoked."""
    siblings: list[str] = Field(default_factory=list)
    node_aux: dict | None = None


class RevocationProof(BaseModel):
    """Answer of the revocation endpoint referenced by the `credentialStatus` of locally signed credentials."""

    issuer: IssuerTreeState = Field(default_factory=IssuerTreeState)
    mtp: MerkleTreeProof
