# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Messages exchanged with the identity wallet.

iden3comm plain json messages
https://iden3-communication.io/
Field names follow the protocol and are therefore in camel case.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

PLAIN_JSON_MEDIA_TYPE = "application/iden3comm-plain-json"
"""Protocol version tag (`typ`) of every message this system emits."""

_CREDENTIALS_PROTOCOL = "https://iden3-communication.io/credentials/1.0"
_AUTHORIZATION_PROTOCOL = "https://iden3-communication.io/authorization/1.0"


class MessageType(str, Enum):
    credential_offer = f"{_CREDENTIALS_PROTOCOL}/offer"
    credential_fetch_request = f"{_CREDENTIALS_PROTOCOL}/fetch-request"
    credential_issuance = f"{_CREDENTIALS_PROTOCOL}/issuance"
    problem_report = f"{_CREDENTIALS_PROTOCOL}/problem-report"
    authorization_request = f"{_AUTHORIZATION_PROTOCOL}/request"
    authorization_response = f"{_AUTHORIZATION_PROTOCOL}/response"


class CircuitId(Enum):
    """Zero knowledge circuit used by the wallet to prove a scope."""

    signature_v2 = "credentialAtomicQuerySigV2"
    merkle_tree_proof_v2 = "credentialAtomicQueryMTPV2"


class BasicMessage(BaseModel):
    """Envelope shared by every message. `body` is specialised by the concrete messages."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    typ: str = PLAIN_JSON_MEDIA_TYPE
    type: str
    thid: str | None = None
    """Thread id, correlating requests and responses."""
    from_: str | None = Field(None, alias="from")
    to: str | None = None
    body: dict = Field(default_factory=dict)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class OfferCredential(BaseModel):
    id: str
    description: str


class OfferBody(BaseModel):
    url: str
    """Url the wallet fetches the credential from."""
    credentials: list[OfferCredential]


class OfferMessage(BasicMessage):
    body: OfferBody


class FetchRequestBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    """Id of the offered credential (the claim id)."""


class FetchRequestMessage(BasicMessage):
    body: FetchRequestBody


class IssuanceBody(BaseModel):
    credential: dict


class IssuanceMessage(BasicMessage):
    body: IssuanceBody


class ScopeQuery(BaseModel):
    allowedIssuers: list[str] = Field(default_factory=lambda: ["*"])
    """Always wildcarded. Issuer trust is enforced by the registry cross-check of the verifier, not by the circuit."""
    type: str
    context: str
    credentialSubject: dict = Field(default_factory=dict)
    """Field name to operator condition, e.g. `{"cibilScore": {"$gte": 700}}`. Empty means existence of the credential only."""


class AuthorizationScope(BaseModel):
    """One atomic selective disclosure condition."""

    id: int
    circuitId: CircuitId = CircuitId.signature_v2
    query: ScopeQuery


class AuthorizationRequestBody(BaseModel):
    callbackUrl: str
    reason: str
    scope: list[AuthorizationScope]


class AuthorizationRequestMessage(BasicMessage):
    body: AuthorizationRequestBody


class AuthorizationResponseBody(BaseModel):
    message: str
    verified: bool
    issuerAuthorized: bool
    error: str | None = None


class AuthorizationResponseMessage(BasicMessage):
    body: AuthorizationResponseBody


class ProblemReportBody(BaseModel):
    code: str
    comment: str


class ProblemReportMessage(BasicMessage):
    body: ProblemReportBody


class WalletLinks(BaseModel):
    """Encodings of a message for the wallet to scan or open."""

    qr_code_data: str
    """The message as json string, to be rendered as QR code."""
    deep_link: str
    universal_link: str
