# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Operator endpoints managing claims. Protected by the api key."""

import fastapi
from fastapi import Query, status

from common.apikey import require_api_key

from issuer import claim_ledger
from issuer.exception import ClaimNotFoundError
from issuer.models import (
    ClaimList,
    ClaimStats,
    ClaimStatus,
    ClaimSummary,
    CreateClaimRequest,
    CreateClaimResponse,
    RevocationStatus,
    RevokeRequest,
    RevokeResponse,
)

TAG = "Claim Management"

router = fastapi.APIRouter(prefix="/issuer", dependencies=[fastapi.Security(require_api_key)], tags=[TAG])


@router.post("/claims", status_code=status.HTTP_201_CREATED)
def create_claim(data: CreateClaimRequest, ledger: claim_ledger.inject) -> CreateClaimResponse:
    """
    Creates a claim and returns the credential offer as QR code data and links for the holder's wallet.
    All invalid fields are reported together.
    """
    return ledger.create(data)


@router.get("/claims")
def list_claims(
    ledger: claim_ledger.inject,
    status: ClaimStatus | None = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ClaimList:
    return ledger.find(status, limit, offset)


@router.get("/claims/{claim_id}")
def get_claim(claim_id: str, ledger: claim_ledger.inject) -> ClaimSummary:
    return ClaimSummary.from_claim(ledger.get(claim_id))


@router.get("/claims/{claim_id}/offer", description="Shows the offer of a claim again, e.g. if the holder lost the QR code")
def get_claim_offer(claim_id: str, ledger: claim_ledger.inject) -> CreateClaimResponse:
    return ledger.offer_links(claim_id)


@router.post("/claims/{claim_id}/revoke")
def revoke_claim(claim_id: str, ledger: claim_ledger.inject, data: RevokeRequest | None = None) -> RevokeResponse:
    reason = data.reason if data else None
    claim = ledger.revoke(claim_id, reason)
    if claim is None:
        raise ClaimNotFoundError(f"{claim_id=}")
    return RevokeResponse(success=True, claim_id=claim_id, reason=claim.revocation_reason)


@router.get("/claims/{claim_id}/revocation")
def get_revocation_status(claim_id: str, ledger: claim_ledger.inject) -> RevocationStatus:
    return ledger.revocation_status(claim_id)


@router.get("/holders/{holder_did}/claims")
def list_holder_claims(holder_did: str, ledger: claim_ledger.inject) -> list[ClaimSummary]:
    return ledger.for_holder(holder_did)


@router.get("/stats")
def get_stats(ledger: claim_ledger.inject) -> ClaimStats:
    return ledger.stats()
