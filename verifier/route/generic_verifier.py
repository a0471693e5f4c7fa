# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

# FastAPI
import fastapi
from fastapi import status

from common.apikey import require_api_key
from common.exception import ErrorResponse

import verifier.models as models
from verifier import batch_verification, verification_ledger

TAG = "Verification Management"

router = fastapi.APIRouter(prefix="/verifier", dependencies=[fastapi.Security(require_api_key)], tags=[TAG])


@router.post("/verification", status_code=status.HTTP_201_CREATED, responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}})
def open_verification(data: models.VerificationRequest, ledger: verification_ledger.inject) -> models.OpenVerificationResponse:
    """
    Opens a verification. The returned QR code data and links carry the authorization request for the holder's wallet.
    Poll the status until it is no longer `pending`.
    """
    return ledger.open(data)


@router.post("/challenge", status_code=status.HTTP_201_CREATED)
def open_challenge(ledger: verification_ledger.inject, data: models.ChallengeRequest | None = None) -> models.OpenVerificationResponse:
    """Authorization challenge asking only for possession of a credential."""
    return ledger.open_challenge(data or models.ChallengeRequest())


@router.get("/verification/{request_id}", responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}})
def get_verification(request_id: str, ledger: verification_ledger.inject) -> models.VerificationStatusResponse:
    """Status of the verification. `expired` and the other non pending status are final, stop polling then."""
    return models.VerificationStatusResponse.from_session(ledger.status(request_id))


@router.get("/verification")
def list_verifications(verifier_id: str, ledger: verification_ledger.inject) -> list[models.VerificationStatusResponse]:
    return ledger.sessions_for_verifier(verifier_id)


@router.get("/stats")
def get_stats(ledger: verification_ledger.inject) -> models.VerificationStats:
    return ledger.stats()


@router.post("/batch-verify", responses={status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse}})
def batch_verify(data: models.BatchVerificationRequest, verifier: batch_verification.inject) -> models.BatchVerificationResponse:
    """
    Verifies up to 100 issued credentials by claim id or reference id, without involving the holder's wallet.
    A credential passes when it is issued by an authorized issuer and meets the optional requirements.
    """
    return verifier.verify(data)
