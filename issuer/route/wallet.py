# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Endpoints called by the holder's wallet.

Wallets call from their own origin and send whatever encoding they prefer, so these
endpoints answer every request, including failures, with CORs headers and iden3comm
shaped messages instead of the error bodies of the operator api.
"""

import logging
from typing import Annotated

import fastapi
from fastapi import Depends, Request, Response, status
from fastapi.responses import JSONResponse

from common.exception import ProtocolError
from common.iden3comm import MessageBuilder, decode_wallet_message

import issuer.config as conf
from issuer import claim_ledger
from issuer.logging import IssuerOperationsLogEntry
from issuer.models import ClaimStatus, MerkleTreeProof, RevocationProof

_logger = logging.getLogger(__name__)

TAG = "Wallet"

router = fastapi.APIRouter(prefix="/issuer", tags=[TAG])


async def raw_body(request: Request) -> bytes:
    return await request.body()


def cors_headers(config: conf.IssuerConfig) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.wallet_allowed_origin,
        "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }


def _problem(config: conf.IssuerConfig, status_code: int, code: str, comment: str, thid: str | None = None) -> JSONResponse:
    report = MessageBuilder(config.wallet_universal_link_url).problem_report(code, comment, thid)
    return JSONResponse(report.to_json_dict(), status_code=status_code, headers=cors_headers(config))


def _fetch(claim_id: str, message: dict, config: conf.IssuerConfig, ledger: claim_ledger.ClaimLedger) -> JSONResponse:
    try:
        issuance = ledger.process_fetch(claim_id, message)
    except ProtocolError as e:
        return _problem(config, e.status_code, "issuance_failed", f"{e.error_description} ({e.error})", claim_id)
    except Exception:
        _logger.exception(f"Fetch of {claim_id=} failed unexpectedly")
        _logger.info(
            IssuerOperationsLogEntry(
                message="Credential delivery failed.",
                status=IssuerOperationsLogEntry.Status.error,
                operation=IssuerOperationsLogEntry.Operation.issuance,
                step=IssuerOperationsLogEntry.Step.issuance_delivery,
                management_id=claim_id,
                error_code="server_error",
            )
        )
        return _problem(config, status.HTTP_500_INTERNAL_SERVER_ERROR, "server_error", "The credential could not be issued", claim_id)
    return JSONResponse(issuance, headers=cors_headers(config))


@router.options("/claim/{claim_id}/fetch", include_in_schema=False)
@router.options("/claim/fetch", include_in_schema=False)
@router.options("/revocation/{revocation_nonce}", include_in_schema=False)
def preflight(config: conf.inject) -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=cors_headers(config))


@router.post("/claim/{claim_id}/fetch")
def fetch_credential(
    claim_id: str,
    body: Annotated[bytes, Depends(raw_body)],
    config: conf.inject,
    ledger: claim_ledger.inject,
) -> JSONResponse:
    """
    Fetch request of the wallet, answered with the issuance message holding the credential.

    The body may be plain json, a token (header.payload.signature) or empty.
    """
    claim_id = claim_id.strip()
    if not claim_id:
        return _problem(config, status.HTTP_400_BAD_REQUEST, "missing_claim_id", "Claim ID is required")
    decoded = decode_wallet_message(body, thread_id=claim_id)
    _logger.info(f"Fetch request for {claim_id=} decoded as {decoded.kind.value}")
    return _fetch(claim_id, decoded.message, config, ledger)


@router.post("/claim/fetch")
def fetch_credential_without_path(
    body: Annotated[bytes, Depends(raw_body)],
    config: conf.inject,
    ledger: claim_ledger.inject,
) -> JSONResponse:
    """Fetch request sent to the base url. The claim id is then taken from the message itself."""
    message = decode_wallet_message(body).message
    message_body = message.get("body") if isinstance(message.get("body"), dict) else {}
    claim_id = message_body.get("id") or message.get("thid")
    if not isinstance(claim_id, str) or not claim_id.strip():
        return _problem(config, status.HTTP_400_BAD_REQUEST, "missing_claim_id", "Claim ID is required")
    return _fetch(claim_id.strip(), message, config, ledger)


@router.api_route("/revocation/{revocation_nonce}", methods=["GET", "POST"])
def get_revocation_proof(revocation_nonce: int, config: conf.inject, ledger: claim_ledger.inject) -> JSONResponse:
    """
    Revocation status in the sparse merkle tree proof format.
    Unknown nonces are reported as not revoked.
    """
    claim = ledger.find_by_revocation_nonce(revocation_nonce)
    revoked = claim is not None and claim.status == ClaimStatus.revoked
    proof = RevocationProof(mtp=MerkleTreeProof(existence=revoked))
    return JSONResponse(proof.model_dump(mode="json"), headers=cors_headers(config))
