# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Proof callback of the holder's wallet.

The wallet only understands iden3comm messages, so every outcome, failures included,
is answered with an authorization response carrying CORs headers.
"""

import logging
from typing import Annotated

import fastapi
from fastapi import Depends, Request, Response, status
from fastapi.responses import JSONResponse

from common.exception import ProtocolError
from common.iden3comm import DecodeKind, MessageBuilder, decode_wallet_message

import verifier.config as conf
from verifier import verification_ledger
from verifier.logging import VerifierOperationsLogEntry

_logger = logging.getLogger(__name__)

TAG = "Wallet"

router = fastapi.APIRouter(prefix="/verifier", tags=[TAG])


async def raw_body(request: Request) -> bytes:
    return await request.body()


def cors_headers(config: conf.VerifierConfig) -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": config.wallet_allowed_origin,
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type, Authorization",
    }


def request_id_of(message: dict, query_request_id: str | None) -> str | None:
    """The request id from the callback url, else the thread id or id of the message."""
    for candidate in [query_request_id, message.get("thid"), message.get("id")]:
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


@router.options("/callback", include_in_schema=False)
def preflight(config: conf.inject) -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=cors_headers(config))


@router.post("/callback")
def proof_callback(
    body: Annotated[bytes, Depends(raw_body)],
    config: conf.inject,
    ledger: verification_ledger.inject,
    request_id: str | None = None,
) -> JSONResponse:
    """
    Receives the proof of the wallet and answers with the authorization response.
    The body may be plain json or a token (header.payload.proof).
    """
    messages = MessageBuilder(config.wallet_universal_link_url)
    decoded = decode_wallet_message(body, thread_id=request_id)
    _logger.info(f"Proof callback decoded as {decoded.kind.value}")
    # A synthesized message carries no id of the wallet
    proof = decoded.message if decoded.kind != DecodeKind.synthesized else {}

    resolved_id = request_id_of(proof, request_id)
    if resolved_id is None:
        report = messages.problem_report("missing_request_id", "Invalid proof: missing request ID")
        return JSONResponse(report.to_json_dict(), status_code=status.HTTP_400_BAD_REQUEST, headers=cors_headers(config))

    holder_did = proof.get("from") if isinstance(proof.get("from"), str) else None
    status_code = status.HTTP_200_OK
    try:
        result = ledger.resolve(resolved_id, proof)
        response = messages.authorization_response(
            request_id=resolved_id,
            verifier_did=config.verifier_did,
            holder_did=holder_did,
            message="Verification successful" if result.verified else result.error,
            verified=result.verified,
            issuer_authorized=result.issuer_authorized,
        )
    except ProtocolError as e:
        status_code = e.status_code
        response = messages.authorization_response(
            request_id=resolved_id,
            verifier_did=config.verifier_did,
            holder_did=holder_did,
            message=e.error_description,
            verified=False,
            issuer_authorized=False,
            error=e.error,
        )
    except Exception:
        _logger.exception(f"Proof callback of {resolved_id=} failed unexpectedly")
        _logger.info(
            VerifierOperationsLogEntry(
                message="Proof evaluation failed.",
                status=VerifierOperationsLogEntry.Status.error,
                operation=VerifierOperationsLogEntry.Operation.verification,
                step=VerifierOperationsLogEntry.Step.verification_evaluation,
                management_id=resolved_id,
                error_code="server_error",
            )
        )
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        response = messages.authorization_response(
            request_id=resolved_id,
            verifier_did=config.verifier_did,
            holder_did=holder_did,
            message="The proof could not be processed",
            verified=False,
            issuer_authorized=False,
            error="server_error",
        )
    return JSONResponse(response.to_json_dict(), status_code=status_code, headers=cors_headers(config))
