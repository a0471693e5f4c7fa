# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Construction of wallet messages and decoding of what wallets send back.

Wallets do not agree on one encoding for inbound messages. Some post plain json,
some a signed or zero knowledge token (header.payload.proof) and some nothing at all.
`decode_wallet_message` therefore runs a small pipeline and reports which branch matched.
"""

import json
import logging
import uuid
from enum import Enum
from typing import Callable

from pydantic import BaseModel

from common.parsing import object_from_url_safe, object_to_base64
from common.model import iden3comm as messages

_logger = logging.getLogger(__name__)

DEEP_LINK_PREFIX = "iden3comm://?i_m="


class MessageBuilder:
    """Creates the messages sent to the wallet together with their QR and link encodings."""

    def __init__(self, universal_link_url: str = "https://wallet.privado.id") -> None:
        self.universal_link_url = universal_link_url.rstrip("/")

    def offer(self, claim_id: str, description: str, issuer_did: str, holder_did: str, fetch_url: str) -> messages.OfferMessage:
        return messages.OfferMessage(
            id=str(uuid.uuid4()),
            type=messages.MessageType.credential_offer.value,
            thid=claim_id,
            from_=issuer_did,
            to=holder_did,
            body=messages.OfferBody(
                url=fetch_url,
                credentials=[messages.OfferCredential(id=claim_id, description=description)],
            ),
        )

    def fetch_request(self, claim_id: str, inbound: dict | None, holder_did: str, issuer_did: str) -> messages.FetchRequestMessage:
        """
        Normalizes a fetch request received from the wallet.

        Missing or unusable fields are replaced by defaults derived from the claim instead of
        rejecting the request. The claim id of the path always wins over the one in the body.
        """
        inbound = inbound if isinstance(inbound, dict) else {}
        body = inbound.get("body") if isinstance(inbound.get("body"), dict) else {}
        if body.get("id") not in (None, claim_id):
            _logger.warning(f"Fetch request for {claim_id=} references credential {body.get('id')}. Using the claim id.")
        return messages.FetchRequestMessage(
            id=_string_or(inbound.get("id"), str(uuid.uuid4())),
            typ=_string_or(inbound.get("typ"), messages.PLAIN_JSON_MEDIA_TYPE),
            type=_string_or(inbound.get("type"), messages.MessageType.credential_fetch_request.value),
            thid=_string_or(inbound.get("thid"), claim_id),
            from_=_string_or(inbound.get("from"), holder_did),
            to=_string_or(inbound.get("to"), issuer_did),
            body=messages.FetchRequestBody(**{**body, "id": claim_id}),
        )

    def issuance(self, claim_id: str, credential: dict, issuer_did: str, holder_did: str) -> messages.IssuanceMessage:
        return messages.IssuanceMessage(
            id=str(uuid.uuid4()),
            type=messages.MessageType.credential_issuance.value,
            thid=claim_id,
            from_=issuer_did,
            to=holder_did,
            body=messages.IssuanceBody(credential=credential),
        )

    def authorization_request(
        self,
        request_id: str,
        scopes: list[messages.AuthorizationScope],
        reason: str,
        callback_url: str,
        verifier_did: str,
    ) -> messages.AuthorizationRequestMessage:
        return messages.AuthorizationRequestMessage(
            id=request_id,
            type=messages.MessageType.authorization_request.value,
            thid=request_id,
            from_=verifier_did,
            body=messages.AuthorizationRequestBody(callbackUrl=callback_url, reason=reason, scope=scopes),
        )

    def authorization_response(
        self,
        request_id: str,
        verifier_did: str,
        holder_did: str | None,
        message: str,
        verified: bool,
        issuer_authorized: bool,
        error: str | None = None,
    ) -> messages.AuthorizationResponseMessage:
        return messages.AuthorizationResponseMessage(
            id=str(uuid.uuid4()),
            type=messages.MessageType.authorization_response.value,
            thid=request_id,
            from_=verifier_did,
            to=holder_did,
            body=messages.AuthorizationResponseBody(message=message, verified=verified, issuerAuthorized=issuer_authorized, error=error),
        )

    def problem_report(self, code: str, comment: str, thid: str | None = None) -> messages.ProblemReportMessage:
        return messages.ProblemReportMessage(
            id=str(uuid.uuid4()),
            type=messages.MessageType.problem_report.value,
            thid=thid,
            body=messages.ProblemReportBody(code=code, comment=comment),
        )

    def links(self, message: messages.BasicMessage | dict) -> messages.WalletLinks:
        """QR payload, deep link and universal link for a message the wallet has to receive."""
        content = message.to_json_dict() if isinstance(message, messages.BasicMessage) else message
        encoded = object_to_base64(content)
        return messages.WalletLinks(
            qr_code_data=json.dumps(content),
            deep_link=f"{DEEP_LINK_PREFIX}{encoded}",
            universal_link=f"{self.universal_link_url}/#i_m={encoded}",
        )


def _string_or(value: object, default: str) -> str:
    return value if isinstance(value, str) and value else default


class DecodeKind(Enum):
    plain_json = "PLAIN_JSON"
    encoded_envelope = "ENCODED_ENVELOPE"
    synthesized = "SYNTHESIZED"


class DecodedMessage(BaseModel):
    kind: DecodeKind
    message: dict


def decode_plain_json(raw: bytes) -> dict | None:
    """The message as json object, None if the payload is not one."""
    try:
        content = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    return content if isinstance(content, dict) else None


def decode_encoded_envelope(raw: bytes) -> dict | None:
    """
    The payload of a dot separated token (header.payload.signature or proof).
    The middle segment is base64url encoded json. None if the payload is not such a token.
    """
    try:
        text = raw.decode().strip()
    except UnicodeDecodeError:
        return None
    segments = text.split(".")
    if len(segments) < 2 or not segments[1]:
        return None
    try:
        content = object_from_url_safe(segments[1])
    except (ValueError, UnicodeDecodeError):
        return None
    return content if isinstance(content, dict) else None


def synthesize_message(thread_id: str | None) -> dict:
    """Minimal message standing in for an undecodable one. Only carries the thread id known from the request path."""
    message = {"id": str(uuid.uuid4()), "typ": messages.PLAIN_JSON_MEDIA_TYPE}
    if thread_id:
        message["thid"] = thread_id
    return message


_DECODERS: list[tuple[DecodeKind, Callable[[bytes], dict | None]]] = [
    (DecodeKind.plain_json, decode_plain_json),
    (DecodeKind.encoded_envelope, decode_encoded_envelope),
]


def decode_wallet_message(raw: bytes, thread_id: str | None = None) -> DecodedMessage:
    """
    Decodes an inbound wallet message. Never fails: if no decoder matches, a synthesized
    message keyed by `thread_id` is returned.
    """
    for kind, decoder in _DECODERS:
        content = decoder(raw)
        if content is not None:
            _logger.debug(f"Decoded wallet message as {kind.value}")
            return DecodedMessage(kind=kind, message=content)
    if raw:
        _logger.warning(f"Could not decode wallet message of {len(raw)} bytes for {thread_id=}")
    return DecodedMessage(kind=DecodeKind.synthesized, message=synthesize_message(thread_id))
