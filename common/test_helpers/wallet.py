# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Messages as a wallet sends them."""

import json
import uuid

from common.model.iden3comm import MessageType, PLAIN_JSON_MEDIA_TYPE
from common.parsing import object_to_url_safe, remove_padding

HOLDER_DID = "did:polygonid:polygon:amoy:2qQ68JkRcf3xrHPQPWZei3YeVzHPP58wYNxx2mEouR"


def fetch_request(claim_id: str, holder_did: str = HOLDER_DID, issuer_did: str | None = None) -> dict:
    message = {
        "id": str(uuid.uuid4()),
        "typ": PLAIN_JSON_MEDIA_TYPE,
        "type": MessageType.credential_fetch_request.value,
        "thid": claim_id,
        "from": holder_did,
        "body": {"id": claim_id},
    }
    if issuer_did:
        message["to"] = issuer_did
    return message


def authorization_response(request_id: str, verifier_did: str, issuer: str | None = None, holder_did: str = HOLDER_DID, scopes: list[dict] | None = None) -> dict:
    body = {"scope": scopes if scopes is not None else [{"id": 1, "circuitId": "credentialAtomicQuerySigV2", "proof": {}, "pub_signals": []}]}
    if issuer:
        body["issuer"] = issuer
    return {
        "id": str(uuid.uuid4()),
        "typ": "application/iden3-zkp-json",
        "type": MessageType.authorization_response.value,
        "thid": request_id,
        "from": holder_did,
        "to": verifier_did,
        "body": body,
    }


def as_plain_json(message: dict) -> bytes:
    return json.dumps(message).encode()


def as_envelope(message: dict) -> bytes:
    """The message as payload of a dot separated token, like zero knowledge or signed envelopes."""
    header = remove_padding(object_to_url_safe({"alg": "groth16", "typ": "application/iden3-zkp-json"}))
    payload = remove_padding(object_to_url_safe(message))
    return f"{header}.{payload}.c2lnbmF0dXJl".encode()
