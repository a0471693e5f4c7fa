# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests Verification Flow
"""

import json
from unittest import mock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

import common.config
import common.db.postgres as db
from common import registry_client
from common.test_helpers.database import sqlite_session_override
from common.test_helpers.registry import AUTHORIZED_ISSUER_ADDRESS, UNAUTHORIZED_ISSUER_ADDRESS, FakeIssuerRegistry
from common.test_helpers import wallet

import verifier.config as conf
from verifier import verification_ledger

API_KEY = "test_api_key"
VERIFIER_URL = "https://verifier.example"
AUTHORIZED_ISSUER = f"did:pkh:eip155:80002:{AUTHORIZED_ISSUER_ADDRESS}"


def t_config() -> conf.VerifierConfig:
    config = conf.VerifierConfig()
    config.external_url = VERIFIER_URL
    config.api_key = API_KEY
    config.registry_contract_address = "0x3333333333333333333333333333333333333333"
    return config


@pytest.fixture()
def registry() -> FakeIssuerRegistry:
    return FakeIssuerRegistry(authorized=[AUTHORIZED_ISSUER_ADDRESS])


@pytest.fixture()
def client(registry: FakeIssuerRegistry) -> TestClient:
    from verifier.verifier import app

    client = TestClient(app, headers={"x-api-key": API_KEY})
    app.dependency_overrides[db.env_session] = sqlite_session_override()
    app.dependency_overrides[conf.VerifierConfig] = t_config
    app.dependency_overrides[common.config.Config] = t_config
    app.dependency_overrides[registry_client.get_issuer_registry] = lambda: registry
    yield client
    app.dependency_overrides.clear()
    client.close()


def _open_verification(client: TestClient, verification_type: str = "age", **conditions) -> dict:
    if verification_type == "age" and not conditions:
        conditions = {"min_age": 21}
    response = client.post("/verifier/verification", json={"verification_type": verification_type, "conditions": conditions, "verifier_id": "employer-1"})
    assert response.status_code == status.HTTP_201_CREATED, response.text
    return response.json()


def _callback_path(opened: dict) -> str:
    authorization_request = json.loads(opened["qr_code_data"])
    return authorization_request["body"]["callbackUrl"].removeprefix(VERIFIER_URL)


def _proof(request_id: str, issuer: str = AUTHORIZED_ISSUER) -> dict:
    return wallet.authorization_response(request_id, t_config().verifier_did, issuer=issuer)


def test_api_key_required(client: TestClient):
    response = client.post("/verifier/verification", json={"verification_type": "graduated"}, headers={"x-api-key": "wrong"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert client.get("/verifier/stats", headers={"x-api-key": "wrong"}).status_code == status.HTTP_401_UNAUTHORIZED


def test_open_verification(client: TestClient):
    opened = _open_verification(client)
    assert opened["request_id"].startswith("verify-")
    assert opened["deep_link"].startswith("iden3comm://?i_m=")
    authorization_request = json.loads(opened["qr_code_data"])
    assert authorization_request["type"] == "https://iden3-communication.io/authorization/1.0/request"
    assert authorization_request["body"]["scope"][0]["query"]["allowedIssuers"] == ["*"]

    verification = client.get(f"/verifier/verification/{opened['request_id']}").json()
    assert verification["status"] == "pending"
    assert verification["result"] is None


def test_missing_condition(client: TestClient):
    response = client.post("/verifier/verification", json={"verification_type": "cibil", "conditions": {"max_score": 800}})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"] == [{"field": "conditions.min_score", "message": "min_score is required for cibil verification"}]


def test_unknown_verification_type(client: TestClient):
    response = client.post("/verifier/verification", json={"verification_type": "salary"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "invalid_request"


def test_unknown_verification(client: TestClient):
    response = client.get("/verifier/verification/verify-unknown")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "verification_not_found"


def test_proof_by_query_parameter(client: TestClient, registry: FakeIssuerRegistry):
    opened = _open_verification(client)
    proof = _proof(opened["request_id"])
    proof["thid"] = "something-else"
    response = client.post(_callback_path(opened), content=wallet.as_plain_json(proof), headers={"x-api-key": ""})
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.headers["access-control-allow-origin"] == "*"
    answer = response.json()
    assert answer["type"] == "https://iden3-communication.io/authorization/1.0/response"
    assert answer["thid"] == opened["request_id"]
    assert answer["to"] == wallet.HOLDER_DID
    assert answer["body"] == {"message": "Verification successful", "verified": True, "issuerAuthorized": True}

    verification = client.get(f"/verifier/verification/{opened['request_id']}").json()
    assert verification["status"] == "verified"
    assert verification["result"]["issuer_did"] == AUTHORIZED_ISSUER
    assert verification["result"]["disclosed_fields"] == ["dateOfBirth"]
    assert registry.checked == [AUTHORIZED_ISSUER_ADDRESS]


def test_proof_by_thread_id_in_envelope(client: TestClient):
    opened = _open_verification(client, "skill", required_skills=["Welding"])
    response = client.post("/verifier/callback", content=wallet.as_envelope(_proof(opened["request_id"])))
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["body"]["verified"] is True


def test_proof_of_unauthorized_issuer(client: TestClient):
    opened = _open_verification(client)
    proof = _proof(opened["request_id"], issuer=f"did:pkh:eip155:80002:{UNAUTHORIZED_ISSUER_ADDRESS}")
    response = client.post(_callback_path(opened), content=wallet.as_plain_json(proof))
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["body"]["verified"] is False
    assert response.json()["body"]["issuerAuthorized"] is False

    verification = client.get(f"/verifier/verification/{opened['request_id']}").json()
    assert verification["status"] == "failed"
    assert verification["result"]["issuer_authorized"] is False


def test_registry_unavailable_fails_closed(client: TestClient, registry: FakeIssuerRegistry):
    registry.available = False
    opened = _open_verification(client)
    response = client.post(_callback_path(opened), content=wallet.as_plain_json(_proof(opened["request_id"])))
    assert response.json()["body"]["verified"] is False
    assert client.get(f"/verifier/verification/{opened['request_id']}").json()["status"] == "failed"


def test_second_proof_conflicts(client: TestClient):
    opened = _open_verification(client)
    client.post(_callback_path(opened), content=wallet.as_plain_json(_proof(opened["request_id"])))
    response = client.post(_callback_path(opened), content=wallet.as_plain_json(_proof(opened["request_id"])))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["body"]["error"] == "verification_already_resolved"
    assert response.headers["access-control-allow-origin"] == "*"


def test_proof_for_unknown_verification(client: TestClient):
    response = client.post("/verifier/callback", params={"request_id": "verify-unknown"}, content=wallet.as_plain_json(_proof("verify-unknown")))
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["body"]["verified"] is False


def test_proof_unexpected_failure(client: TestClient):
    opened = _open_verification(client)
    with mock.patch.object(verification_ledger.VerificationLedger, "resolve", side_effect=RuntimeError("database gone")):
        response = client.post(_callback_path(opened), content=wallet.as_plain_json(_proof(opened["request_id"])))
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.headers["access-control-allow-origin"] == "*"
    answer = response.json()
    assert answer["type"] == "https://iden3-communication.io/authorization/1.0/response"
    assert answer["thid"] == opened["request_id"]
    assert answer["body"]["error"] == "server_error"
    assert answer["body"]["verified"] is False


def test_proof_without_request_id(client: TestClient):
    response = client.post("/verifier/callback", content=b"garbage")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["body"]["code"] == "missing_request_id"


def test_callback_preflight(client: TestClient):
    response = client.options("/verifier/callback")
    assert response.status_code == status.HTTP_204_NO_CONTENT
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"


def test_challenge(client: TestClient):
    response = client.post("/verifier/challenge")
    assert response.status_code == status.HTTP_201_CREATED
    opened = response.json()
    assert opened["request_id"].startswith("challenge-")
    assert json.loads(opened["qr_code_data"])["body"]["reason"] == "Authorization challenge"

    response = client.post("/verifier/challenge", json={"reason": "Operator login"})
    assert json.loads(response.json()["qr_code_data"])["body"]["reason"] == "Operator login"


def test_list_and_stats(client: TestClient):
    verified = _open_verification(client)
    _open_verification(client, "graduated")
    client.post("/verifier/verification", json={"verification_type": "graduated", "verifier_id": "employer-2"})
    client.post(_callback_path(verified), content=wallet.as_plain_json(_proof(verified["request_id"])))

    listed = client.get("/verifier/verification", params={"verifier_id": "employer-1"}).json()
    assert len(listed) == 2
    assert {item["status"] for item in listed} == {"verified", "pending"}

    stats = client.get("/verifier/stats").json()
    assert stats == {"total": 3, "pending": 2, "verified": 1, "failed": 0, "expired": 0}


def test_health(client: TestClient, registry: FakeIssuerRegistry):
    response = client.get("/health/readiness")
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["registry_connectivity"] == "HEALTHY"

    registry.available = False
    response = client.get("/health/readiness")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["registry_connectivity"] == "UNHEALTHY"


def test_batch_verify(client: TestClient):
    response = client.post("/verifier/batch-verify", json={"verifications": [{"claim_id": "REF-unknown", "requirements": {"is_graduated": True}}]})
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["total"] == 1
    assert response.json()["failed"] == 1
    assert response.json()["results"][0]["status"] == "not_found"

    assert client.post("/verifier/batch-verify", json={"verifications": []}).status_code == status.HTTP_400_BAD_REQUEST
    oversized = {"verifications": [{"claim_id": f"claim-{i}"} for i in range(101)]}
    assert client.post("/verifier/batch-verify", json=oversized).status_code == status.HTTP_400_BAD_REQUEST
    assert client.post("/verifier/batch-verify", json={"verifications": []}, headers={"x-api-key": "wrong"}).status_code == status.HTTP_401_UNAUTHORIZED
