# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Tests of the registry api with an in memory registry in place of the contract.
"""

import pytest
from fastapi import status
from fastapi.testclient import TestClient

import common.config
from common import registry_client
from common.test_helpers.registry import AUTHORIZED_ISSUER_ADDRESS, UNAUTHORIZED_ISSUER_ADDRESS, FakeIssuerRegistry

import registry.config as conf
from registry import registry as registry_app

API_KEY = "test_api_key"
NEW_ISSUER_ADDRESS = "0x4444444444444444444444444444444444444444"


def t_config() -> conf.RegistryConfig:
    config = conf.RegistryConfig()
    config.api_key = API_KEY
    return config


@pytest.fixture()
def registry() -> FakeIssuerRegistry:
    fake = FakeIssuerRegistry(authorized=[AUTHORIZED_ISSUER_ADDRESS])
    fake.register(UNAUTHORIZED_ISSUER_ADDRESS, "Closed College", "university", is_active=False)
    return fake


@pytest.fixture()
def client(registry: FakeIssuerRegistry) -> TestClient:
    app = registry_app.app
    client = TestClient(app, headers={"x-api-key": API_KEY})
    app.dependency_overrides[conf.RegistryConfig] = t_config
    app.dependency_overrides[common.config.Config] = t_config
    app.dependency_overrides[registry_client.get_issuer_registry] = lambda: registry
    app.dependency_overrides[registry_app.get_admin_registry] = lambda: registry
    yield client
    app.dependency_overrides.clear()
    client.close()


def test_check_authorized_issuer(client: TestClient):
    response = client.get(f"/registry/check/{AUTHORIZED_ISSUER_ADDRESS}", headers={"x-api-key": ""})
    assert response.status_code == status.HTTP_200_OK
    check = response.json()
    assert check["authorized"] is True
    assert check["issuer"]["name"] == "Test University"


def test_check_inactive_and_unknown_issuer(client: TestClient):
    check = client.get(f"/registry/check/{UNAUTHORIZED_ISSUER_ADDRESS}").json()
    assert check["authorized"] is False
    assert check["issuer"]["is_active"] is False

    check = client.get(f"/registry/check/{NEW_ISSUER_ADDRESS}").json()
    assert check == {"address": NEW_ISSUER_ADDRESS, "authorized": False, "issuer": None}


@pytest.mark.parametrize("address", ["0x123", "1111111111111111111111111111111111111111", "0xZZ11111111111111111111111111111111111111"])
def test_malformed_address(client: TestClient, address: str):
    response = client.get(f"/registry/check/{address}")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["details"][0]["field"] == "address"


def test_registry_unavailable(client: TestClient, registry: FakeIssuerRegistry):
    registry.available = False
    response = client.get(f"/registry/check/{AUTHORIZED_ISSUER_ADDRESS}")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["error"] == "registry_unavailable"
    assert client.get("/registry/issuers").status_code == status.HTTP_503_SERVICE_UNAVAILABLE

    response = client.get("/health/readiness")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
    assert response.json()["registry_connectivity"] == "UNHEALTHY"


def test_list_issuers(client: TestClient):
    assert client.get("/registry/issuers").json() == {"issuers": [AUTHORIZED_ISSUER_ADDRESS], "active_only": True}
    listed = client.get("/registry/issuers", params={"active_only": False}).json()
    assert set(listed["issuers"]) == {AUTHORIZED_ISSUER_ADDRESS, UNAUTHORIZED_ISSUER_ADDRESS}


def test_get_issuer(client: TestClient):
    assert client.get(f"/registry/issuers/{AUTHORIZED_ISSUER_ADDRESS}").json()["issuer_type"] == "university"
    response = client.get(f"/registry/issuers/{NEW_ISSUER_ADDRESS}")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["error"] == "issuer_not_found"


def test_add_issuer(client: TestClient, registry: FakeIssuerRegistry):
    data = {"address": NEW_ISSUER_ADDRESS, "name": "Skill India Centre", "issuer_type": "training_institute"}
    assert client.post("/registry/issuers", json=data, headers={"x-api-key": "wrong"}).status_code == status.HTTP_401_UNAUTHORIZED

    response = client.post("/registry/issuers", json=data)
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json() == {"address": NEW_ISSUER_ADDRESS, "transaction_hash": "0x" + "ab" * 32, "already_registered": False}
    assert registry.is_authorized(NEW_ISSUER_ADDRESS)

    response = client.post("/registry/issuers", json=data)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"address": NEW_ISSUER_ADDRESS, "transaction_hash": None, "already_registered": True}


def test_add_issuer_with_malformed_address(client: TestClient):
    response = client.post("/registry/issuers", json={"address": "0x12", "name": "x", "issuer_type": "employer"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
