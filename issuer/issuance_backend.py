# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Client of the external issuer node producing the credentials.

The issuer node is not required for issuance: every failure surfaces as
`IssuanceBackendError` and the claim ledger signs the credential itself.
"""

import logging
import urllib.parse
from abc import ABC, abstractmethod
from typing import Annotated

import httpx
from fastapi import Depends
from pydantic import BaseModel

from common import httpx_wrapper

import issuer.config as conf

_logger = logging.getLogger(__name__)


class IssuanceBackendError(Exception):
    """The issuer node could not issue the credential (unreachable, timeout, non 2xx or unusable answer)."""


class BackendCredential(BaseModel):
    id: str
    """Credential id at the issuer node"""
    credential: dict


class IssuanceBackend(ABC):
    mode: str
    """Reported by the health endpoint, `live` or `mock`."""

    @abstractmethod
    def issue(self, issuer_did: str, request: dict) -> BackendCredential:
        """Creates the credential. Raises `IssuanceBackendError` on any failure."""

    @abstractmethod
    def is_reachable(self) -> bool:
        pass


class IssuerNodeBackend(IssuanceBackend):
    mode = "live"

    def __init__(self, client: httpx.Client) -> None:
        self._client = client

    @staticmethod
    def _credentials_path(issuer_did: str) -> str:
        return f"/v2/identities/{urllib.parse.quote(issuer_did, safe='')}/credentials"

    def issue(self, issuer_did: str, request: dict) -> BackendCredential:
        path = self._credentials_path(issuer_did)
        try:
            created = httpx_wrapper.request(self._client, "POST", path, json=request).json()
            credential_id = created["id"]
            fetched = httpx_wrapper.request(self._client, "GET", f"{path}/{credential_id}").json()
            credential = fetched["vc"]
        except httpx.HTTPError as e:
            raise IssuanceBackendError(f"Issuer node request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise IssuanceBackendError(f"Issuer node answered with an unusable body: {e!r}") from e
        if not isinstance(credential, dict):
            raise IssuanceBackendError("Issuer node returned no credential")
        _logger.info(f"Issuer node created credential {credential_id}")
        return BackendCredential(id=str(credential_id), credential=credential)

    def is_reachable(self) -> bool:
        try:
            httpx_wrapper.request(self._client, "GET", "/status")
        except httpx.HTTPError:
            _logger.exception("Issuer node is not reachable.")
            return False
        return True


class MockModeBackend(IssuanceBackend):
    """Used with `ISSUER_NODE_MOCK_MODE`. Never calls the issuer node, every credential is signed locally."""

    mode = "mock"

    def issue(self, issuer_did: str, request: dict) -> BackendCredential:
        raise IssuanceBackendError("Issuer node disabled by mock mode")

    def is_reachable(self) -> bool:
        return False


def get_issuance_backend(config: conf.inject) -> IssuanceBackend:
    if config.issuer_node_mock_mode:
        return MockModeBackend()
    return IssuerNodeBackend(config.get_issuer_node_client())


inject = Annotated[IssuanceBackend, Depends(get_issuance_backend)]
