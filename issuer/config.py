# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
from typing import Annotated
from functools import cache

import httpx

from fastapi import Depends

import common.config as conf
from common.parsing import interpret_as_bool


class IssuerConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Issuer Agent")
        self.issuer_did = os.getenv("ISSUER_DID", "did:polygonid:polygon:amoy:2qFbNk2D2EA24qVvzSVBAsYCPjGrxyG4p3Fv6W1RuY")
        '''Identifier of this issuer, used as `from` of all messages and as credential issuer.'''

        self.national_id_hash_salt = os.getenv("NATIONAL_ID_HASH_SALT", "bharat-verify-default-salt")
        '''Salt for the national id hash. Changing it breaks duplicate detection against existing claims.'''

        self.credential_validity_years = int(os.getenv("CREDENTIAL_VALIDITY_YEARS", 5))

        # Issuer node (external issuance backend)
        self.issuer_node_url = os.getenv("ISSUER_NODE_URL", "http://localhost:3001")
        self.issuer_node_user = os.getenv("ISSUER_NODE_USER", "user-issuer")
        self.issuer_node_password = os.getenv("ISSUER_NODE_PASSWORD", "password-issuer")
        self.issuer_node_timeout = float(os.getenv("ISSUER_NODE_TIMEOUT", 10))
        '''Seconds a call to the issuer node may take before the locally signed credential is used instead.'''
        self.issuer_node_mock_mode: bool = interpret_as_bool(os.getenv("ISSUER_NODE_MOCK_MODE", "False"))
        '''Skip the issuer node entirely and always issue locally signed credentials.'''

        self.wallet_universal_link_url = os.getenv("WALLET_UNIVERSAL_LINK_URL", "https://wallet.privado.id")

    def has_minimum_config(self) -> bool:
        return all([self.external_url, self.api_key, self.issuer_did, self.national_id_hash_salt])

    def fetch_url(self, claim_id: str) -> str:
        """Url the wallet posts its fetch request for the claim to."""
        return f"{self.external_url}/issuer/claim/{claim_id}/fetch"

    def revocation_url(self, revocation_nonce: int) -> str:
        return f"{self.external_url}/issuer/revocation/{revocation_nonce}"

    def get_issuer_node_client(self) -> httpx.Client:
        """Create a httpx client capable of interacting with the issuer node"""
        return _issuer_node_client(
            self.issuer_node_url,
            self.issuer_node_user,
            self.issuer_node_password,
            self.issuer_node_timeout,
            self.enable_ssl_verification,
        )


@cache
def _issuer_node_client(url: str, user: str, password: str, timeout: float, verify: bool) -> httpx.Client:
    """One client per issuer node setting, shared by all requests."""
    return httpx.Client(
        base_url=url,
        auth=httpx.BasicAuth(user, password),
        timeout=timeout,
        verify=verify,
    )


inject = Annotated[IssuerConfig, Depends(IssuerConfig)]
