# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential Issuer

Issues workforce credentials to identity wallets.

iden3comm protocol (credential offer, fetch request, issuance)
https://iden3-communication.io/credentials/overview/

W3C Verifiable Credential
https://www.w3.org/TR/vc-data-model/
"""

from common.exception import configure_exception_handlers
from common.fastapi_extensions import ExtendedFastAPI

import issuer.route.claims as claims
import issuer.route.wallet as wallet
import issuer.route.health as health
import issuer.config as conf

app = ExtendedFastAPI(conf.IssuerConfig)

app.include_router(claims.router)
app.include_router(wallet.router)
app.include_router(health.router)

configure_exception_handlers(app)
