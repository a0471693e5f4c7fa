# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Credential Verifier

Requests zero knowledge proofs about workforce credentials and checks the issuer
against the on-chain issuer registry.

iden3comm protocol (authorization request / response)
https://iden3-communication.io/authorization/overview/
"""

from common.exception import configure_exception_handlers
from common.fastapi_extensions import ExtendedFastAPI

import verifier.route.generic_verifier as generic
import verifier.route.callback as callback
import verifier.route.health as health
import verifier.timeout as timeout

from verifier import config as conf


app = ExtendedFastAPI(
    conf.VerifierConfig,
    lifespan_functions=[timeout.expiry_sweep_lifespan()],
)
app.include_router(generic.router)
app.include_router(callback.router)
app.include_router(health.router)

configure_exception_handlers(app)
