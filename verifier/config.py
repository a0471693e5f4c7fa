# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import os
import common.config as conf
from typing import Annotated
from fastapi import Depends


class VerifierConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Verifier Agent")
        self.verifier_did = os.getenv("VERIFIER_DID", "did:polygonid:polygon:amoy:2qFbNk2D2EA24qVvzSVBAsYCPjGrxyG4p3Fv6W1RuY")
        '''Identifier of this verifier, used as `from` of authorization requests and responses.'''
        self.verification_window = int(os.getenv("VERIFICATION_WINDOW", 900))
        """
        Seconds a verification stays open for the wallet (15 minutes).
        Afterwards the session is expired, no matter if a proof arrives.
        """
        self.expiry_sweep_interval = int(os.getenv("EXPIRY_SWEEP_INTERVAL", 300))
        '''Seconds between two runs of the background job expiring stale sessions.'''
        self.wallet_universal_link_url = os.getenv("WALLET_UNIVERSAL_LINK_URL", "https://wallet.privado.id")

    @property
    def callback_url(self) -> str:
        """Url the wallet posts its proof to."""
        return f"{self.external_url}/verifier/callback"

    def has_minimum_config(self) -> bool:
        return all([self.external_url, self.api_key, self.verifier_did])


inject = Annotated[VerifierConfig, Depends(VerifierConfig)]
