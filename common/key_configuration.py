# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Loading of the signing key used for locally signed credentials.
"""

import os
from typing import Annotated
from functools import cache

from fastapi import Depends
from jwcrypto import jwk, jws, common as jw_common

from common.parsing import object_to_url_safe


def _load_key_file(key_file: str) -> str:
    with open(key_file) as f:
        return f.read()


def _load_key(env_var: str, file: str) -> str:
    key = os.getenv(env_var)
    if not key:
        key = _load_key_file(file)
    return key


class KeyConfiguration:
    """
    Holds Public & Private Keys
    """

    @staticmethod
    def load(key_folder: str = "cert"):
        public_key = _load_key(env_var="SIGNING_KEY_PUBLIC", file=f"{key_folder}/ec_public.pem")
        private_key = _load_key(env_var="SIGNING_KEY_PRIVATE", file=f"{key_folder}/ec_private.pem")
        signing_algorithm = os.getenv("SIGNING_ALGORITHM", "ES512")
        return KeyConfiguration(public_key, private_key, signing_algorithm)

    def __init__(self, public_key: str, private_key: str, signing_algorithm: str):
        """
        Keys are the pem bytes utf-8 encoded
        """
        self.signing_algorithm: str = signing_algorithm
        self.public_jwk = jwk.JWK.from_pem(public_key.encode())
        self.private_jwk = jwk.JWK.from_pem(private_key.encode())

    def encode_jwt(self, payload: dict, header: dict = None) -> str:
        """Compact JWS over the json encoded payload."""
        if not header:
            header = {}
        if 'alg' not in header:
            header['alg'] = self.signing_algorithm
            header['typ'] = 'vc+jwt'

        signer = jws.JWS(jw_common.json_encode(payload))
        signer.add_signature(key=self.private_jwk, protected=jw_common.json_encode(header))
        return signer.serialize(compact=True)

    @property
    def jwks(self) -> dict:
        """
        JSON Web Key Set with public signing key
        """
        return {"keys": [self.public_jwk.export_public(as_dict=True)]}

    @property
    def jwk_did(self) -> str:
        """
        DID JWK with public signing key
        """
        return f'did:jwk:{object_to_url_safe(self.public_jwk.export_public(as_dict=True))}'


@cache
def get_key_configuration() -> KeyConfiguration:
    return KeyConfiguration.load()


inject = Annotated[KeyConfiguration, Depends(get_key_configuration)]
