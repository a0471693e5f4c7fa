# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from functools import cache

from jwcrypto import jwk

from common.key_configuration import KeyConfiguration


@cache
def generate_key_configuration() -> KeyConfiguration:
    """Signing key for tests, generated once per test run."""
    key = jwk.JWK.generate(kty="EC", crv="P-521")
    return KeyConfiguration(
        public_key=key.export_to_pem().decode(),
        private_key=key.export_to_pem(private_key=True, password=None).decode(),
        signing_algorithm="ES512",
    )
