# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""Configuration definition and collector of default values."""

import os
from typing import Annotated

from fastapi import Depends

import common.config as conf


class RegistryConfig(conf.Config):
    def __init__(self):
        super().__init__()
        self.app_name = os.getenv("APP_NAME", "Issuer Registry")

        self.registry_admin_private_key = os.getenv("REGISTRY_ADMIN_PRIVATE_KEY")
        '''Key of the registry owner account. Only needed to register issuers, reads work without it.'''


inject = Annotated[RegistryConfig, Depends(RegistryConfig)]
