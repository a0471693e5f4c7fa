# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Provides general Environment Variables for FastAPI dependcy injection
"""

import os
from typing import Annotated

from fastapi import Depends

from common.parsing import interpret_as_bool


class Config:
    def __init__(self):
        self.enable_debug_mode: bool = interpret_as_bool(os.environ.get("ENABLE_DEBUG_MODE", "False"))
        '''General debug mode configuration enabler.'''

        self.external_url = os.getenv("EXTERNAL_URL", "http://localhost:8000")
        '''Public base url of the service. Wallet facing urls (fetch, callback, revocation) are built from it.'''
        self.api_key = os.getenv("API_KEY", "tergum_dev_key")
        '''Apikey to use for the application. Default: "tergum_dev_key".'''

        self.enable_ssl_verification: bool = interpret_as_bool(os.environ.get("ENABLE_SSL_VERIFICATION", not self.enable_debug_mode))
        '''
        Enable ssl verification for outgoing requests.
        Default is True, but False in DEBUG_MODE.
        '''
        self.app_name = os.getenv("APP_NAME", "anonymous")
        '''
        Human readable application name used for loggin
        '''
        self.log_level = os.getenv('LOG_LEVEL', 'INFO')
        self.enable_documentation_endpoints: bool = interpret_as_bool(os.environ.get("ENABLE_DOCUMENTATION_ENDPOINTS", self.enable_debug_mode))
        '''
        Enable /doc and /redoc endpoint.
        Default is False, but True in DEBUG_MODE.
        '''
        self.enable_cors: bool = interpret_as_bool(os.environ.get("ENABLE_CORS", self.enable_debug_mode))
        '''
        Enable CORs for incomming openapi requests
        Default is False, but True in DEBUG_MODE.
        '''
        self.additional_allowed_origins = os.environ.get('ADDITIONAL_ALLOWED_ORIGINS', '')
        '''
        If CORs is enabled additional allowed origins e.g confluence can be defined as comma separated list of url (e.g. URL,URL,URL)
        '''
        self.enable_splunk_log: bool = interpret_as_bool(os.environ.get("ENABLE_SPLUNK_LOG", not self.enable_debug_mode))
        '''
        Enable Splunk compatible log format.
        Default is False, but True in DEBUG_MODE.
        '''

        # Credential schema
        self.schema_base_url = os.getenv("SCHEMA_BASE_URL", "https://bharatverify.io/schemas/v1")
        '''Base url under which the json-ld context and json schema of the credential are published.'''
        self.credential_type = os.getenv("CREDENTIAL_TYPE", "IndianWorkforceCredential")

        self.wallet_allowed_origin = os.getenv("WALLET_ALLOWED_ORIGIN", "*")
        '''
        Origin allowed to call the wallet facing endpoints (fetch, callback, revocation).
        Those are called from the wallet directly and therefore always answer with CORs headers.
        '''

        # On-chain issuer registry
        self.registry_rpc_url = os.getenv("REGISTRY_RPC_URL", "https://rpc-amoy.polygon.technology")
        self.registry_contract_address = os.getenv("REGISTRY_CONTRACT_ADDRESS")
        '''Address of the issuer registry contract. Registry checks are unavailable without it.'''
        self.registry_chain_id = int(os.getenv("REGISTRY_CHAIN_ID", 80002))
        self.registry_timeout = float(os.getenv("REGISTRY_TIMEOUT", 5))
        '''Seconds an rpc call to the registry may take before it is treated as unavailable.'''

    @property
    def credential_context_url(self) -> str:
        return f"{self.schema_base_url}/{self.credential_type}.jsonld"

    @property
    def credential_schema_url(self) -> str:
        return f"{self.schema_base_url}/{self.credential_type}.json"


inject = Annotated[Config, Depends(Config)]


class DBConfig:
    def __init__(self):
        self.SQLALCHEMY_DATABASE_URL = os.getenv("DB_CONNECTION", "postgresql://postgres:mysecretpassword@db/workforce")
        self.SQLALCHEMY_DATABASE_SCHEMA = os.getenv("DB_SCHEMA", "credential")
        component = os.getenv("COMPONENT", "common/db")
        """Folder holding the alembic.ini"""
        self.ALEMBIC_CONFIG_FILE = f"{component}/alembic.ini"


inject_db_config = Annotated[DBConfig, Depends(DBConfig)]
