# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Client for the on-chain issuer allow-list.

The registry contract maps issuer addresses to their name, type, registration time and
active flag. Every rpc call is bounded by the configured timeout. Failures surface as
`RegistryUnavailableError`, callers decide how to degrade.
"""

import logging
import re
from abc import ABC, abstractmethod
from functools import cache
from typing import Annotated

from fastapi import Depends
from pydantic import BaseModel
from web3 import Web3

import common.config as conf

_logger = logging.getLogger(__name__)

_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")

ISSUER_REGISTRY_ABI = [
    {
        "name": "isIssuerAuthorized",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "issuer", "type": "address"}],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "getIssuerInfo",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "issuer", "type": "address"}],
        "outputs": [
            {"name": "name", "type": "string"},
            {"name": "issuerType", "type": "string"},
            {"name": "registeredAt", "type": "uint256"},
            {"name": "isActive", "type": "bool"},
        ],
    },
    {
        "name": "getAllIssuers",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "name": "getActiveIssuers",
        "type": "function",
        "stateMutability": "view",
        "inputs": [],
        "outputs": [{"name": "", "type": "address[]"}],
    },
    {
        "name": "addIssuer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "issuer", "type": "address"},
            {"name": "name", "type": "string"},
            {"name": "issuerType", "type": "string"},
        ],
        "outputs": [],
    },
]


def is_address(value: object) -> bool:
    return isinstance(value, str) and _ADDRESS.match(value) is not None


def extract_address(identifier: str | None) -> str | None:
    """
    The on-chain address of an issuer identifier.
    Accepts plain addresses and DIDs whose last segment is one (did:pkh, did:ethr).
    Other identifiers (e.g. did:polygonid) do not resolve to an address.
    """
    if not isinstance(identifier, str):
        return None
    candidate = identifier.rsplit(":", 1)[-1]
    return candidate if is_address(candidate) else None


class IssuerInfo(BaseModel):
    address: str
    name: str
    issuer_type: str
    registered_at: int
    """Unix timestamp of the registration."""
    is_active: bool


class RegistryUnavailableError(Exception):
    """The registry could not be queried: not configured, rpc unreachable or timed out."""


class IssuerRegistry(ABC):
    @abstractmethod
    def is_authorized(self, address: str) -> bool:
        pass

    @abstractmethod
    def info(self, address: str) -> IssuerInfo | None:
        """None if the address was never registered."""

    @abstractmethod
    def list(self, active_only: bool = True) -> list[str]:
        pass

    @abstractmethod
    def add(self, address: str, name: str, issuer_type: str) -> str:
        """Registers the issuer and returns the transaction hash."""

    @abstractmethod
    def is_reachable(self) -> bool:
        pass


class Web3IssuerRegistry(IssuerRegistry):
    """`IssuerRegistry` backed by the registry contract, accessed with web3 over http rpc."""

    def __init__(self, rpc_url: str, contract_address: str, chain_id: int, timeout: float, admin_private_key: str | None = None) -> None:
        self._web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        self._contract = self._web3.eth.contract(address=Web3.to_checksum_address(contract_address), abi=ISSUER_REGISTRY_ABI)
        self._chain_id = chain_id
        self._timeout = timeout
        self._admin_private_key = admin_private_key

    def _call(self, function_name: str, *args):
        try:
            return getattr(self._contract.functions, function_name)(*args).call()
        except Exception as e:
            raise RegistryUnavailableError(f"Registry call {function_name} failed") from e

    def is_authorized(self, address: str) -> bool:
        return bool(self._call("isIssuerAuthorized", Web3.to_checksum_address(address)))

    def info(self, address: str) -> IssuerInfo | None:
        name, issuer_type, registered_at, is_active = self._call("getIssuerInfo", Web3.to_checksum_address(address))
        if registered_at == 0:
            return None
        return IssuerInfo(address=address, name=name, issuer_type=issuer_type, registered_at=registered_at, is_active=is_active)

    def list(self, active_only: bool = True) -> list[str]:
        return list(self._call("getActiveIssuers" if active_only else "getAllIssuers"))

    def add(self, address: str, name: str, issuer_type: str) -> str:
        if not self._admin_private_key:
            raise RegistryUnavailableError("No registry admin key configured")
        try:
            account = self._web3.eth.account.from_key(self._admin_private_key)
            transaction = self._contract.functions.addIssuer(Web3.to_checksum_address(address), name, issuer_type).build_transaction(
                {
                    "from": account.address,
                    "nonce": self._web3.eth.get_transaction_count(account.address),
                    "chainId": self._chain_id,
                }
            )
            signed = account.sign_transaction(transaction)
            transaction_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
            receipt = self._web3.eth.wait_for_transaction_receipt(transaction_hash, timeout=self._timeout * 12)
        except Exception as e:
            raise RegistryUnavailableError(f"Registering issuer {address} failed") from e
        _logger.info(f"Registered issuer {address} in block {receipt['blockNumber']}")
        return Web3.to_hex(receipt["transactionHash"])

    def is_reachable(self) -> bool:
        try:
            return self._web3.is_connected()
        except Exception:
            _logger.exception("Error in registry reachability probe.")
            return False


class UnconfiguredIssuerRegistry(IssuerRegistry):
    """Stands in when no contract address is configured. Every query is unavailable."""

    def _unavailable(self):
        raise RegistryUnavailableError("Registry contract address is not configured")

    def is_authorized(self, address: str) -> bool:
        self._unavailable()

    def info(self, address: str) -> IssuerInfo | None:
        self._unavailable()

    def list(self, active_only: bool = True) -> list[str]:
        self._unavailable()

    def add(self, address: str, name: str, issuer_type: str) -> str:
        self._unavailable()

    def is_reachable(self) -> bool:
        return False


@cache
def _web3_registry(rpc_url: str, contract_address: str, chain_id: int, timeout: float, admin_private_key: str | None) -> Web3IssuerRegistry:
    return Web3IssuerRegistry(rpc_url, contract_address, chain_id, timeout, admin_private_key)


def build_issuer_registry(config: conf.Config, admin_private_key: str | None = None) -> IssuerRegistry:
    if not config.registry_contract_address:
        return UnconfiguredIssuerRegistry()
    return _web3_registry(
        config.registry_rpc_url,
        config.registry_contract_address,
        config.registry_chain_id,
        config.registry_timeout,
        admin_private_key,
    )


def get_issuer_registry(config: conf.inject) -> IssuerRegistry:
    """Read only registry client."""
    return build_issuer_registry(config)


inject = Annotated[IssuerRegistry, Depends(get_issuer_registry)]
