# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

import time

from common.registry_client import IssuerInfo, IssuerRegistry, RegistryUnavailableError

AUTHORIZED_ISSUER_ADDRESS = "0x1111111111111111111111111111111111111111"
UNAUTHORIZED_ISSUER_ADDRESS = "0x2222222222222222222222222222222222222222"


class FakeIssuerRegistry(IssuerRegistry):
    """In memory issuer registry. Set `available` to False to simulate an unreachable rpc."""

    def __init__(self, authorized: list[str] | None = None) -> None:
        self.available = True
        self.issuers: dict[str, IssuerInfo] = {}
        self.checked: list[str] = []
        for address in authorized or []:
            self.register(address, "Test University", "university")

    def register(self, address: str, name: str, issuer_type: str, is_active: bool = True) -> None:
        self.issuers[address.lower()] = IssuerInfo(address=address, name=name, issuer_type=issuer_type, registered_at=int(time.time()), is_active=is_active)

    def _ensure_available(self) -> None:
        if not self.available:
            raise RegistryUnavailableError("Registry unavailable in test")

    def is_authorized(self, address: str) -> bool:
        self._ensure_available()
        self.checked.append(address)
        issuer = self.issuers.get(address.lower())
        return issuer is not None and issuer.is_active

    def info(self, address: str) -> IssuerInfo | None:
        self._ensure_available()
        return self.issuers.get(address.lower())

    def list(self, active_only: bool = True) -> list[str]:
        self._ensure_available()
        return [issuer.address for issuer in self.issuers.values() if issuer.is_active or not active_only]

    def add(self, address: str, name: str, issuer_type: str) -> str:
        self._ensure_available()
        self.register(address, name, issuer_type)
        return "0x" + "ab" * 32

    def is_reachable(self) -> bool:
        return self.available
