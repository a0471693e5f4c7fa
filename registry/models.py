# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

from pydantic import BaseModel

from common.registry_client import IssuerInfo


class RegistryCheckResponse(BaseModel):
    address: str
    authorized: bool
    issuer: IssuerInfo | None = None
    """Registration details, None if the address was never registered."""


class IssuerList(BaseModel):
    issuers: list[str]
    active_only: bool


class AddIssuerRequest(BaseModel):
    address: str
    name: str
    issuer_type: str
    """Kind of organisation, e.g. university or employer."""


class AddIssuerResponse(BaseModel):
    address: str
    transaction_hash: str | None = None
    """None if the issuer was authorized already and nothing was written."""
    already_registered: bool
