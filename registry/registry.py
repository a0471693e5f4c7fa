# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Issuer Registry

REST facade of the on-chain allow-list of accredited issuers.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Response, Security, status

from common.apikey import require_api_key
from common.exception import ErrorResponse, NotFoundError, UpstreamUnavailableError, ValidationFailedError, configure_exception_handlers
from common.fastapi_extensions import ExtendedFastAPI
from common.health import HealthAPIRouter, HealthResponse, HealthStatus
from common import registry_client
from common.registry_client import IssuerRegistry, RegistryUnavailableError, is_address

from registry import config as conf
from registry import models

_logger = logging.getLogger(__name__)


class RegistryUnavailableResponseError(UpstreamUnavailableError):
    error = "registry_unavailable"
    error_description = "The issuer registry can not be reached"


class IssuerNotFoundError(NotFoundError):
    error = "issuer_not_found"
    error_description = "The address is not registered as issuer"


def get_admin_registry(config: conf.inject) -> IssuerRegistry:
    """Registry client able to write, using the admin key of the configuration."""
    return registry_client.build_issuer_registry(config, config.registry_admin_private_key)


inject_admin = Annotated[IssuerRegistry, Depends(get_admin_registry)]


def _checked_address(address: str) -> str:
    address = address.strip()
    if not is_address(address):
        raise ValidationFailedError.single("address", "address must be 0x followed by 40 hex characters")
    return address


app = ExtendedFastAPI(conf.RegistryConfig)

registry_route = APIRouter(
    prefix="/registry",
    tags=["Registry"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse, "description": "Registry rpc unreachable or not configured"},
    },
)

#################
# REST Endpoint #
#################


@registry_route.get("/check/{address}", description="Whether the address is an authorized issuer")
def check_issuer(address: str, registry: registry_client.inject) -> models.RegistryCheckResponse:
    address = _checked_address(address)
    try:
        authorized = registry.is_authorized(address)
        issuer = registry.info(address)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableResponseError(str(e)) from e
    return models.RegistryCheckResponse(address=address, authorized=authorized, issuer=issuer)


@registry_route.get("/issuers", description="Lists the registered issuers")
def get_issuers(registry: registry_client.inject, active_only: bool = True) -> models.IssuerList:
    try:
        issuers = registry.list(active_only)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableResponseError(str(e)) from e
    return models.IssuerList(issuers=issuers, active_only=active_only)


@registry_route.get("/issuers/{address}", responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}})
def get_issuer(address: str, registry: registry_client.inject) -> registry_client.IssuerInfo:
    address = _checked_address(address)
    try:
        issuer = registry.info(address)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableResponseError(str(e)) from e
    if issuer is None:
        raise IssuerNotFoundError(f"{address=}")
    return issuer


@registry_route.post(
    "/issuers",
    dependencies=[Security(require_api_key)],
    status_code=status.HTTP_201_CREATED,
    description="Registers an issuer. Nothing is written if the issuer is authorized already.",
)
def add_issuer(data: models.AddIssuerRequest, registry: inject_admin, response: Response) -> models.AddIssuerResponse:
    address = _checked_address(data.address)
    try:
        if registry.is_authorized(address):
            _logger.info(f"Issuer {address} already authorized")
            response.status_code = status.HTTP_200_OK
            return models.AddIssuerResponse(address=address, already_registered=True)
        transaction_hash = registry.add(address, data.name, data.issuer_type)
    except RegistryUnavailableError as e:
        raise RegistryUnavailableResponseError(str(e)) from e
    _logger.info(f"Issuer {address} registered with transaction {transaction_hash}")
    return models.AddIssuerResponse(address=address, transaction_hash=transaction_hash, already_registered=False)


##########
# Health #
##########


class ReadinessHealthResponse(HealthResponse):
    """Response body model for health request operation."""

    registry_connectivity: HealthStatus = HealthStatus.unhealthy


class RegistryHealthAPIRouter(HealthAPIRouter):
    def __init__(self) -> None:
        super().__init__(readiness_response_model=ReadinessHealthResponse)

    def _build_readiness_probe(self, result: ReadinessHealthResponse, response: Response, config: conf.RegistryConfig, registry: IssuerRegistry) -> ReadinessHealthResponse:
        result.registry_connectivity = registry.is_reachable()
        return super()._build_readiness_probe(result, response, config)

    def get_readiness_probe(self, response: Response, config: conf.inject, registry: registry_client.inject) -> ReadinessHealthResponse:
        return self._build_readiness_probe(ReadinessHealthResponse(), response, config, registry)


app.include_router(registry_route)
app.include_router(RegistryHealthAPIRouter())
configure_exception_handlers(app)
