# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""This file defines the custom health checks for the application."""

from fastapi import Response
from sqlalchemy.orm import Session

from common import health
from common import registry_client
import common.db.postgres as db

from verifier import config as conf


class DebugHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    configuration_verifier_has_minimum_config: health.HealthStatus = health.HealthStatus.unhealthy
    configuration_registry_contract_present: health.HealthStatus = health.HealthStatus.unhealthy


class ReadinessHealthResponse(health.ReadinessHealthResponseWithDBInject):
    """Response body model for health request operation.

    Without the registry proofs are still evaluated, but no issuer with an on-chain address is authorized.
    """

    registry_connectivity: health.HealthStatus = health.HealthStatus.unhealthy


class VerifierHealthAPIRouter(health.HealthAPIRouterWithDBInject):
    def __init__(self) -> None:
        super().__init__(
            readiness_response_model=ReadinessHealthResponse,
            debug_response_model=DebugHealthResponse,
        )

    def _build_readiness_probe(
        self,
        result: ReadinessHealthResponse,
        response: Response,
        config: conf.VerifierConfig,
        session: Session,
        registry: registry_client.IssuerRegistry,
    ) -> ReadinessHealthResponse:
        result.registry_connectivity = registry.is_reachable()
        return super()._build_readiness_probe(result, response, config, session)

    def get_readiness_probe(
        self,
        response: Response,
        config: conf.inject,
        session: db.inject,
        registry: registry_client.inject,
    ) -> ReadinessHealthResponse:
        return self._build_readiness_probe(ReadinessHealthResponse(), response, config, session, registry)

    def _build_debug_probe(
        self,
        result: DebugHealthResponse,
        response: Response,
        config: conf.VerifierConfig,
    ) -> DebugHealthResponse:
        result.configuration_verifier_has_minimum_config = bool(config.has_minimum_config())
        result.configuration_registry_contract_present = bool(config.registry_contract_address)
        return super()._build_debug_probe(result, response, config)

    def get_debug_probe(
        self,
        response: Response,
        config: conf.inject,
    ):
        return self._build_debug_probe(
            result=DebugHealthResponse(),
            response=response,
            config=config,
        )


router = VerifierHealthAPIRouter()
