# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""This file defines the custom health checks for the application."""

import logging

from fastapi import Response
from sqlalchemy.orm import Session

from common import health
import common.db.postgres as db
import common.key_configuration as key

import issuer.config as conf
from issuer import issuance_backend

_logger = logging.getLogger(__name__)


class DebugHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    config_minimum_present: health.HealthStatus = health.HealthStatus.unhealthy


class ReadinessHealthResponse(health.ReadinessHealthResponseWithDBInject):
    """Response body model for health request operation.

    The issuer node is reported unhealthy in mock mode as well. Issuance still works,
    credentials are signed locally then.
    """

    issuer_node_connectivity: health.HealthStatus = health.HealthStatus.unhealthy


class LivenessHealthResponse(health.HealthResponse):
    """Response body model for health request operation."""

    signing_key_is_available: health.HealthStatus = health.HealthStatus.unhealthy


class IssuerHealthAPIRouter(health.HealthAPIRouterWithDBInject):
    def __init__(self) -> None:
        super().__init__(
            readiness_response_model=ReadinessHealthResponse,
            liveness_response_model=LivenessHealthResponse,
            debug_response_model=DebugHealthResponse,
        )

    def _build_readiness_probe(
        self,
        result: ReadinessHealthResponse,
        response: Response,
        config: conf.IssuerConfig,
        session: Session,
        backend: issuance_backend.IssuanceBackend,
    ) -> ReadinessHealthResponse:
        result.issuer_node_connectivity = backend.is_reachable()
        _logger.debug(f"Issuer node running in {backend.mode} mode")
        return super()._build_readiness_probe(result, response, config, session)

    def get_readiness_probe(
        self,
        response: Response,
        config: conf.inject,
        session: db.inject,
        backend: issuance_backend.inject,
    ) -> ReadinessHealthResponse:
        return self._build_readiness_probe(ReadinessHealthResponse(), response, config, session, backend)

    def _build_liveness_probe(
        self,
        result: LivenessHealthResponse,
        response: Response,
        config: conf.IssuerConfig,
        key_conf: key.KeyConfiguration,
    ) -> LivenessHealthResponse:
        """Provides information regarding issues which could be
        resolved through a application instance restart."""
        result.signing_key_is_available = key_conf.private_jwk.has_private
        return super()._build_liveness_probe(result, response, config)

    def get_liveness_probe(
        self,
        response: Response,
        config: conf.inject,
        key_conf: key.inject,
    ) -> LivenessHealthResponse:
        """Determines whether the application instance needs to be restarted."""
        return self._build_liveness_probe(LivenessHealthResponse(), response, config, key_conf)

    def _build_debug_probe(self, result: DebugHealthResponse, response: Response, config: conf.IssuerConfig) -> DebugHealthResponse:
        result.config_minimum_present = config.has_minimum_config()
        return super()._build_debug_probe(result, response, config)

    def get_debug_probe(self, response: Response, config: conf.inject) -> DebugHealthResponse:
        return self._build_debug_probe(DebugHealthResponse(), response, config)


router = IssuerHealthAPIRouter()
