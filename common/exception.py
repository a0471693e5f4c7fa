# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Error taxonomy shared by all services.

* Validation: the client can correct the request (400)
* Not found: unknown claim / verification / issuer (404)
* State conflict: "try again" (409) apart from "this is over" (410)
* Upstream unavailable: issuance backend or registry rpc could not be reached (503)

Each error renders as `{"error": ..., "error_description": ...}` plus its optional fields,
see `configure_exception_handlers`.
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

_logger = logging.getLogger(__name__)


class FieldError(BaseModel):
    field: str
    message: str


class ErrorResponse(BaseModel):
    """
    Body rendered for every error of the taxonomy.
    * error: Machine readable code identifying the exception
    * error_description: Human readable error description of the error
    * additional_error_description: Further human readable information on the error
    * details: Per field messages of validation errors
    """

    error: str
    error_description: str
    additional_error_description: str | None = None
    details: list[FieldError] | None = None


class ProtocolError(HTTPException):
    """Base class for all errors which are rendered to the client."""

    error: str = None
    """Machine readable code identifieng the exception."""

    error_description: str = None
    """Human readable error description for the error type."""

    _fields: list[str] = [
        "error",
        "error_description",
    ]
    """Fields to render into the response."""

    _optional_fields: list[str] = ["additional_error_description"]
    """Optional fiels which only get renderd into the response if available."""

    def __init__(self, status_code: int = status.HTTP_400_BAD_REQUEST, additional_error_description: str = None) -> None:
        super().__init__(status_code, self.error, headers={"Cache-Control": "no-store"})
        self.additional_error_description = additional_error_description

    def to_content(self) -> dict:
        content = {field_name: getattr(self, field_name) for field_name in self._fields}
        for field_name in self._optional_fields:
            value = getattr(self, field_name, None)
            if value is not None:
                content[field_name] = value
        return content


class ValidationFailedError(ProtocolError):
    """The request contains one or more values the client has to correct. All failures are reported at once."""

    error = "invalid_request"
    error_description = "Validation failed"
    _optional_fields = ["additional_error_description", "details"]

    def __init__(self, details: list[FieldError]) -> None:
        super().__init__(status.HTTP_400_BAD_REQUEST, "; ".join(detail.message for detail in details))
        self.details = [detail.model_dump() for detail in details]

    @staticmethod
    def single(field: str, message: str) -> "ValidationFailedError":
        return ValidationFailedError([FieldError(field=field, message=message)])


class NotFoundError(ProtocolError):
    error = "not_found"
    error_description = "The requested resource was not found"

    def __init__(self, additional_error_description: str = None) -> None:
        super().__init__(status.HTTP_404_NOT_FOUND, additional_error_description)


class ConflictError(ProtocolError):
    """The resource is in a state which does not allow the operation right now. The client may try again."""

    error = "conflict"
    error_description = "The resource is in a conflicting state"

    def __init__(self, additional_error_description: str = None) -> None:
        super().__init__(status.HTTP_409_CONFLICT, additional_error_description)


class ConcurrentModificationError(ConflictError):
    error = "concurrent_modification"
    error_description = "The resource was modified concurrently, please try again"


class GoneError(ProtocolError):
    """The resource reached a terminal state. Retrying will not change the outcome."""

    error = "gone"
    error_description = "The resource is no longer available"

    def __init__(self, additional_error_description: str = None) -> None:
        super().__init__(status.HTTP_410_GONE, additional_error_description)


class UpstreamUnavailableError(ProtocolError):
    error = "upstream_unavailable"
    error_description = "A required upstream system is currently unavailable"

    def __init__(self, additional_error_description: str = None) -> None:
        super().__init__(status.HTTP_503_SERVICE_UNAVAILABLE, additional_error_description)


def _field_name(location: tuple) -> str:
    # Drop the leading "body" / "query" / "path" part of the location
    parts = [str(part) for part in location[1:]] or [str(part) for part in location]
    return ".".join(parts)


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Configure exception handlers on the FastAPI app instance to render all `ProtocolError` the same way.
    Changed 422 Unprocessable Entity to 400 Bad Request

    Args:
        app (FastAPI): the instance to configure the handlers for.
    """

    @app.exception_handler(ProtocolError)
    async def protocol_exception_handler(request: Request, exc: ProtocolError):
        content = exc.to_content()
        _logger.info(f"Request failed {exc.status_code=} {exc.error=}")
        return JSONResponse(
            status_code=exc.status_code,
            headers=exc.headers,
            content=content,
        )

    @app.exception_handler(RequestValidationError)
    async def invalid_request_exception_handler(request: Request, exc: RequestValidationError):
        """
        Recasts pydantic validation errors to `ValidationFailedError`
        """
        wrapper_exception = ValidationFailedError([FieldError(field=_field_name(tuple(error["loc"])), message=error["msg"]) for error in exc.errors()])
        return await protocol_exception_handler(request, wrapper_exception)
