from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

LOGGER = logging.getLogger(__name__)


class ServiceCenterError(RuntimeError):
    user_message: str = "An unexpected error occurred."
    status_code: ClassVar[int] = 400

    def __str__(self) -> str:
        return self.user_message


@dataclass(slots=True)
class NotLoggedInError(ServiceCenterError):
    user_message: str = "Please log in first."
    status_code: ClassVar[int] = 401


@dataclass(slots=True)
class PermissionDeniedError(ServiceCenterError):
    user_message: str = "Your role cannot perform this action."
    status_code: ClassVar[int] = 403


@dataclass(slots=True)
class TicketNotFoundError(ServiceCenterError):
    user_message: str = "The requested ticket could not be found."
    status_code: ClassVar[int] = 404


@dataclass(slots=True)
class TechnicianNotFoundError(ServiceCenterError):
    user_message: str = "The requested technician could not be found."
    status_code: ClassVar[int] = 404


@dataclass(slots=True)
class ValidationError(ServiceCenterError):
    user_message: str = "The provided input is not valid."
    status_code: ClassVar[int] = 400


@dataclass(slots=True)
class ExtractionError(ServiceCenterError):
    user_message: str = "Could not read ticket details from the input."
    status_code: ClassVar[int] = 502


@dataclass(slots=True)
class ExtractorUnavailableError(ServiceCenterError):
    user_message: str = "Draft extraction is not configured."
    status_code: ClassVar[int] = 503


@dataclass(slots=True)
class UpstreamError(ServiceCenterError):
    user_message: str = "The automation server could not be reached."
    detail: str = ""
    status_code: ClassVar[int] = 502


def error_envelope(message: str, **extra: object) -> dict[str, object]:
    return {"success": False, "message": message, **extra}


async def handle_service_center_error(request: Request, error: Exception) -> JSONResponse:
    assert isinstance(error, ServiceCenterError)
    LOGGER.info(
        "Request rejected. path=%s status=%s reason=%s",
        request.url.path,
        error.status_code,
        error.user_message,
    )
    extra = {"error": error.detail} if isinstance(error, UpstreamError) and error.detail else {}
    return JSONResponse(status_code=error.status_code, content=error_envelope(error.user_message, **extra))


async def handle_http_error(request: Request, error: Exception) -> JSONResponse:
    assert isinstance(error, StarletteHTTPException)
    if error.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return JSONResponse(status_code=error.status_code, content=error_envelope(str(error.detail)))


async def handle_request_validation_error(request: Request, error: Exception) -> JSONResponse:
    assert isinstance(error, RequestValidationError)
    return JSONResponse(
        status_code=422,
        content=error_envelope("Please fill in all required fields.", errors=jsonable_encoder(error.errors())),
    )


async def handle_unexpected_error(request: Request, error: Exception) -> JSONResponse:
    LOGGER.exception("Unhandled error. method=%s path=%s", request.method, request.url.path, exc_info=error)
    return JSONResponse(status_code=500, content=error_envelope("Something went wrong"))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceCenterError, handle_service_center_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
