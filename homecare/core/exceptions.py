from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from homecare.core.metrics import DOMAIN_ERRORS
from homecare.core.request_context import request_id_ctx_var


class DomainError(Exception):
    """Base class for workflow errors the acting user can correct and retry.

    Each subclass names its ``kind`` (surfaced to clients as ``errorKind``) and
    the HTTP status it maps to. ``detail`` carries structured data such as the
    list of missing consents or the status a record is already in.
    """

    kind = "DomainError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, detail: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class InvalidTransition(DomainError):
    kind = "InvalidTransition"
    status_code = status.HTTP_409_CONFLICT


class InvalidSchedule(DomainError):
    kind = "InvalidSchedule"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class InvalidRequest(DomainError):
    kind = "InvalidRequest"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class NotAssigned(DomainError):
    kind = "NotAssigned"
    status_code = status.HTTP_403_FORBIDDEN


class ProviderNotQualified(DomainError):
    kind = "ProviderNotQualified"
    status_code = status.HTTP_409_CONFLICT


class ProviderUnavailable(DomainError):
    kind = "ProviderUnavailable"
    status_code = status.HTTP_409_CONFLICT


class DuplicateRequest(DomainError):
    kind = "DuplicateRequest"
    status_code = status.HTTP_409_CONFLICT


class DuplicatePending(DomainError):
    kind = "DuplicatePending"
    status_code = status.HTTP_409_CONFLICT


class AlreadyResolved(DomainError):
    kind = "AlreadyResolved"
    status_code = status.HTTP_409_CONFLICT


class ConsentRequired(DomainError):
    kind = "ConsentRequired"
    status_code = status.HTTP_428_PRECONDITION_REQUIRED

    def __init__(self, missing_types: list[str]) -> None:
        super().__init__(
            message=f"Required consents not accepted: {', '.join(missing_types)}",
            detail={"missing_consents": missing_types},
        )
        self.missing_types = missing_types


class PaymentInitiationFailed(DomainError):
    kind = "PaymentInitiationFailed"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(self, reason: str) -> None:
        super().__init__(message=f"Payment initiation failed: {reason}", detail={"reason": reason})
        self.reason = reason


def _error_payload(code: str, message: str, detail, kind: str | None = None):
    error = {
        "code": code,
        "message": message,
        "detail": detail,
    }
    payload = {
        "error": error,
        "detail": detail,
        "request_id": request_id_ctx_var.get(),
    }
    if kind is not None:
        error["kind"] = kind
        payload["errorKind"] = kind
        payload["message"] = message
    return payload


async def http_exception_handler(_: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=str(exc.detail),
            detail=exc.detail,
        ),
        headers=exc.headers,
    )


async def validation_exception_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_payload(
            code="validation_error",
            message="Request validation failed",
            detail=exc.errors(),
        ),
    )


async def domain_exception_handler(_: Request, exc: DomainError) -> JSONResponse:
    DOMAIN_ERRORS.labels(error_kind=exc.kind).inc()
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_payload(
            code=f"http_{exc.status_code}",
            message=exc.message,
            detail=exc.detail if exc.detail is not None else exc.message,
            kind=exc.kind,
        ),
    )
