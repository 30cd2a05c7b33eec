import logging
import time
from uuid import uuid4

from fastapi import FastAPI
from fastapi import HTTPException
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError

from homecare.api.v1.auth import router as auth_router
from homecare.api.v1.bookings import router as bookings_router
from homecare.api.v1.consents import router as consents_router
from homecare.api.v1.patients import router as patients_router
from homecare.api.v1.payments import router as payments_router
from homecare.api.v1.providers import router as providers_router
from homecare.api.v1.rejection_requests import router as rejection_requests_router
from homecare.api.v1.service_requests import router as service_requests_router
from homecare.api.v1.services import router as services_router
from homecare.api.v1.users import router as users_router
from homecare.core.exceptions import (
    DomainError,
    domain_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from homecare.core.logging import setup_logging
from homecare.core.metrics import REQUEST_COUNT, REQUEST_LATENCY, render_metrics
from homecare.core.request_context import request_id_ctx_var

app = FastAPI(title="Home Care Booking API", version="0.1.0")
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(DomainError, domain_exception_handler)
setup_logging()
logger = logging.getLogger("homecare.request")

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(services_router)
app.include_router(providers_router)
app.include_router(service_requests_router)
app.include_router(consents_router)
app.include_router(patients_router)
app.include_router(bookings_router)
app.include_router(rejection_requests_router)
app.include_router(payments_router)


@app.middleware("http")
async def observability_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or str(uuid4())
    token = request_id_ctx_var.set(request_id)
    start = time.perf_counter()
    method = request.method
    try:
        response = await call_next(request)
    except Exception:
        elapsed = time.perf_counter() - start
        path = _route_path(request)
        REQUEST_COUNT.labels(method=method, path=path, status_code=500).inc()
        REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
        logger.exception(
            "request_failed method=%s path=%s status=500 duration_ms=%.2f",
            method,
            path,
            elapsed * 1000,
        )
        request_id_ctx_var.reset(token)
        raise

    elapsed = time.perf_counter() - start
    path = _route_path(request)
    REQUEST_COUNT.labels(method=method, path=path, status_code=response.status_code).inc()
    REQUEST_LATENCY.labels(method=method, path=path).observe(elapsed)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed method=%s path=%s status=%s duration_ms=%.2f",
        method,
        path,
        response.status_code,
        elapsed * 1000,
    )
    request_id_ctx_var.reset(token)
    return response


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["observability"])
def metrics() -> Response:
    payload, content_type = render_metrics()
    return Response(content=payload, media_type=content_type)
