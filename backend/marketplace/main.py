# backend/marketplace/main.py

import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError, TimeoutError as SA_TimeoutError
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import models  # noqa: F401  registers every table on Base.metadata
from .api import api_admin, api_artist, api_booking, api_payment, api_review, auth
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, engine
from .services.admin_bootstrap import ensure_default_admin
from .utils.errors import ServiceError

setup_logging()
logger = logging.getLogger(__name__)

_BOOT_TS = time.time()

Base.metadata.create_all(bind=engine)

app = FastAPI(title="Creative Marketplace API", default_response_class=ORJSONResponse)
setup_tracer(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


def _error_body(kind: str, message, **extra) -> dict:
    body = {"success": False, "kind": kind, "message": message}
    body.update(extra)
    return body


_HTTP_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    503: "unavailable",
}


@app.middleware("http")
async def catch_exceptions(request: Request, call_next):
    """Return JSON envelopes for errors that escape the route handlers."""
    try:
        response = await call_next(request)
    except (SA_TimeoutError, OperationalError) as exc:  # DB pool timeout / outage -> 503
        logger.error("DB unavailable at %s: %s", request.url.path, str(exc))
        response = ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_error_body("unavailable", "Database busy, please retry"),
        )
    except Exception as exc:  # pragma: no cover - generic handler
        logger.exception("Unhandled error: %s", exc)
        response = ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("internal", "Internal Server Error"),
        )
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s at %s: %s", exc.kind, request.url.path, exc.message)
    headers = {"Retry-After": "5"} if exc.retryable else None
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.error("HTTP error %s at %s: %s", exc.status_code, request.url.path, exc.detail)
    detail = exc.detail
    if isinstance(detail, dict):
        content = {
            **_error_body(_HTTP_KINDS.get(exc.status_code, "error"), detail.get("message")),
            "field_errors": detail.get("field_errors", {}),
        }
    else:
        content = _error_body(_HTTP_KINDS.get(exc.status_code, "error"), detail)
    return ORJSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors as ``field_errors`` keyed by dotted location."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field_errors[".".join(loc) or "__root__"] = err.get("msg", "invalid")
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body("validation_error", "Invalid request", field_errors=field_errors),
    )


@app.get("/healthz", tags=["health"])
def healthz():
    """Readiness probe: DB ping plus uptime."""
    try:
        t0 = time.perf_counter()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        ping_ms = round((time.perf_counter() - t0) * 1000.0, 2)
    except SQLAlchemyError as exc:
        logger.error("Health check DB ping failed: %s", exc)
        return ORJSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "error", "reason": "db_unavailable"},
        )
    return {
        "status": "ok",
        "db_ping_ms": ping_ms,
        "uptime_s": round(time.time() - _BOOT_TS, 1),
        "pid": os.getpid(),
    }


api_prefix = settings.API_V1_STR  # usually something like "/api/v1"

# ─── AUTH ROUTES (no version prefix) ────────────────────────────────────────────────
# Clients will POST to /auth/register, /auth/register/artist and /auth/login
app.include_router(auth.router, prefix="/auth", tags=["auth"])

app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])
app.include_router(api_payment.router, prefix=f"{api_prefix}/payments", tags=["payments"])
app.include_router(api_review.router, prefix=f"{api_prefix}", tags=["reviews"])
app.include_router(api_artist.router, prefix=f"{api_prefix}/artists", tags=["artists"])
app.include_router(api_admin.router, prefix=f"{api_prefix}/admin", tags=["admin"])


@app.on_event("startup")
def bootstrap_admin() -> None:
    if os.getenv("PYTEST_RUN") == "1":
        return
    ensure_default_admin()
