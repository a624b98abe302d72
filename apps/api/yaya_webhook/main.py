"""YaYa Webhook Service - Main FastAPI application."""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import make_asgi_app
from starlette.exceptions import HTTPException as StarletteHTTPException

from yaya_webhook import __version__
from yaya_webhook.middleware.body_limit import BodySizeLimitMiddleware
from yaya_webhook.middleware.correlation import CorrelationIdFilter, CorrelationIDMiddleware
from yaya_webhook.middleware.rate_limit import RateLimitMiddleware
from yaya_webhook.middleware.security_headers import SecurityHeadersMiddleware
from yaya_webhook.routes import health, webhooks
from yaya_webhook.settings import Settings, get_settings
from yaya_webhook.utils.metrics import webhook_verifications
from yaya_webhook.webhooks.dispatcher import WebhookDispatcher
from yaya_webhook.webhooks.processor import TransactionProcessor
from yaya_webhook.webhooks.verifier import InternalFaultError, VerificationError, WebhookVerifier

logger = logging.getLogger(__name__)

JSON_LOG_FORMAT = (
    '{"time": "%(asctime)s", "level": "%(levelname)s", '
    '"message": "%(message)s", "module": "%(name)s", '
    '"correlation_id": "%(correlation_id)s"}'
)
TEXT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [%(correlation_id)s] %(message)s"


def configure_logging(settings: Settings) -> None:
    """Configure root logging to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=JSON_LOG_FORMAT if settings.log_format == "json" else TEXT_LOG_FORMAT,
        handlers=[handler],
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings: Settings = app.state.settings
    logger.info("Starting YaYa Webhook Service...")
    try:
        settings.validate_production_settings()
    except ValueError as e:
        logger.error(f"Configuration validation failed: {e}")
        raise

    for warning in settings.configuration_warnings():
        logger.warning(warning)

    logger.info(
        "YaYa Webhook Service started",
        extra={
            "environment": settings.environment,
            "trusted_ip_count": len(settings.trusted_ip_list),
            "dispatch_backend": settings.dispatch_backend,
        },
    )

    yield

    logger.info("Shutting down YaYa Webhook Service...")
    await app.state.dispatcher.drain(timeout=settings.shutdown_drain_timeout_seconds)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed body: 400 with field-level details, never reaches the verifier."""
    details = []
    for error in exc.errors():
        # Union members add their type to the location; report the field itself
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        details.append(
            {
                "field": location[0] if location else "body",
                "message": error.get("msg", "Invalid value"),
            }
        )
    webhook_verifications.labels(outcome=VerificationError.MALFORMED_PAYLOAD.value).inc()
    logger.warning("Webhook validation failed", extra={"details": details, "path": request.url.path})
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body", "details": details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render routing and HTTP errors in the service's JSON error shape."""
    if exc.status_code == status.HTTP_404_NOT_FOUND:
        content = {
            "error": "Not found",
            "message": f"Route {request.method} {request.url.path} not found",
        }
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


async def internal_fault_handler(request: Request, exc: Exception):
    """Unexpected fault: log everything, tell the caller nothing."""
    logger.error(
        f"Webhook handler error: {exc}",
        exc_info=exc,
        extra={"path": request.url.path, "correlation_id": getattr(request.state, "correlation_id", None)},
    )
    if isinstance(exc, InternalFaultError):
        webhook_verifications.labels(outcome=VerificationError.INTERNAL_FAULT.value).inc()
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "message": "Failed to process webhook"},
    )


def create_app(
    settings: Optional[Settings] = None,
    verifier: Optional[WebhookVerifier] = None,
    dispatcher: Optional[WebhookDispatcher] = None,
) -> FastAPI:
    """Build the application from explicit configuration."""
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="YaYa Webhook Service",
        description="Verifies and acknowledges YaYa Wallet transaction webhooks",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.verifier = verifier or WebhookVerifier(settings.verification_config())
    app.state.dispatcher = dispatcher or WebhookDispatcher(
        TransactionProcessor(delay_seconds=settings.processing_delay_ms / 1000),
        backend=settings.dispatch_backend,
    )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(InternalFaultError, internal_fault_handler)
    app.add_exception_handler(Exception, internal_fault_handler)

    # Middleware (order matters - last added is first executed)
    app.add_middleware(GZipMiddleware, minimum_size=settings.gzip_minimum_size)
    if settings.rate_limit_enabled:
        app.add_middleware(RateLimitMiddleware, settings=settings)
    app.add_middleware(CorrelationIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origin_list,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "YaYa-Signature"],
    )
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)

    # Prometheus metrics
    app.mount("/metrics", make_asgi_app())

    app.include_router(webhooks.router)
    app.include_router(health.router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "YaYa Wallet Webhook Service",
            "version": __version__,
            "status": "running",
            "health": "/api/v1/health",
        }

    return app
