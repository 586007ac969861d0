from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.exceptions import HTTPException as StarletteHTTPException

from redeemer.app.api import admin_router, invite_router
from redeemer.app.core.config import settings
from redeemer.app.core.http_client import init_http_client
from redeemer.app.core.logging import get_log_context, get_logger, setup_logging
from redeemer.app.core.redis import get_redis, init_redis
from redeemer.app.exceptions import RedeemerException
from redeemer.app.middleware.request_id import RequestIdMiddleware, get_request_id
from redeemer.app.providers import reset_invite_sender
from redeemer.app.services.redemption import reset_redemption_coordinator


def _error_body(error: str, message: str, **extra: Any) -> dict:
    return {"success": False, "error": error, "message": message, **extra}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create the shared HTTP and Redis clients; close them on shutdown."""
        async with init_http_client(), init_redis() as redis:
            # Rebind singletons so they pick up the shared clients.
            reset_invite_sender()
            reset_redemption_coordinator()

            if redis is None:
                logger.error("REDIS_URL is not set; store-backed endpoints will fail")
            if not settings.invite_credentials_configured and not settings.invite_mock_sender:
                logger.warning("CHATGPT_ACCOUNT_ID / CHATGPT_TOKEN are not set; redemptions will fail")

            logger.info(
                "Application startup complete",
                extra={
                    "redis_configured": redis is not None,
                    "mock_sender": settings.invite_mock_sender,
                    "debug_mode": settings.debug,
                },
            )
            yield

        reset_invite_sender()
        reset_redemption_coordinator()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Invite Redeem",
        description="Single-use redemption codes that each trigger one workspace invite",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware order: last added = first executed
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Admin-Password", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )

    app.include_router(invite_router)
    app.include_router(admin_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        """Health check with Redis connectivity."""
        health_status: dict[str, Any] = {"status": "ok", "components": {}}
        try:
            redis = get_redis()
            await redis.ping()
            health_status["components"]["redis"] = {"status": "ok"}
        except (RedeemerException, RedisError) as e:
            health_status["status"] = "degraded"
            health_status["components"]["redis"] = {
                "status": "error",
                "error": str(e)[:100],  # Truncate for security
            }
        return health_status

    @app.exception_handler(RedeemerException)
    async def redeemer_exception_handler(request: Request, exc: RedeemerException) -> JSONResponse:
        """Render service exceptions with their status and error code."""
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.error_code, exc.message, **exc.payload()),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed request bodies and parameters are plain 400s."""
        return JSONResponse(
            status_code=400,
            content=_error_body("ValidationError", "Invalid request"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        """Keep API error bodies in the {success, error} shape."""
        error = "Not Found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(error, str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RedisError)
    async def redis_error_handler(request: Request, exc: RedisError) -> JSONResponse:
        """Store failures outside the coordinator (admin endpoints)."""
        logger.error(
            f"Redis error: {exc}",
            extra=get_log_context(request_id=get_request_id(request), path=request.url.path),
        )
        return JSONResponse(
            status_code=500,
            content=_error_body("StoreUnavailable", "Redis is unavailable"),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; debug mode adds the
        exception message.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra=get_log_context(
                request_id=request_id,
                exception_type=type(exc).__name__,
            ),
        )
        message = str(exc) if settings.debug else "Internal server error"
        return JSONResponse(
            status_code=500,
            content=_error_body("InternalError", message, request_id=request_id),
        )

    return app


# Create the application instance
app = create_app()
