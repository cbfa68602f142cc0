"""
Placebook Identity API

FastAPI application factory and entry point.

Run with:
    uvicorn placebook.main:create_app --factory
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from placebook.api.middleware.rate_limit import RateLimitMiddleware
from placebook.api.middleware.request_id import RequestIdMiddleware
from placebook.api.middleware.security_headers import SecurityHeadersMiddleware
from placebook.api.v1 import router as api_v1_router
from placebook.config import Settings, get_settings
from placebook.context import AppContext, build_context
from placebook.database import close_db, init_db, ping_db
from placebook.errors import PlacebookError
from placebook.logging_config import configure_logging, get_logger
from placebook.schemas.common import HealthResponse

logger = get_logger(__name__)


def _with_request_id(request: Request, headers: Optional[dict] = None) -> dict:
    headers = dict(headers or {})
    req_id = getattr(request.state, "request_id", None)
    if req_id:
        headers["X-Request-ID"] = req_id
    return headers


def _register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(PlacebookError)
    async def placebook_error_handler(request: Request, exc: PlacebookError):
        """Domain errors carry their own status code."""
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        if exc.status_code >= 500:
            logger.error("Server error: %s", exc.message, extra={"code": exc.code})
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=_with_request_id(request, headers),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=_with_request_id(request, getattr(exc, "headers", None)),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed input is a 400, like every other validation failure."""
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append({
                "field": field,
                "message": error["msg"],
                "type": error["type"],
            })
        logger.warning("Request validation failed", extra={"path": request.url.path, "errors": errors})
        content = {"detail": "Validation error", "errors": errors}
        req_id = getattr(request.state, "request_id", None)
        if req_id:
            content["request_id"] = req_id
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=content,
            headers=_with_request_id(request),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Unexpected exceptions: generic 500, details outside production only."""
        logger.exception("Unhandled exception: %s", exc)
        req_id = getattr(request.state, "request_id", None)
        content = {"detail": "Internal server error", "code": "ServerError", "request_id": req_id}
        if not settings.is_production:
            content["message"] = str(exc)
            content["type"] = type(exc).__name__
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=content,
            headers=_with_request_id(request),
        )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application around an explicit settings object.

    The AppContext is created here so it exists before lifespan runs;
    lifespan only configures logging and touches the database.
    """
    settings = settings or get_settings()
    context: AppContext = build_context(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        configure_logging(
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
        )
        logger.info("Starting %s v%s", settings.project_name, settings.version)
        await init_db(context.engine)
        logger.info("Database initialized")

        yield

        logger.info("Shutting down...")
        await close_db(context.engine)
        logger.info("Database connections closed")

    app = FastAPI(
        title=settings.project_name,
        description="Registration, login, session tokens and profiles for Placebook users.",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.context = context

    # add_middleware stacks innermost-first: CORS added last is outermost
    app.add_middleware(RateLimitMiddleware, settings=settings)
    app.add_middleware(SecurityHeadersMiddleware, hsts=settings.is_production)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        """Check application health."""
        database = "connected" if await ping_db(context.engine) else "unavailable"
        return HealthResponse(status="ok", version=settings.version, database=database)

    app.include_router(api_v1_router, prefix=settings.api_prefix)
    return app


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "placebook.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=9000,
        reload=_settings.debug,
    )
