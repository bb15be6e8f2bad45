"""
SchoolHub - Main Application Entry Point
Multi-tenant school management tenancy core
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import structlog

from schoolhub.core.config import get_settings
from schoolhub.core.database import async_session_maker, dispose_db
from schoolhub.core.errors import (
    AlreadyOnboardedError,
    NoTenantError,
    OnboardingValidationError,
    ResolutionFailed,
    ResolutionNotFound,
    SlugConflictError,
    UnknownFeatureError,
    UpdateError,
)
from schoolhub.api import onboarding, tenants, theme
from schoolhub.services.datastore import TenantDataStore
from schoolhub.services.tenant_store import TenantStoreRegistry

# Configure structured logging
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer()
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Initializing SchoolHub backend", environment=settings.ENVIRONMENT)
    # Tables are created by Alembic migrations, not auto-generated
    logger.info("Database managed by Alembic migrations")

    yield

    # Shutdown
    app.state.registry.clear()
    await dispose_db()
    logger.info("Shutting down SchoolHub backend")


def _error(status_code: int, detail: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, "code": code})


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ResolutionNotFound)
    async def resolution_not_found(request: Request, exc: ResolutionNotFound):
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "onboarding_required")

    @app.exception_handler(NoTenantError)
    async def no_tenant(request: Request, exc: NoTenantError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "onboarding_required")

    @app.exception_handler(ResolutionFailed)
    async def resolution_failed(request: Request, exc: ResolutionFailed):
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, str(exc), "resolution_failed")

    @app.exception_handler(SlugConflictError)
    async def slug_conflict(request: Request, exc: SlugConflictError):
        return _error(status.HTTP_409_CONFLICT, str(exc), "slug_taken")

    @app.exception_handler(AlreadyOnboardedError)
    async def already_onboarded(request: Request, exc: AlreadyOnboardedError):
        return _error(status.HTTP_409_CONFLICT, str(exc), "already_onboarded")

    @app.exception_handler(UpdateError)
    async def update_failed(request: Request, exc: UpdateError):
        return _error(status.HTTP_502_BAD_GATEWAY, str(exc), "update_failed")

    @app.exception_handler(UnknownFeatureError)
    async def unknown_feature(request: Request, exc: UnknownFeatureError):
        return _error(status.HTTP_404_NOT_FOUND, str(exc), "unknown_feature")

    @app.exception_handler(OnboardingValidationError)
    async def onboarding_invalid(request: Request, exc: OnboardingValidationError):
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "onboarding_incomplete")


def create_app(datastore: Optional[TenantDataStore] = None) -> FastAPI:
    """Build the application around a data store (the configured database by default)"""
    if datastore is None:
        datastore = TenantDataStore(async_session_maker)

    app = FastAPI(
        title="SchoolHub API",
        description="Tenant resolution, feature flags and theming for multi-tenant schools",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.datastore = datastore
    app.state.registry = TenantStoreRegistry(datastore, timeout=settings.MUTATION_TIMEOUT_SECONDS)

    # Configure middleware stack
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(tenants.router, prefix=f"{settings.API_V1_PREFIX}/tenant", tags=["tenant"])
    app.include_router(theme.router, prefix=settings.API_V1_PREFIX, tags=["theme"])
    app.include_router(onboarding.router, prefix=settings.API_V1_PREFIX, tags=["onboarding"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {"status": "healthy", "service": "schoolhub-api"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "schoolhub.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
