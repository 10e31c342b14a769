"""Secret Sync Central Service

Main FastAPI application entry point.
Provisions OIDC client registrations on the configured identity provider.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from secret_sync.api.routes import clients
from secret_sync.config.settings import get_settings
from secret_sync.core.provider import get_oidc_provider, init_oidc_provider
from secret_sync.domain.models import HealthResponse

# Configure logging
settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    settings = get_settings()

    # Startup
    logger.info(f"Starting {settings.service_name} v{settings.service_version}")
    logger.info(f"Environment: {settings.environment}")

    provider = init_oidc_provider(settings.oidc_provider, timeout=settings.http_timeout_seconds)
    if provider is None:
        if settings.require_provider:
            raise RuntimeError(
                "No OIDC provider configured. Set KEYCLOAK_* or AUTHENTIK_* variables "
                "(optionally OIDC_PROVIDER), or REQUIRE_PROVIDER=false to start without one"
            )
        logger.warning("Starting without an OIDC provider; client routes will return 503")
    else:
        logger.info(f"OIDC provider ready: {provider.kind}")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.service_name}")


# Create FastAPI application
app = FastAPI(
    title="Secret Sync Central",
    version=settings.service_version,
    description="Provisions and validates OIDC client registrations on Keycloak or Authentik",
    lifespan=lifespan
)


@app.get("/health", response_model=HealthResponse)
async def root_health_check():
    """Health check endpoint with the active provider"""
    try:
        provider_kind = get_oidc_provider().kind
    except RuntimeError:
        provider_kind = None

    return HealthResponse(
        status="healthy" if provider_kind else "degraded",
        service=settings.service_name,
        version=settings.service_version,
        provider=provider_kind,
    )


app.include_router(clients.router)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_server_error",
            "message": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "secret_sync.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
