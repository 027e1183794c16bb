"""Federated Auth Service

Main FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from federated_auth.config.settings import get_settings
from federated_auth.api.routes import auth
from federated_auth.core.auth.factory import initialize_providers
from federated_auth.infrastructure.redis.client import close_redis_client, get_redis_client
from federated_auth.infrastructure.session.backend import get_session_backend

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
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

    # Providers are registered once, then the registry is read-only
    initialize_providers(settings)

    try:
        await get_session_backend()
    except Exception as e:
        logger.error(f"Failed to initialize session backend: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down Federated Auth Service")
    await close_redis_client()


# Create FastAPI application
app = FastAPI(
    title="Federated Auth Service",
    version=settings.service_version,
    description="Provider-agnostic third-party authentication (OAuth2, OpenID Connect)",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)


# Health check endpoint
@app.get("/health")
async def root_health_check():
    """Root health check endpoint

    Reports the session backend; a Redis backend that does not answer marks
    the service degraded.
    """
    status = "healthy"
    session_backend = settings.session_backend
    if session_backend == "redis":
        try:
            redis_client = await get_redis_client()
            redis_healthy = await redis_client.health_check()
        except Exception as e:
            logger.error(f"Redis unavailable: {e}")
            redis_healthy = False
        if not redis_healthy:
            status = "degraded"

    return {
        "status": status,
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "session_backend": session_backend,
    }


@app.get("/")
async def root():
    """Root endpoint with service information"""
    return {
        "service": settings.service_name,
        "version": settings.service_version,
        "description": "Federated Authentication Service",
        "docs": "/docs",
        "health": "/health",
        "providers": "/providers"
    }


app.include_router(auth.router)


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
        "federated_auth.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
