"""
PromoHub - Promo Marketplace Redemption Service

Main FastAPI application entry point with OpenAPI documentation.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from promohub.api import router as api_router
from promohub.core.config import settings
from promohub.core.database import close_db, init_db
from promohub.core.errors import (
    SafeException,
    general_exception_handler,
    http_exception_handler,
    safe_exception_handler,
)
from promohub.core.security import configure_secure_logging
from promohub.services.alerting_service import dispatcher

# Configure logging; every record passes through the redacting formatter
configure_secure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup and shutdown events.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")
    logger.info(f"QR token TTL: {settings.qr_token_ttl_minutes} minutes")

    # Initialize database
    logger.info("Initializing database...")
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.warning(f"Database initialization failed: {e}")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await dispatcher.drain()
    await close_db()
    logger.info("All connections closed")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    description="""
## Promo Marketplace Redemption Service

Merchants publish promos, users reserve promo slots, and reservations are
redeemed in store by scanning a signed, time-boxed, single-use QR token.

### Key Features

- **Reservations**: Atomic slot holds that expire and release automatically
- **Signed QR Tokens**: HMAC-SHA256 tokens verifiable without a database lookup
- **Single Use**: Each token can produce at most one redemption
- **Idempotent Confirm**: Retried confirms converge on one CONFIRMED redemption
- **Audit Trail**: One audit record per scan or confirm outcome, keyed by token hash

### Authentication

All endpoints except health require JWT authentication. Include the token in the Authorization header:
```
Authorization: Bearer <your-token>
```
    """,
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers
app.add_exception_handler(SafeException, safe_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, general_exception_handler)


# Health check endpoint
@app.get(
    "/health",
    tags=["Health"],
    summary="Health check",
    response_description="Application health status",
)
async def health_check() -> dict[str, Any]:
    """
    Check application health status.

    Returns basic health information including version and environment.
    """
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.environment,
    }


# Include API routes
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get(
    "/",
    tags=["Root"],
    summary="API root",
    include_in_schema=False,
)
async def root() -> dict[str, str]:
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
        "openapi": "/openapi.json",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "promohub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
