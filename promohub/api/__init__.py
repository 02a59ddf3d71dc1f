"""
API module containing FastAPI routes and endpoints.

This module provides the main API router that includes all sub-routers
for the reservation, QR redemption and admin domains.
"""

from fastapi import APIRouter

from promohub.api.routes import admin, qr, reservations

router = APIRouter()

# Include all route modules
router.include_router(reservations.router, prefix="/reservations", tags=["Reservations"])
router.include_router(qr.router, prefix="/qr", tags=["QR Redemption"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])

__all__ = ["router"]
