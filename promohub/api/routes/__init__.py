"""
API routes package.

This package contains all FastAPI route modules organized by domain.
"""

from . import admin, qr, reservations

__all__ = ["admin", "qr", "reservations"]
