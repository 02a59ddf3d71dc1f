"""
PromoHub - Promo Marketplace Redemption Service

This package contains the backend for the PromoHub promo marketplace, where
users reserve merchant promos and redeem them in store by presenting a signed
QR token that the merchant validates and confirms.

Key modules:
    - api: FastAPI routes and endpoints
    - qr: QR redemption token codec (signing, verification, hashing)
    - models: SQLAlchemy database models
    - schemas: Pydantic request/response schemas
    - services: Business logic layer (reservations, redemptions, audit)
    - core: Configuration, database, authentication and error handling
"""

__version__ = "0.1.0"
__author__ = "PromoHub Team"
