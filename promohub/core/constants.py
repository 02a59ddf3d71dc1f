"""
Application-wide default values.

Settings fall back to these when the matching environment variable is unset.
"""

DEFAULT_APP_PORT = 8000

# Authentication
JWT_EXPIRATION_HOURS = 24

# QR redemption tokens
QR_TOKEN_TTL_MINUTES = 10
QR_TOKEN_VERSION = 1
QR_NONCE_BYTES = 16
DEFAULT_QR_TOKEN_SECRET = "default-qr-secret"

# Reservations
RESERVATION_TTL_DAYS = 15

# Admin listings
REDEMPTION_LIST_DEFAULT_LIMIT = 100
REDEMPTION_LIST_MAX_LIMIT = 200
