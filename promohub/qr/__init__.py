"""
QR redemption token protocol.
"""

from promohub.qr.token import (
    GeneratedToken,
    QrPayload,
    QrTokenCodec,
    TokenFailureReason,
    VerifyResult,
    hash_token,
)

__all__ = [
    "GeneratedToken",
    "QrPayload",
    "QrTokenCodec",
    "TokenFailureReason",
    "VerifyResult",
    "hash_token",
]
