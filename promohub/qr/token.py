"""
Signed QR redemption tokens.

A token is ``base64url(payload_json) + "." + base64url(HMAC-SHA256(payload_b64))``.
The payload travels in plaintext so a scanner can read it offline; the HMAC
makes it tamper-evident and the embedded timestamp bounds its lifetime.

Verification is stateless. Single use is enforced elsewhere, by persisting
``hash_token(token)`` under a unique constraint on the redemption record.
"""

import base64
import hashlib
import hmac
import json
import secrets
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from promohub.core.constants import QR_NONCE_BYTES, QR_TOKEN_VERSION
from promohub.models.enums import PaymentType


class TokenFailureReason(str, Enum):
    """Stable, machine-readable reasons a token fails verification."""
    MISSING_TOKEN = "missing_token"
    INVALID_FORMAT = "invalid_format"
    INVALID_SIGNATURE = "invalid_signature"
    INVALID_PAYLOAD = "invalid_payload"
    MISSING_FIELDS = "missing_fields"
    EXPIRED = "expired"


REQUIRED_PAYLOAD_FIELDS = ("ts", "reservationId", "promoId", "paymentType")


class QrPayload(BaseModel):
    """Redemption intent embedded in a token. Never persisted."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    promo_id: str = Field(..., alias="promoId")
    reservation_id: str = Field(..., alias="reservationId")
    payment_type: PaymentType = Field(..., alias="paymentType")
    ts: int = Field(..., description="Signing time in epoch milliseconds")
    nonce: str = Field(..., description="Random base64url value for token uniqueness")
    v: int = Field(default=QR_TOKEN_VERSION, description="Payload schema version")

    def to_json(self) -> str:
        """Serialize with the wire (camelCase) keys."""
        return json.dumps(
            self.model_dump(by_alias=True, mode="json"),
            separators=(",", ":"),
        )


@dataclass(frozen=True)
class GeneratedToken:
    """Result of signing a payload."""

    token: str
    payload: QrPayload
    expires_at: int


@dataclass(frozen=True)
class VerifyResult:
    """Tagged verification outcome: either payload and expiry, or a reason."""

    valid: bool
    payload: QrPayload | None = None
    expires_at: int | None = None
    reason: TokenFailureReason | None = None

    @classmethod
    def ok(cls, payload: QrPayload, expires_at: int) -> "VerifyResult":
        return cls(valid=True, payload=payload, expires_at=expires_at)

    @classmethod
    def fail(cls, reason: TokenFailureReason) -> "VerifyResult":
        return cls(valid=False, reason=reason)


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


def ms_to_datetime(value: int) -> datetime:
    """Convert epoch milliseconds to a naive UTC datetime for storage."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def hash_token(token: str) -> str:
    """
    SHA-256 hex digest of the full raw token.

    This is the only form of a token that may be stored or logged.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class QrTokenCodec:
    """
    Signs and verifies QR redemption tokens.

    The signing secret and TTL are injected at construction so callers
    (and tests) never depend on process-wide state.
    """

    def __init__(self, secret: str, ttl_minutes: int):
        """
        Initialize the codec.

        Args:
            secret: HMAC-SHA256 key; must stay server-side
            ttl_minutes: Minutes a token remains valid after signing
        """
        if not secret:
            raise ValueError("QR token secret must not be empty")
        if ttl_minutes <= 0:
            raise ValueError("QR token TTL must be positive")
        self._secret = secret.encode("utf-8")
        self.ttl_minutes = ttl_minutes

    @property
    def ttl_ms(self) -> int:
        return self.ttl_minutes * 60 * 1000

    def _sign(self, payload_b64: str) -> str:
        digest = hmac.new(self._secret, payload_b64.encode("ascii"), hashlib.sha256).digest()
        return b64url_encode(digest)

    def generate(
        self,
        promo_id: str,
        reservation_id: str,
        payment_type: PaymentType,
        now: int | None = None,
    ) -> GeneratedToken:
        """
        Build and sign a token for a reservation.

        Args:
            promo_id: Promo the reservation belongs to
            reservation_id: Reservation being redeemed
            payment_type: Payment method, fixed for the token's lifetime
            now: Signing time in epoch ms (defaults to the current time)

        Returns:
            GeneratedToken with the token string, its payload and expiry (epoch ms)
        """
        ts = now_ms() if now is None else now
        payload = QrPayload(
            promo_id=str(promo_id),
            reservation_id=str(reservation_id),
            payment_type=PaymentType(payment_type),
            ts=ts,
            nonce=b64url_encode(secrets.token_bytes(QR_NONCE_BYTES)),
            v=QR_TOKEN_VERSION,
        )

        payload_b64 = b64url_encode(payload.to_json().encode("utf-8"))
        token = f"{payload_b64}.{self._sign(payload_b64)}"

        return GeneratedToken(token=token, payload=payload, expires_at=ts + self.ttl_ms)

    def verify(self, token: str | None, now: int | None = None) -> VerifyResult:
        """
        Check a token's structure, signature, payload and freshness.

        Never raises for malformed input; failures come back as a
        ``VerifyResult`` with ``valid=False`` and a stable reason.

        Args:
            token: Raw token string as scanned
            now: Current time in epoch ms (defaults to the current time)

        Returns:
            VerifyResult
        """
        if not token or "." not in token:
            return VerifyResult.fail(TokenFailureReason.MISSING_TOKEN)

        # Anything after the first "." is the signature, extra dots included
        payload_b64, _, signature = token.partition(".")
        if not payload_b64 or not signature:
            return VerifyResult.fail(TokenFailureReason.INVALID_FORMAT)

        try:
            expected = self._sign(payload_b64).encode("ascii")
        except UnicodeEncodeError:
            return VerifyResult.fail(TokenFailureReason.INVALID_SIGNATURE)
        supplied = signature.encode("utf-8")
        # compare_digest does not short-circuit on content
        if len(expected) != len(supplied) or not hmac.compare_digest(expected, supplied):
            return VerifyResult.fail(TokenFailureReason.INVALID_SIGNATURE)

        try:
            raw = json.loads(b64url_decode(payload_b64).decode("utf-8"))
        except (ValueError, UnicodeDecodeError):
            return VerifyResult.fail(TokenFailureReason.INVALID_PAYLOAD)
        if not isinstance(raw, dict):
            return VerifyResult.fail(TokenFailureReason.INVALID_PAYLOAD)

        if not all(raw.get(field) for field in REQUIRED_PAYLOAD_FIELDS):
            return VerifyResult.fail(TokenFailureReason.MISSING_FIELDS)

        try:
            payload = QrPayload.model_validate(raw)
        except ValidationError:
            return VerifyResult.fail(TokenFailureReason.INVALID_PAYLOAD)

        expires_at = payload.ts + self.ttl_ms
        current = now_ms() if now is None else now
        # Valid up to and including the expiry millisecond
        if current > expires_at:
            return VerifyResult.fail(TokenFailureReason.EXPIRED)

        return VerifyResult.ok(payload, expires_at)

    hash_token = staticmethod(hash_token)
