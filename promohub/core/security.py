"""
Security utilities for sensitive data protection.

This module ensures secrets, bearer credentials and raw QR redemption tokens
are never exposed in logs, audit records or error messages. A leaked QR token
is a usable credential until it expires, so only its hash may be recorded.
"""

import logging
import re
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)

# Patterns to detect and redact sensitive information
SENSITIVE_PATTERNS = [
    # Bearer tokens
    (r'Bearer [a-zA-Z0-9\-._~+/]+=*', 'Bearer ***REDACTED***'),
    # Authorization headers with tokens
    (r'Authorization: [^\s]+', 'Authorization: ***REDACTED***'),
    # JWTs (three base64url segments)
    (r'\beyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+', 'jwt:***REDACTED***'),
    # QR redemption tokens: base64url payload + "." + 43-char HMAC-SHA256
    (r'\b[a-zA-Z0-9_-]{16,}\.[a-zA-Z0-9_-]{43}\b', 'qr:***REDACTED***'),
    # Generic secrets in key=value or JSON form
    (r'["\']?(qr[_-]?token[_-]?secret|jwt[_-]?secret|api[_-]?key|secret[_-]?key|password)["\']?\s*[:=]\s*["\']?[^"\'\s,}]+["\']?', '***REDACTED***'),
]

# Dictionary keys whose values must never be logged or persisted.
# token_hash is deliberately absent: the hash is the safe audit form.
SENSITIVE_KEYS = {
    'token', 'qr_token_raw', 'raw_token',
    'secret', 'qr_token_secret', 'jwt_secret',
    'password', 'api_key', 'apikey',
    'authorization', 'credentials',
}


class RedactingFormatter(logging.Formatter):
    """
    Logging formatter that redacts sensitive information.

    This formatter intercepts log messages and replaces sensitive patterns
    with redacted placeholders before the log is written.
    """

    def __init__(
        self,
        fmt: Optional[str] = None,
        datefmt: Optional[str] = None,
        style: Literal['%', '{', '$'] = '%'
    ) -> None:
        """Initialize the redacting formatter."""
        super().__init__(fmt, datefmt, style)

    def format(self, record: logging.LogRecord) -> str:
        """
        Format the log record with sensitive data redacted.

        Args:
            record: The log record to format

        Returns:
            Formatted log message with sensitive data redacted
        """
        return redact_string(super().format(record))


def redact_string(value: str) -> str:
    """
    Redact sensitive information from a string.

    Args:
        value: String to redact

    Returns:
        String with sensitive information redacted
    """
    for pattern, replacement in SENSITIVE_PATTERNS:
        value = re.sub(pattern, replacement, value, flags=re.IGNORECASE)
    return value


def redact_dict(data: dict[str, Any], additional_keys: Optional[set[str]] = None) -> dict[str, Any]:
    """
    Redact sensitive values from a dictionary.

    Keys are matched exactly (case-insensitive) so that derived, safe fields
    such as ``token_hash`` survive while ``token`` does not.

    Args:
        data: Dictionary to redact
        additional_keys: Additional keys to redact beyond the default list

    Returns:
        Dictionary with sensitive values redacted
    """
    if not isinstance(data, dict):
        return data

    sensitive_keys = SENSITIVE_KEYS | (additional_keys or set())

    redacted: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in sensitive_keys:
            redacted[key] = "***REDACTED***"
        elif isinstance(value, dict):
            redacted[key] = redact_dict(value, additional_keys)
        elif isinstance(value, list):
            redacted[key] = [
                redact_dict(item, additional_keys) if isinstance(item, dict) else item
                for item in value
            ]
        elif isinstance(value, str):
            redacted[key] = redact_string(value)
        else:
            redacted[key] = value

    return redacted


def is_safe_for_logging(value: str) -> bool:
    """
    Check if a string value is safe to log without redaction.

    Args:
        value: String value to check

    Returns:
        True if safe, False if contains sensitive patterns
    """
    for pattern, _ in SENSITIVE_PATTERNS:
        if re.search(pattern, value, re.IGNORECASE):
            return False
    return True


def configure_secure_logging(level: str = "INFO", fmt: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger to use the redacting formatter.

    This should be called during application startup to ensure all logs
    have sensitive data redacted.

    Args:
        level: Log level name
        fmt: Log format string

    Returns:
        The configured root logger
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        RedactingFormatter(
            fmt=fmt or '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
    )

    root_logger.addHandler(console_handler)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    return root_logger
