"""
Security module for the PromiseSeal service.

Provides input validation and log sanitization for request payloads.
"""

import re
from typing import Any, Dict, List, Optional

from ..challenge import creator_id_of


# ============================================================
# Input Validation
# ============================================================

HEX_PATTERN = re.compile(r'^[a-fA-F0-9]+$')
BASE64URL_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')
PROMISE_ID_PATTERN = re.compile(r'^[A-Za-z0-9_.:-]{1,128}$')

MAX_CONTENT_LENGTH = 100_000
MAX_TITLE_LENGTH = 500


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_hex(value: str, field_name: str, expected_length: Optional[int] = None) -> str:
    """
    Validate that a string is valid hexadecimal.

    Returns:
        The validated (lowercased) hex string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.lower().strip()

    if not value:
        raise ValidationError(field_name, "cannot be empty")

    if not HEX_PATTERN.match(value):
        raise ValidationError(field_name, "must be valid hexadecimal")

    if expected_length and len(value) != expected_length:
        raise ValidationError(field_name, f"must be {expected_length} characters")

    return value


def validate_base64url(value: str, field_name: str) -> str:
    """Validate an unpadded base64url string such as a challenge."""
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.strip()

    if not value:
        raise ValidationError(field_name, "cannot be empty")

    if not BASE64URL_PATTERN.match(value):
        raise ValidationError(field_name, "must be unpadded base64url")

    return value


def validate_promise_id(value: str, field_name: str = "promise_id") -> str:
    if not isinstance(value, str) or not PROMISE_ID_PATTERN.match(value):
        raise ValidationError(field_name, "invalid format")
    return value


def validate_string_length(
    value: str,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000
) -> str:
    """
    Validate string length.

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    if len(value) < min_length:
        raise ValidationError(field_name, f"must be at least {min_length} characters")

    if len(value) > max_length:
        raise ValidationError(field_name, f"must not exceed {max_length} characters")

    return value


def validate_promise(promise: Dict[str, Any], field_name: str = "promise") -> None:
    """
    Validate the snapshot fields of a promise record.

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(promise, dict):
        raise ValidationError(field_name, "must be an object")

    for field in ("id", "title", "content"):
        if field not in promise:
            raise ValidationError(f"{field_name}.{field}", "is required")

    validate_promise_id(promise["id"], f"{field_name}.id")
    validate_string_length(promise["title"], f"{field_name}.title", max_length=MAX_TITLE_LENGTH)
    validate_string_length(promise["content"], f"{field_name}.content", max_length=MAX_CONTENT_LENGTH)

    delivery_date = promise.get("deliveryDate")
    if delivery_date is not None and not isinstance(delivery_date, str):
        raise ValidationError(f"{field_name}.deliveryDate", "must be a string")

    try:
        creator_id = creator_id_of(promise)
    except KeyError:
        creator_id = None
    if not isinstance(creator_id, str) or not creator_id:
        raise ValidationError(f"{field_name}.creator.id", "is required")


def validate_assertion(assertion: Dict[str, Any], field_name: str = "assertion") -> None:
    """
    Validate the shape of a WebAuthn assertion.

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(assertion, dict):
        raise ValidationError(field_name, "must be an object")

    for field in ("clientDataJSON", "authenticatorData", "signature"):
        if field not in assertion:
            raise ValidationError(f"{field_name}.{field}", "is required")
        validate_base64url(assertion[field], f"{field_name}.{field}")


# ============================================================
# Audit Logging Helpers
# ============================================================

SENSITIVE_FIELDS = [
    "privateKeyMaterial",
    "private_key_material",
    "signature",
    "key",
    "secret",
    "envelope",
    "content",
]


def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking sensitive fields.

    Args:
        data: The data to sanitize
        sensitive_fields: List of field names to mask

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            if isinstance(value, str) and len(value) > 8:
                result[key] = value[:4] + "..." + value[-4:]
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
