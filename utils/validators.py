"""
Input validation helper functions.
Provides validation for common input types and for JSON request payloads.
"""

import re

from models.errors import ValidationError
from utils.datetime_helpers import to_local_naive
from utils.messages import get_message


def validate_email(email: str) -> bool:
    """
    Validate email format.

    Args:
        email: Email address to validate

    Returns:
        True if valid email format
    """
    if not email:
        return False

    pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
    return bool(re.match(pattern, email))


def validate_phone(phone: str) -> bool:
    """
    Validate Algerian phone number format.
    Accepts: +213 X XX XX XX XX, 00213XXXXXXXXX, 0XXXXXXXXX

    Args:
        phone: Phone number to validate

    Returns:
        True if valid phone format
    """
    if not phone:
        return False

    # Remove spaces and common separators
    cleaned = re.sub(r'[\s\-\.\(\)]', '', phone)

    patterns = [
        r'^\+213[2-7][0-9]{8}$',  # +213XXXXXXXXX
        r'^00213[2-7][0-9]{8}$',  # 00213XXXXXXXXX
        r'^0[2-7][0-9]{8}$'       # 0XXXXXXXXX (mobiles start with 5, 6 or 7)
    ]

    return any(bool(re.match(pattern, cleaned)) for pattern in patterns)


def sanitize_input(text: str, max_length: int = None) -> str:
    """
    Sanitize text input by trimming and limiting length.

    Args:
        text: Text to sanitize
        max_length: Maximum length (optional)

    Returns:
        Sanitized text
    """
    if not text:
        return ''

    # Strip whitespace
    sanitized = text.strip()

    # Limit length if specified
    if max_length and len(sanitized) > max_length:
        sanitized = sanitized[:max_length]

    return sanitized


# =============================================================================
# REQUEST PAYLOAD HELPERS
# =============================================================================

def require_fields(data: dict, fields) -> None:
    """
    Check that every field is present and not empty.

    Raises:
        ValidationError: On the first missing field
    """
    if not isinstance(data, dict):
        raise ValidationError(get_message('field_required', field='body'), field='body')
    for field in fields:
        if data.get(field) in (None, ''):
            raise ValidationError(get_message('field_required', field=field), field=field)


def parse_int(data: dict, field: str, default=None, minimum: int = None) -> int:
    """
    Read an integer field, accepting numeric strings.

    Returns default when the field is absent.

    Raises:
        ValidationError: Not an integer, or below minimum
    """
    value = data.get(field)
    if value in (None, ''):
        return default
    if isinstance(value, bool):
        raise ValidationError(field=field, value=value)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(field=field, value=value)
    if isinstance(value, float) and number != value:
        raise ValidationError(field=field, value=value)
    if minimum is not None and number < minimum:
        raise ValidationError(field=field, value=value)
    return number


def parse_datetime(value, field: str):
    """
    Parse an ISO-8601 date-time into naive local time.

    Raises:
        ValidationError: Missing or malformed value
    """
    if not value:
        raise ValidationError(get_message('field_required', field=field), field=field)
    try:
        return to_local_naive(value)
    except (TypeError, ValueError):
        raise ValidationError(field=field, value=value)
