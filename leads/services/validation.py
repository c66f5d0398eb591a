"""
Validation rules for lead fields before a portal submission.
"""
import re
import logging
from typing import Optional

from leads.services.normalization import digits_only

logger = logging.getLogger(__name__)

# Error code prefixes
MISSING_FIELD = 'MissingField'
INVALID_FIELD = 'InvalidField'

# Internal fields that must have data whenever a portal mapping uses them
REQUIRED_FIELDS = frozenset({'first_name', 'last_name', 'email', 'phone'})
EMAIL_FIELDS = frozenset({'email'})
PHONE_FIELDS = frozenset({'phone', 'alternate_phone'})

MIN_PHONE_DIGITS = 10
EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def missing_field(param: str) -> str:
    return f"{MISSING_FIELD}:{param}"


def invalid_field(param: str, reason: str) -> str:
    return f"{INVALID_FIELD}:{param} ({reason})"


def validate_field(field: str, param: str, value: Optional[str], required: bool) -> Optional[str]:
    """
    Validate one mapped lead field.

    Args:
        field: Internal lead field name (e.g. 'phone')
        param: Portal parameter the field is mapped to (e.g. 'phone1')
        value: Normalized value, None when the lead has no data
        required: Whether the field must be present

    Returns:
        An error string, or None when the value is acceptable
    """
    if value is None:
        if required:
            logger.debug(f"Validation failed: missing required field '{field}' -> '{param}'")
            return missing_field(param)
        return None

    if field in EMAIL_FIELDS and not EMAIL_PATTERN.match(value):
        logger.debug(f"Validation failed: '{field}' is not an email address")
        return invalid_field(param, 'invalid email format')

    if field in PHONE_FIELDS and len(digits_only(value)) < MIN_PHONE_DIGITS:
        logger.debug(f"Validation failed: '{field}' has fewer than {MIN_PHONE_DIGITS} digits")
        return invalid_field(param, f'phone number must be at least {MIN_PHONE_DIGITS} digits')

    return None
