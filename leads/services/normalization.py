"""
Normalization service for lead data headed to a portal.
"""
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

NON_DIGITS = re.compile(r'\D')

# Lead attributes that can be addressed from a portal field mapping
LEAD_FIELDS = (
    'first_name',
    'last_name',
    'email',
    'phone',
    'alternate_phone',
    'company',
    'address',
    'city',
    'state',
    'zip_code',
    'country',
    'job_title',
    'area_of_study',
    'source',
)


def normalize_value(value: Any) -> Optional[str]:
    """
    Normalize a single value into its portal string form.

    - Strings: trim whitespace, empty becomes None
    - Booleans: 'true' / 'false'
    - Numbers: str()
    - Containers and None: None (portals only take scalars)
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None
    logger.debug(f"Dropping non-scalar value of type {type(value).__name__}")
    return None


def digits_only(value: Optional[str]) -> str:
    """Strip everything but digits from a phone number."""
    if not value:
        return ''
    return NON_DIGITS.sub('', str(value))


def lead_record(lead) -> dict:
    """
    Flatten a Lead into the dictionary the mapping resolver reads from.

    Custom data is available under the 'custom' key, so a mapping can
    address it with dot notation (e.g. 'custom.age').
    """
    record = {'id': str(lead.id)}
    for field in LEAD_FIELDS:
        record[field] = getattr(lead, field, None)
    custom_data = getattr(lead, 'custom_data', None)
    record['custom'] = custom_data if isinstance(custom_data, dict) else {}
    return record
