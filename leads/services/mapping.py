"""
Mapping service for turning a lead into a pre-filled portal submission URL.

Portals only understand their own vocabulary: lead fields missing from the
tenant's field mapping are dropped, defaults fill gaps but never override
lead data, and tracking fields are always injected.
"""
import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from leads.services.normalization import digits_only, lead_record, normalize_value
from leads.services.validation import PHONE_FIELDS, REQUIRED_FIELDS, validate_field

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_TAG = 'PORTAL_GATEWAY'
DEFAULT_TRANSACTION_PREFIX = 'pg'
REDACTED = '***'

# System parameters injected into every submission
LEAD_ID_PARAM = 'service_leadid'
SOURCE_PARAM = 'source_service_trusted_form'
TRANSACTION_PARAM = 'pub_transaction_id'


def get_nested_value(data: dict, path: str, default=None):
    """
    Get a value from a nested dictionary using dot notation.

    Args:
        data: The dictionary to search
        path: Dot-separated path (e.g., 'custom.age')
        default: Default value if path not found

    Returns:
        The value at the path or default
    """
    keys = path.split('.')
    value = data
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def transaction_id(lead_id: Any, submitted_at: datetime, prefix: str = DEFAULT_TRANSACTION_PREFIX) -> str:
    """Tracking identifier derived from the lead id and the submission time."""
    epoch_ms = int(submitted_at.timestamp() * 1000)
    return f"{prefix}_{lead_id}_{epoch_ms}"


def map_lead_fields(record: dict, field_mapping: dict,
                    required_fields: Iterable[str] = REQUIRED_FIELDS) -> Tuple[dict, List[str]]:
    """
    Copy mapped lead fields into portal parameters.

    Args:
        record: Flattened lead (see normalization.lead_record)
        field_mapping: Internal field -> portal parameter name
        required_fields: Internal fields that must carry data when mapped

    Returns:
        Tuple of (portal_params, errors)
    """
    required = set(required_fields)
    params = {}
    errors = []

    for field, param in field_mapping.items():
        value = normalize_value(get_nested_value(record, field))
        error = validate_field(field, param, value, field in required)
        if error:
            errors.append(error)
            continue
        if value is None:
            continue
        if field in PHONE_FIELDS:
            value = digits_only(value)
        params[param] = value

    return params, errors


def apply_defaults(params: dict, default_values: dict) -> dict:
    """Fill parameters the lead left empty; real lead data always wins."""
    for param, default in default_values.items():
        value = normalize_value(default)
        if value is not None and not params.get(param):
            params[param] = value
    return params


def build_submission(
    portal_url: str,
    lead,
    field_mapping: dict,
    default_values: dict,
    submitted_at: datetime,
    source_tag: Optional[str] = None,
    transaction_prefix: str = DEFAULT_TRANSACTION_PREFIX,
    required_fields: Iterable[str] = REQUIRED_FIELDS,
) -> Tuple[Optional[str], List[str]]:
    """
    Build the fully-qualified, pre-filled portal URL for a lead.

    Pure: the same inputs always produce the same URL, and no state is
    touched. Any error means the lead must not be submitted.

    Args:
        portal_url: Portal base URL (existing query parameters are kept)
        lead: Lead model instance or an already flattened lead record
        field_mapping: Internal field -> portal parameter name
        default_values: Portal parameter -> value used when the lead has none
        submitted_at: Submission timestamp used for the tracking identifier
        source_tag: Source tag used when the lead has no source of its own
        transaction_prefix: Prefix of the tracking identifier
        required_fields: Internal fields that must carry data when mapped

    Returns:
        Tuple of (url, errors); url is None whenever errors is non-empty
    """
    record = lead if isinstance(lead, dict) else lead_record(lead)

    params, errors = map_lead_fields(record, field_mapping, required_fields)
    if errors:
        logger.info(f"Lead {record.get('id')}: {len(errors)} validation errors: {errors}")
        return None, errors

    apply_defaults(params, default_values)

    lead_id = record.get('id')
    params[LEAD_ID_PARAM] = str(lead_id)
    params[SOURCE_PARAM] = normalize_value(record.get('source')) or source_tag or DEFAULT_SOURCE_TAG
    params[TRANSACTION_PARAM] = transaction_id(lead_id, submitted_at, transaction_prefix)

    parts = urlsplit(portal_url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(params)

    url = urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))
    logger.debug(f"Lead {lead_id}: built submission with {len(query)} parameters")
    return url, []


def redact_url(url: Optional[str], params: Iterable[str]) -> Optional[str]:
    """Mask the values of sensitive query parameters before a URL is stored or logged."""
    if not url:
        return url
    sensitive = set(params)
    parts = urlsplit(url)
    query = [
        (key, REDACTED if key in sensitive and value else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query, safe='*'), parts.fragment))
