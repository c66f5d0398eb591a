"""
Tenant portal configuration: typed loading plus admin create/update/deactivate.
"""
import json
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit

from django.db import transaction

from leads.models import PortalConfig

logger = logging.getLogger(__name__)


class PortalConfigError(Exception):
    """Raised when a stored portal configuration cannot be used."""
    pass


@dataclass(frozen=True)
class PortalSettings:
    """A portal configuration decoded once at load time."""

    config_id: int
    tenant_id: int
    portal_id: str
    portal_url: str
    field_mapping: Mapping[str, str] = field(default_factory=dict)
    default_values: Mapping[str, Any] = field(default_factory=dict)
    auto_submit: bool = True
    max_attempts: int = 3
    retry_delay_minutes: int = 5

    @classmethod
    def from_config(cls, config: PortalConfig) -> 'PortalSettings':
        return cls(
            config_id=config.id,
            tenant_id=config.tenant_id,
            portal_id=config.portal_id,
            portal_url=validate_portal_url(config.portal_url),
            field_mapping=MappingProxyType(_decode_mapping(config.field_mapping)),
            default_values=MappingProxyType(_decode_defaults(config.default_values)),
            auto_submit=bool(config.auto_submit),
            max_attempts=_non_negative('retry_attempts', config.retry_attempts),
            retry_delay_minutes=_non_negative('retry_delay_minutes', config.retry_delay_minutes),
        )


def _decode_json(name: str, value: Any) -> Any:
    # Older rows may still hold JSON-encoded strings
    if isinstance(value, str):
        try:
            return json.loads(value) if value.strip() else {}
        except json.JSONDecodeError as e:
            raise PortalConfigError(f"{name} is not valid JSON: {e}")
    return value if value is not None else {}


def _decode_mapping(value: Any) -> dict:
    mapping = _decode_json('field_mapping', value)
    if not isinstance(mapping, dict):
        raise PortalConfigError("field_mapping must be an object")
    for internal, param in mapping.items():
        if not isinstance(param, str) or not param.strip():
            raise PortalConfigError(f"field_mapping['{internal}'] must be a portal parameter name")
    return {str(internal): param.strip() for internal, param in mapping.items()}


def _decode_defaults(value: Any) -> dict:
    defaults = _decode_json('default_values', value)
    if not isinstance(defaults, dict):
        raise PortalConfigError("default_values must be an object")
    for param, default in defaults.items():
        if isinstance(default, (dict, list)):
            raise PortalConfigError(f"default_values['{param}'] must be a scalar")
    return dict(defaults)


def _non_negative(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise PortalConfigError(f"{name} must be an integer")
    if number < 0:
        raise PortalConfigError(f"{name} must not be negative")
    return number


def validate_portal_url(url: str) -> str:
    parts = urlsplit(url or '')
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise PortalConfigError(f"Invalid portal URL format: {url!r}")
    return url


def get_active_portal_config(tenant_id: int, auto_submit_only: bool = False) -> Optional[PortalConfig]:
    """Return the tenant's newest active portal configuration, if any."""
    configs = PortalConfig.objects.filter(tenant_id=tenant_id, is_active=True)
    if auto_submit_only:
        configs = configs.filter(auto_submit=True)
    return configs.order_by('-created_at', '-id').first()


def load_portal_settings(tenant_id: int, auto_submit_only: bool = False) -> Optional[PortalSettings]:
    config = get_active_portal_config(tenant_id, auto_submit_only=auto_submit_only)
    if config is None:
        return None
    return PortalSettings.from_config(config)


@transaction.atomic
def save_portal_config(
    tenant,
    portal_id: str,
    portal_url: str,
    field_mapping: Optional[dict] = None,
    default_values: Optional[dict] = None,
    auto_submit: bool = True,
    retry_attempts: int = 3,
    retry_delay_minutes: int = 5,
) -> PortalConfig:
    """
    Create or update the tenant's configuration for a portal.

    Saving re-activates a previously deactivated configuration.

    Raises:
        PortalConfigError: If the URL, mapping or retry policy is invalid
    """
    if not portal_id:
        raise PortalConfigError("Portal ID is required")

    validate_portal_url(portal_url)
    values = {
        'portal_url': portal_url,
        'field_mapping': _decode_mapping(field_mapping or {}),
        'default_values': _decode_defaults(default_values or {}),
        'auto_submit': bool(auto_submit),
        'retry_attempts': _non_negative('retry_attempts', retry_attempts),
        'retry_delay_minutes': _non_negative('retry_delay_minutes', retry_delay_minutes),
        'is_active': True,
    }

    config, created = PortalConfig.objects.update_or_create(
        tenant=tenant,
        portal_id=portal_id,
        defaults=values,
    )
    logger.info(
        f"Portal config {config.id} ({portal_id}) "
        f"{'created' if created else 'updated'} for tenant {config.tenant_id}"
    )
    return config


def deactivate_portal_config(config: PortalConfig) -> PortalConfig:
    """Soft-delete a configuration; automation logs keep referencing it."""
    if config.is_active:
        config.is_active = False
        config.save(update_fields=['is_active', 'updated_at'])
        logger.info(f"Portal config {config.id} deactivated for tenant {config.tenant_id}")
    return config
