# Overview: Typed business settings persisted in a single versioned row.

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any

from flask import g

from ..extensions import db
from ..models import SystemSettingsRecord
from ..time_utils import utcnow


SCHEMA_VERSION = 1
REPORT_FREQUENCIES = ("daily", "weekly", "monthly")

_CACHE_KEY = "_system_settings"


class SettingsError(ValueError):
    pass


class SettingsValidationError(SettingsError):
    pass


@dataclass(frozen=True)
class CompanySettings:
    name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    tax_id: str = ""
    logo_url: str | None = None


@dataclass(frozen=True)
class PosSettings:
    enable_automatic_discount: bool = False
    default_tax_rate: int = 13
    allow_negative_inventory: bool = False
    require_customer_for_sale: bool = False
    receipt_footer: str = ""


@dataclass(frozen=True)
class InventorySettings:
    low_stock_threshold: int = 5
    enable_stock_notifications: bool = True
    track_product_serials: bool = False
    default_supplier_id: int | None = None


@dataclass(frozen=True)
class SecuritySettings:
    password_expiry_days: int = 90
    session_timeout_minutes: int = 30
    login_attempts: int = 5
    require_strong_passwords: bool = True


@dataclass(frozen=True)
class NotificationSettings:
    email_notifications: bool = True
    low_stock_alerts: bool = True
    sales_reports: bool = True
    report_frequency: str = "weekly"


@dataclass(frozen=True)
class SystemSettings:
    company: CompanySettings = field(default_factory=CompanySettings)
    pos: PosSettings = field(default_factory=PosSettings)
    inventory: InventorySettings = field(default_factory=InventorySettings)
    security: SecuritySettings = field(default_factory=SecuritySettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    schema_version: int = SCHEMA_VERSION

    def to_dict(self) -> dict:
        return asdict(self)


SECTIONS = {
    "company": CompanySettings,
    "pos": PosSettings,
    "inventory": InventorySettings,
    "security": SecuritySettings,
    "notifications": NotificationSettings,
}


def _check_value(section: str, key: str, declared: str, value: Any) -> Any:
    """Validate one field against its declared annotation ('int', 'str | None', ...)."""
    name = f"{section}.{key}"
    optional = declared.endswith("| None")
    base = declared.split("|")[0].strip()

    if value is None:
        if optional:
            return None
        raise SettingsValidationError(f"{name} cannot be null")

    if base == "bool":
        if not isinstance(value, bool):
            raise SettingsValidationError(f"{name} must be a boolean")
    elif base == "int":
        if isinstance(value, bool) or not isinstance(value, int):
            raise SettingsValidationError(f"{name} must be an integer")
        if value < 0:
            raise SettingsValidationError(f"{name} must be >= 0")
    elif base == "str":
        if not isinstance(value, str):
            raise SettingsValidationError(f"{name} must be a string")
        value = value.strip()
    return value


def _validate_section(section: str, cls, current, patch: Any):
    if not isinstance(patch, dict):
        raise SettingsValidationError(f"{section} must be an object")

    declared = {f.name: f.type for f in fields(cls)}
    changes = {}
    for key, value in patch.items():
        if key not in declared:
            raise SettingsValidationError(f"Unknown setting: {section}.{key}")
        changes[key] = _check_value(section, key, declared[key], value)

    merged = replace(current, **changes)
    if isinstance(merged, PosSettings) and merged.default_tax_rate > 100:
        raise SettingsValidationError("pos.default_tax_rate must be between 0 and 100")
    if isinstance(merged, NotificationSettings) and merged.report_frequency not in REPORT_FREQUENCIES:
        raise SettingsValidationError(
            f"notifications.report_frequency must be one of {', '.join(REPORT_FREQUENCIES)}"
        )
    if isinstance(merged, SecuritySettings) and merged.login_attempts < 1:
        raise SettingsValidationError("security.login_attempts must be >= 1")
    return merged


def merge_settings(current: SystemSettings, payload: Any) -> SystemSettings:
    """Apply a partial update; untouched sections and keys keep their values."""
    if not isinstance(payload, dict):
        raise SettingsValidationError("settings must be an object")

    updated = current
    for section, patch in payload.items():
        if section == "schema_version":
            if patch != SCHEMA_VERSION:
                raise SettingsValidationError(f"Unsupported schema_version: {patch}")
            continue
        cls = SECTIONS.get(section)
        if cls is None:
            raise SettingsValidationError(f"Unknown settings section: {section}")
        merged = _validate_section(section, cls, getattr(current, section), patch)
        updated = replace(updated, **{section: merged})
    return updated


def _from_record(record: SystemSettingsRecord | None) -> SystemSettings:
    if record is None:
        return SystemSettings()
    try:
        data = json.loads(record.payload or "{}")
    except json.JSONDecodeError as exc:
        raise SettingsError(f"Stored settings are not valid JSON: {exc}") from exc
    data.pop("schema_version", None)
    return merge_settings(SystemSettings(), data)


def _get_record() -> SystemSettingsRecord | None:
    return db.session.query(SystemSettingsRecord).order_by(SystemSettingsRecord.id.asc()).first()


def get_settings() -> SystemSettings:
    """Load settings once per request (or app context) and cache them on g."""
    cached = g.get(_CACHE_KEY)
    if cached is not None:
        return cached
    settings = _from_record(_get_record())
    setattr(g, _CACHE_KEY, settings)
    return settings


def invalidate_cache() -> None:
    g.pop(_CACHE_KEY, None)


def update_settings(payload: Any, actor_id: int | None) -> SystemSettings:
    """Validate, merge and persist a partial settings update. Commits."""
    record = _get_record()
    updated = merge_settings(_from_record(record), payload)

    if record is None:
        record = SystemSettingsRecord()
        db.session.add(record)
    record.schema_version = SCHEMA_VERSION
    record.payload = json.dumps(updated.to_dict(), sort_keys=True)
    record.updated_by_user_id = actor_id
    record.updated_at = utcnow()
    db.session.commit()

    invalidate_cache()
    return updated


def get_settings_record() -> SystemSettingsRecord | None:
    return _get_record()
