from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_approvals.config import Settings, get_settings
from freight_approvals.constants.approvals import (
    FALLBACK_EXPIRY_HOURS,
    FALLBACK_FINANCE_THRESHOLD,
)
from freight_approvals.models import ApprovalConfig
from freight_approvals.services.approval_errors import ApprovalValidationError

logger = logging.getLogger(__name__)

APPROVAL_ENABLED_KEY = "approval_enabled"
FINANCE_THRESHOLD_KEY = "finance_approval_threshold"
DEFAULT_EXPIRY_HOURS_KEY = "default_expiry_hours"

_CONFIG_TYPES = {
    APPROVAL_ENABLED_KEY: "boolean",
    FINANCE_THRESHOLD_KEY: "number",
    DEFAULT_EXPIRY_HOURS_KEY: "number",
}

_CONFIG_DESCRIPTIONS = {
    APPROVAL_ENABLED_KEY: "Global switch for the approval engine.",
    FINANCE_THRESHOLD_KEY: "Amount at or above which finance operations require approval.",
    DEFAULT_EXPIRY_HOURS_KEY: "Hours until a new approval request is displayed as expired.",
}


def _get_config_record(db: Session, key: str) -> ApprovalConfig | None:
    stmt = select(ApprovalConfig).where(ApprovalConfig.key == key).limit(1)
    return db.execute(stmt).scalars().first()


def _get_config_value(db: Session, key: str) -> str | None:
    record = _get_config_record(db, key)
    return record.value if record else None


def _set_config_value(db: Session, key: str, value: str) -> None:
    record = _get_config_record(db, key)
    if record:
        record.value = value
        db.add(record)
    else:
        db.add(
            ApprovalConfig(
                key=key,
                value=value,
                value_type=_CONFIG_TYPES.get(key, "string"),
                description=_CONFIG_DESCRIPTIONS.get(key),
            )
        )


def _parse_decimal(raw: str | None) -> Decimal | None:
    if raw is None:
        return None
    try:
        return Decimal(raw)
    except (InvalidOperation, ValueError):
        logger.warning("Ignoring non-numeric approval config value %r", raw)
        return None


def _coerce_config_value(key: str, value: Any) -> str:
    if _CONFIG_TYPES[key] == "boolean":
        if isinstance(value, bool):
            return "true" if value else "false"
        text = str(value).strip().lower()
        if text not in ("true", "false"):
            raise ApprovalValidationError(f"{key} must be true or false")
        return text

    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ApprovalValidationError(f"{key} must be a number") from exc
    if not number.is_finite() or number < 0:
        raise ApprovalValidationError(f"{key} must be a non-negative number")
    if key == DEFAULT_EXPIRY_HOURS_KEY and (number <= 0 or number != number.to_integral_value()):
        raise ApprovalValidationError(f"{key} must be a positive whole number")
    return str(number)


def approvals_enabled(db: Session, settings: Settings | None = None) -> bool:
    raw = _get_config_value(db, APPROVAL_ENABLED_KEY)
    if raw is not None:
        return raw.strip().lower() != "false"
    settings = settings or get_settings()
    return settings.approvals_enabled


def finance_threshold(db: Session, settings: Settings | None = None) -> Decimal:
    stored = _parse_decimal(_get_config_value(db, FINANCE_THRESHOLD_KEY))
    if stored is not None:
        return stored
    settings = settings or get_settings()
    if settings.finance_approval_threshold is not None:
        return Decimal(settings.finance_approval_threshold)
    return Decimal(FALLBACK_FINANCE_THRESHOLD)


def default_expiry_hours(db: Session, settings: Settings | None = None) -> int:
    stored = _parse_decimal(_get_config_value(db, DEFAULT_EXPIRY_HOURS_KEY))
    if stored is not None and stored > 0:
        return int(stored)
    settings = settings or get_settings()
    return settings.approval_expiry_hours or FALLBACK_EXPIRY_HOURS


def get_approval_configs(db: Session, settings: Settings | None = None) -> dict[str, Any]:
    return {
        APPROVAL_ENABLED_KEY: approvals_enabled(db, settings),
        FINANCE_THRESHOLD_KEY: finance_threshold(db, settings),
        DEFAULT_EXPIRY_HOURS_KEY: default_expiry_hours(db, settings),
    }


def update_approval_configs(
    db: Session,
    updates: dict[str, Any],
    settings: Settings | None = None,
) -> dict[str, Any]:
    unknown = sorted(set(updates) - set(_CONFIG_TYPES))
    if unknown:
        raise ApprovalValidationError(f"Unknown approval config keys: {', '.join(unknown)}")

    stored_values = {
        key: _coerce_config_value(key, value) for key, value in updates.items() if value is not None
    }
    for key, stored in stored_values.items():
        _set_config_value(db, key, stored)

    db.commit()
    logger.info("Updated approval configs: %s", ", ".join(sorted(updates)))
    return get_approval_configs(db, settings)


__all__ = [
    "APPROVAL_ENABLED_KEY",
    "DEFAULT_EXPIRY_HOURS_KEY",
    "FINANCE_THRESHOLD_KEY",
    "approvals_enabled",
    "default_expiry_hours",
    "finance_threshold",
    "get_approval_configs",
    "update_approval_configs",
]
