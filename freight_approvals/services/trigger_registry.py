"""Durable catalogue of gated operations.

Triggers are never deleted; an administrator deactivates them instead so
historical approval requests keep a resolvable policy record.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from freight_approvals.constants.approvals import APPROVAL_CATEGORIES
from freight_approvals.constants.roles import DEFAULT_APPROVER_ROLES
from freight_approvals.models import OperationTrigger
from freight_approvals.services.approval_errors import (
    ApprovalNotFoundError,
    ApprovalValidationError,
)

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "operation_name",
    "operation_type",
    "description",
    "category",
    "requires_approval",
    "approval_level",
    "approver_roles",
    "business_module",
    "trigger_action",
    "trigger_condition",
    "availability_status",
    "is_active",
}

_NON_NULLABLE_FIELDS = {
    "operation_name",
    "category",
    "requires_approval",
    "approval_level",
    "availability_status",
    "is_active",
}


def derive_operation_code(business_module: str, trigger_action: str) -> str:
    return f"{business_module.strip().upper()}_{trigger_action.strip().upper()}"


def get_trigger_by_code(db: Session, operation_code: str) -> OperationTrigger | None:
    stmt = select(OperationTrigger).where(OperationTrigger.operation_code == operation_code).limit(1)
    return db.execute(stmt).scalars().first()


def get_active_trigger(db: Session, operation_code: str) -> OperationTrigger | None:
    stmt = (
        select(OperationTrigger)
        .where(
            OperationTrigger.operation_code == operation_code,
            OperationTrigger.is_active.is_(True),
        )
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def find_trigger_for_action(
    db: Session, business_module: str, trigger_action: str
) -> OperationTrigger | None:
    stmt = (
        select(OperationTrigger)
        .where(
            OperationTrigger.business_module == business_module,
            OperationTrigger.trigger_action == trigger_action,
        )
        .limit(1)
    )
    trigger = db.execute(stmt).scalars().first()
    if trigger is not None:
        return trigger
    return get_trigger_by_code(db, derive_operation_code(business_module, trigger_action))


def require_trigger(db: Session, trigger_id: UUID) -> OperationTrigger:
    trigger = db.get(OperationTrigger, trigger_id)
    if trigger is None:
        raise ApprovalNotFoundError(f"Trigger {trigger_id} not found")
    return trigger


def list_triggers(
    db: Session,
    *,
    category: str | None = None,
    availability_status: str | None = None,
    is_active: bool | None = None,
) -> list[OperationTrigger]:
    stmt = select(OperationTrigger).order_by(
        OperationTrigger.category,
        OperationTrigger.business_module,
        OperationTrigger.trigger_action,
        OperationTrigger.operation_code,
    )
    if category:
        stmt = stmt.where(OperationTrigger.category == category)
    if availability_status:
        stmt = stmt.where(OperationTrigger.availability_status == availability_status)
    if is_active is not None:
        stmt = stmt.where(OperationTrigger.is_active.is_(is_active))
    return list(db.execute(stmt).scalars())


def operation_codes_for_role(db: Session, role_code: str) -> list[str]:
    """Active operation codes whose approver roles include ``role_code``."""
    triggers = list_triggers(db, is_active=True)
    return [trigger.operation_code for trigger in triggers if role_code in (trigger.approver_roles or [])]


def _validate_category(category: str | None) -> None:
    if category is not None and category not in APPROVAL_CATEGORIES:
        raise ApprovalValidationError(
            f"Category must be one of: {', '.join(APPROVAL_CATEGORIES)}"
        )


def _normalize_roles(roles: Iterable[str] | None) -> list[str]:
    if not roles:
        return []
    seen: list[str] = []
    for role in roles:
        value = (role or "").strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def create_trigger(db: Session, data: Mapping[str, Any], *, commit: bool = True) -> OperationTrigger:
    operation_code = (data.get("operation_code") or "").strip()
    operation_name = (data.get("operation_name") or "").strip()
    if not operation_code or not operation_name:
        raise ApprovalValidationError("operation_code and operation_name are required")
    _validate_category(data.get("category"))

    if get_trigger_by_code(db, operation_code) is not None:
        raise ApprovalValidationError(f"Trigger {operation_code} already exists")

    values = {key: value for key, value in data.items() if key in _UPDATABLE_FIELDS}
    values["approver_roles"] = _normalize_roles(values.get("approver_roles")) or list(
        DEFAULT_APPROVER_ROLES
    )
    values["operation_name"] = operation_name
    trigger = OperationTrigger(operation_code=operation_code, **values)
    db.add(trigger)
    if not commit:
        db.flush()
        return trigger

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ApprovalValidationError(f"Trigger {operation_code} already exists") from exc
    db.refresh(trigger)
    logger.info("Registered trigger %s", operation_code)
    return trigger


def update_trigger(db: Session, trigger_id: UUID, updates: Mapping[str, Any]) -> OperationTrigger:
    trigger = require_trigger(db, trigger_id)
    cleared = sorted(
        field for field in _NON_NULLABLE_FIELDS if field in updates and updates[field] is None
    )
    if cleared:
        raise ApprovalValidationError(f"Fields cannot be cleared: {', '.join(cleared)}")
    if "category" in updates:
        _validate_category(updates["category"])

    for field, value in updates.items():
        if field not in _UPDATABLE_FIELDS:
            continue
        if field == "approver_roles":
            value = _normalize_roles(value)
        setattr(trigger, field, value)

    db.commit()
    db.refresh(trigger)
    logger.info("Updated trigger %s (%s)", trigger.operation_code, ", ".join(sorted(updates)))
    return trigger


def toggle_trigger(db: Session, trigger_id: UUID) -> OperationTrigger:
    trigger = require_trigger(db, trigger_id)
    trigger.is_active = not trigger.is_active
    db.commit()
    db.refresh(trigger)
    logger.info(
        "Trigger %s is now %s",
        trigger.operation_code,
        "active" if trigger.is_active else "inactive",
    )
    return trigger


def seed_default_triggers(db: Session, definitions: Iterable[Mapping[str, Any]]) -> list[OperationTrigger]:
    created: list[OperationTrigger] = []
    for definition in definitions:
        if get_trigger_by_code(db, definition["operation_code"]) is not None:
            continue
        created.append(create_trigger(db, definition, commit=False))
    db.commit()
    return created


__all__ = [
    "create_trigger",
    "derive_operation_code",
    "find_trigger_for_action",
    "get_active_trigger",
    "get_trigger_by_code",
    "list_triggers",
    "operation_codes_for_role",
    "require_trigger",
    "seed_default_triggers",
    "toggle_trigger",
    "update_trigger",
]
