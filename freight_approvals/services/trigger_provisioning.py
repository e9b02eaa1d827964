"""Requests from business users asking for a new gated operation.

A request moves ``requested -> developing -> completed`` (or to ``rejected``
from either open state). Completing a request makes the operation code live
in the trigger registry.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freight_approvals.constants.approvals import BUSINESS_MODULES
from freight_approvals.constants.roles import DEFAULT_APPROVER_ROLES
from freight_approvals.models import OperationTrigger, TriggerProvisioningRequest
from freight_approvals.models.entities import utcnow
from freight_approvals.services.approval_errors import (
    ApprovalError,
    ApprovalNotFoundError,
    ApprovalPermissionError,
    ApprovalValidationError,
    InvalidStateError,
)
from freight_approvals.services.role_hierarchy import RoleHierarchy, get_role_hierarchy
from freight_approvals.services.trigger_registry import (
    create_trigger,
    derive_operation_code,
    find_trigger_for_action,
)

logger = logging.getLogger(__name__)

REQUESTED = "requested"
DEVELOPING = "developing"
COMPLETED = "completed"
REJECTED = "rejected"

OPEN_STATUSES = (REQUESTED, DEVELOPING)
TERMINAL_STATUSES = (COMPLETED, REJECTED)

ALLOWED_TRANSITIONS = {
    REQUESTED: (DEVELOPING, REJECTED),
    DEVELOPING: (COMPLETED, REJECTED),
}


def _lookup_names(business_module: str, trigger_action: str) -> tuple[str | None, str | None]:
    for module in BUSINESS_MODULES:
        if module["code"] == business_module:
            return module["name"], trigger_action.replace("_", " ").capitalize()
    return None, None


def _open_request_for(
    db: Session, business_module: str, trigger_action: str
) -> TriggerProvisioningRequest | None:
    stmt = (
        select(TriggerProvisioningRequest)
        .where(
            TriggerProvisioningRequest.business_module == business_module,
            TriggerProvisioningRequest.trigger_action == trigger_action,
            TriggerProvisioningRequest.status.in_(OPEN_STATUSES),
        )
        .limit(1)
    )
    return db.execute(stmt).scalars().first()


def request_trigger(
    db: Session,
    params: Mapping[str, Any],
    *,
    requested_by_id: UUID | None = None,
    requested_by_name: str | None = None,
) -> TriggerProvisioningRequest:
    business_module = (params.get("business_module") or "").strip()
    trigger_action = (params.get("trigger_action") or "").strip()
    if not business_module or not trigger_action:
        raise ApprovalValidationError("business_module and trigger_action are required")

    if find_trigger_for_action(db, business_module, trigger_action) is not None:
        raise ApprovalValidationError(
            f"A trigger for {business_module}/{trigger_action} already exists"
        )
    if _open_request_for(db, business_module, trigger_action) is not None:
        raise ApprovalValidationError(
            f"A request for {business_module}/{trigger_action} is already in progress"
        )

    module_name, action_name = _lookup_names(business_module, trigger_action)
    request = TriggerProvisioningRequest(
        business_module=business_module,
        trigger_action=trigger_action,
        module_name=params.get("module_name") or module_name,
        action_name=params.get("action_name") or action_name,
        description=params.get("description"),
        expected_roles=list(params.get("expected_roles") or []),
        status=REQUESTED,
        requested_by_id=requested_by_id,
        requested_by_name=requested_by_name,
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    logger.info("Trigger provisioning requested for %s/%s", business_module, trigger_action)
    return request


def require_request(db: Session, request_id: UUID) -> TriggerProvisioningRequest:
    request = db.get(TriggerProvisioningRequest, request_id)
    if request is None:
        raise ApprovalNotFoundError(f"Trigger request {request_id} not found")
    return request


def list_requests(db: Session, status: str | None = None) -> list[TriggerProvisioningRequest]:
    stmt = select(TriggerProvisioningRequest).order_by(TriggerProvisioningRequest.created_at.desc())
    if status:
        stmt = stmt.where(TriggerProvisioningRequest.status == status)
    return list(db.execute(stmt).scalars())


def _materialize_trigger(db: Session, request: TriggerProvisioningRequest) -> OperationTrigger:
    approver_roles = list(request.expected_roles or []) or list(DEFAULT_APPROVER_ROLES)
    existing = find_trigger_for_action(db, request.business_module, request.trigger_action)
    if existing is not None:
        existing.is_active = True
        existing.availability_status = "available"
        logger.info("Reactivated trigger %s", existing.operation_code)
        return existing

    name_parts = [part for part in (request.module_name, request.action_name) if part]
    return create_trigger(
        db,
        {
            "operation_code": derive_operation_code(request.business_module, request.trigger_action),
            "operation_name": " - ".join(name_parts)
            or f"{request.business_module} {request.trigger_action}",
            "operation_type": request.business_module,
            "description": request.description,
            "category": "business",
            "approver_roles": approver_roles,
            "business_module": request.business_module,
            "trigger_action": request.trigger_action,
            "availability_status": "available",
            "is_active": True,
        },
        commit=False,
    )


def advance(
    db: Session,
    request_id: UUID,
    status: str,
    *,
    actor_id: UUID | None = None,
    actor_name: str | None = None,
    actor_role: str | None = None,
    developer_notes: str | None = None,
    hierarchy: RoleHierarchy | None = None,
) -> TriggerProvisioningRequest:
    roles = hierarchy or get_role_hierarchy()
    if not roles.is_admin_or_boss(actor_role):
        raise ApprovalPermissionError("Only administrators may process trigger requests")

    request = require_request(db, request_id)
    if request.status in TERMINAL_STATUSES:
        raise InvalidStateError(f"Trigger request {request_id} is already {request.status}")
    if status not in ALLOWED_TRANSITIONS.get(request.status, ()):
        raise InvalidStateError(f"Cannot move trigger request from {request.status} to {status}")

    try:
        if status == COMPLETED:
            trigger = _materialize_trigger(db, request)
            request.operation_code = trigger.operation_code
            request.completed_by_id = actor_id
            request.completed_by_name = actor_name
            request.completed_at = utcnow()

        request.status = status
        if developer_notes is not None:
            request.developer_notes = developer_notes
        db.commit()
    except (SQLAlchemyError, ApprovalError):
        db.rollback()
        raise
    db.refresh(request)
    logger.info("Trigger request %s moved to %s by %s", request.id, status, actor_id)
    return request


__all__ = [
    "ALLOWED_TRANSITIONS",
    "COMPLETED",
    "DEVELOPING",
    "REJECTED",
    "REQUESTED",
    "advance",
    "list_requests",
    "request_trigger",
    "require_request",
]
