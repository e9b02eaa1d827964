"""Execution handlers for the operations shipped with the ERP.

Importing this module registers the handlers on ``execution_registry``;
``freight_approvals.main`` does so at startup.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_approvals.models import ApprovalRequest, Fee, RolePermission, Supplier, User
from freight_approvals.schemas.approval_payloads import (
    FeeSupplementPayload,
    PermissionGrantPayload,
    SupplierDeletePayload,
    UserCreatePayload,
    UserDeletePayload,
)
from freight_approvals.services.delegation import can_grant_permission, role_has_permission
from freight_approvals.services.execution_dispatcher import ExecutionRegistry, execution_registry

logger = logging.getLogger(__name__)


class HandlerError(RuntimeError):
    """Raised when a deferred mutation can no longer be applied."""


def delete_supplier(db: Session, approval: ApprovalRequest, payload: SupplierDeletePayload) -> dict:
    supplier = db.get(Supplier, payload.supplier_id)
    if supplier is None:
        raise HandlerError(f"Supplier {payload.supplier_id} no longer exists")
    db.delete(supplier)
    db.flush()
    return {"action": "supplier_delete", "supplier_id": str(payload.supplier_id)}


def approve_fee_supplement(db: Session, approval: ApprovalRequest, payload: FeeSupplementPayload) -> dict:
    fee = db.get(Fee, payload.fee_id)
    if fee is None:
        raise HandlerError(f"Fee {payload.fee_id} no longer exists")
    fee.approval_status = "approved"
    db.flush()
    return {"action": "fee_approve", "fee_id": str(payload.fee_id)}


def create_user(db: Session, approval: ApprovalRequest, payload: UserCreatePayload) -> dict:
    if payload.email:
        existing = db.execute(select(User).where(User.email == payload.email)).scalars().first()
        if existing is not None:
            raise HandlerError(f"Email {payload.email} already in use")
    user = User(
        name=payload.name,
        email=payload.email,
        role_code=payload.role_code,
        supervisor_id=payload.supervisor_id,
        department=payload.department,
    )
    db.add(user)
    db.flush()
    return {"action": "user_create", "user_id": str(user.id)}


def deactivate_user(db: Session, approval: ApprovalRequest, payload: UserDeletePayload) -> dict:
    user = db.get(User, payload.user_id)
    if user is None:
        raise HandlerError(f"User {payload.user_id} no longer exists")
    user.status = "disabled"
    db.flush()
    return {"action": "user_delete", "user_id": str(payload.user_id)}


def grant_permission(db: Session, approval: ApprovalRequest, payload: PermissionGrantPayload) -> dict:
    # Delegation may have changed between request and approval.
    if not can_grant_permission(db, payload.granter_id, payload.permission_code):
        raise HandlerError(
            f"User {payload.granter_id} may no longer grant {payload.permission_code}"
        )
    if not role_has_permission(db, payload.role_code, payload.permission_code):
        db.add(RolePermission(role_code=payload.role_code, permission_code=payload.permission_code))
        db.flush()
    return {
        "action": "permission_grant",
        "role_code": payload.role_code,
        "permission_code": payload.permission_code,
    }


def register_default_handlers(registry: ExecutionRegistry) -> ExecutionRegistry:
    registry.add("SUPPLIER_DELETE", delete_supplier, payload_model=SupplierDeletePayload)
    registry.add("FEE_SUPPLEMENT", approve_fee_supplement, payload_model=FeeSupplementPayload)
    registry.add("USER_CREATE", create_user, payload_model=UserCreatePayload)
    registry.add("USER_DELETE", deactivate_user, payload_model=UserDeletePayload)
    registry.add("PERMISSION_GRANT", grant_permission, payload_model=PermissionGrantPayload)
    logger.debug("Registered default execution handlers: %s", ", ".join(registry.operation_codes()))
    return registry


register_default_handlers(execution_registry)


__all__ = ["HandlerError", "register_default_handlers"]
