from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from freight_approvals.models import ApprovalRequest, Fee, RolePermission, Permission, User
from freight_approvals.models.entities import utcnow
from freight_approvals.schemas.approval_payloads import SupplierDeletePayload
from freight_approvals.services.approval_errors import ApprovalValidationError, InvalidStateError
from freight_approvals.services.execution_dispatcher import (
    MANUAL_EXECUTION_RESULT,
    ExecutionRegistry,
    execution_registry,
)


def _approval(db_session: Session, operation_code: str, request_data=None, status: str = "approved", **extra):
    approval = ApprovalRequest(
        operation_code=operation_code,
        category=extra.pop("category", "business"),
        title=f"{operation_code} request",
        request_data=request_data,
        applicant_id=uuid4(),
        expires_at=utcnow(),
        status=status,
        **extra,
    )
    db_session.add(approval)
    db_session.commit()
    db_session.refresh(approval)
    return approval


def test_unknown_operation_requires_manual_execution(db_session: Session) -> None:
    approval = _approval(db_session, "ORDER_CANCEL")

    outcome = ExecutionRegistry().execute(db_session, approval)

    assert outcome.executed is False
    assert outcome.result == MANUAL_EXECUTION_RESULT
    assert approval.execution_result == MANUAL_EXECUTION_RESULT
    assert approval.is_executed is False


def test_pending_request_cannot_execute(db_session: Session) -> None:
    approval = _approval(db_session, "ORDER_CANCEL", status="pending")
    with pytest.raises(InvalidStateError):
        ExecutionRegistry().execute(db_session, approval)


def test_handler_runs_exactly_once(db_session: Session) -> None:
    registry = ExecutionRegistry()
    calls = []

    @registry.register("ORDER_CANCEL")
    def cancel_order(db, approval, payload):
        calls.append(approval.id)
        return {"cancelled": True}

    approval = _approval(db_session, "ORDER_CANCEL")

    first = registry.execute(db_session, approval)
    second = registry.execute(db_session, approval)

    assert first.executed is True and first.replayed is False
    assert second.replayed is True
    assert second.result == {"cancelled": True, "executed": True}
    assert calls == [approval.id]
    assert approval.is_executed is True
    assert approval.executed_at is not None


def test_failed_handler_rolls_back_its_changes(db_session: Session) -> None:
    registry = ExecutionRegistry()

    @registry.register("USER_RENAME")
    def rename_then_fail(db, approval, payload):
        user = db.get(User, approval.applicant_id)
        user.name = "Renamed"
        db.flush()
        raise RuntimeError("downstream service refused")

    user = User(name="Original", role_code="operator")
    db_session.add(user)
    db_session.commit()
    approval = _approval(db_session, "USER_RENAME")
    approval.applicant_id = user.id
    db_session.commit()

    outcome = registry.execute(db_session, approval)

    assert outcome.executed is False
    assert "downstream service refused" in outcome.error
    assert approval.is_executed is False
    assert approval.execution_result["executed"] is False
    assert db_session.get(User, user.id).name == "Original"


def test_category_handler_is_fallback(db_session: Session) -> None:
    registry = ExecutionRegistry()
    registry.add_category("finance", lambda db, approval, payload: {"posted": True})

    approval = _approval(db_session, "PAYMENT_REQUEST", category="finance")

    assert registry.resolve("PAYMENT_REQUEST", "finance") is not None
    assert registry.execute(db_session, approval).result["posted"] is True


def test_payload_validation_normalizes_data() -> None:
    registry = ExecutionRegistry()
    registry.add("SUPPLIER_DELETE", lambda db, approval, payload: None, payload_model=SupplierDeletePayload)
    supplier_id = uuid4()

    assert registry.validate_payload("SUPPLIER_DELETE", "business", {"supplier_id": supplier_id}) == {
        "supplier_id": str(supplier_id)
    }
    with pytest.raises(ApprovalValidationError):
        registry.validate_payload("SUPPLIER_DELETE", "business", {"supplier_id": supplier_id, "force": True})
    assert registry.validate_payload("ORDER_CANCEL", "business", {"anything": 1}) == {"anything": 1}


def test_default_handlers_are_registered() -> None:
    assert {"SUPPLIER_DELETE", "FEE_SUPPLEMENT", "USER_CREATE", "USER_DELETE", "PERMISSION_GRANT"} <= set(
        execution_registry.operation_codes()
    )


def test_fee_supplement_handler_approves_fee(db_session: Session) -> None:
    fee = Fee(fee_name="Demurrage", amount=12000, approval_status="pending")
    db_session.add(fee)
    db_session.commit()
    approval = _approval(db_session, "FEE_SUPPLEMENT", {"fee_id": str(fee.id)}, category="finance")

    outcome = execution_registry.execute(db_session, approval)

    assert outcome.executed is True
    assert db_session.get(Fee, fee.id).approval_status == "approved"


def test_user_create_handler_creates_account(db_session: Session) -> None:
    approval = _approval(
        db_session,
        "USER_CREATE",
        {"name": "Nina New", "email": "nina@example.com", "role_code": "doc_clerk"},
        category="system",
    )

    outcome = execution_registry.execute(db_session, approval)

    created = db_session.query(User).filter_by(email="nina@example.com").one()
    assert outcome.result["user_id"] == str(created.id)
    assert created.role_code == "doc_clerk"


def test_permission_grant_handler_rechecks_delegation(db_session: Session) -> None:
    manager = User(name="Mia Manager", role_code="manager")
    db_session.add_all([manager, Permission(code="fee:view", name="View fees")])
    db_session.commit()
    approval = _approval(
        db_session,
        "PERMISSION_GRANT",
        {"granter_id": str(manager.id), "role_code": "operator", "permission_code": "fee:view"},
        category="system",
    )

    refused = execution_registry.execute(db_session, approval)
    assert refused.executed is False
    assert "may no longer grant" in refused.error

    db_session.add(RolePermission(role_code="manager", permission_code="fee:view"))
    db_session.commit()

    granted = execution_registry.execute(db_session, approval)
    assert granted.executed is True
    assert (
        db_session.query(RolePermission).filter_by(role_code="operator", permission_code="fee:view").count() == 1
    )
