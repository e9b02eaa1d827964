from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from freight_approvals.config import Settings
from freight_approvals.models import ApprovalRequest, Message, Supplier
from freight_approvals.models.entities import as_utc
from freight_approvals.services import approval_store
from freight_approvals.services.approval_errors import (
    ApprovalNotFoundError,
    ApprovalPermissionError,
    ApprovalValidationError,
    InvalidStateError,
    PolicyCreationError,
)
from freight_approvals.services.approval_notifications import ApprovalNotifier, MessageSink
from freight_approvals.services.execution_dispatcher import ExecutionRegistry


class RecordingSink:
    def __init__(self) -> None:
        self.delivered = []

    def deliver(self, db, notification) -> None:
        self.delivered.append(notification)


class ExplodingSink:
    def deliver(self, db, notification) -> None:
        raise RuntimeError("inbox unavailable")


@pytest.fixture()
def settings() -> Settings:
    return Settings(finance_approval_threshold=Decimal("10000"), approval_expiry_hours=72)


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def notifier(sink: RecordingSink) -> ApprovalNotifier:
    return ApprovalNotifier(sinks=[sink])


def _supplier_request(supplier: Supplier, applicant_id, **overrides) -> dict:
    params = {
        "operation_code": "SUPPLIER_DELETE",
        "title": f"Delete supplier {supplier.name}",
        "business_id": str(supplier.id),
        "business_table": "suppliers",
        "request_data": {"supplier_id": str(supplier.id)},
        "applicant_id": applicant_id,
    }
    params.update(overrides)
    return params


@pytest.fixture()
def supplier(db_session: Session) -> Supplier:
    supplier = Supplier(name="Nordic Haulage")
    db_session.add(supplier)
    db_session.commit()
    db_session.refresh(supplier)
    return supplier


def test_create_requires_core_fields(db_session: Session, notifier: ApprovalNotifier) -> None:
    with pytest.raises(ApprovalValidationError, match="title"):
        approval_store.create_approval(
            db_session,
            {"operation_code": "SUPPLIER_DELETE", "applicant_id": "00000000-0000-0000-0000-000000000001"},
            notifier=notifier,
        )


def test_create_sets_defaults_and_expiry(
    db_session: Session, default_triggers, make_user, supplier, notifier, settings
) -> None:
    operator = make_user("Olga Operator", department="Export")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), settings=settings, notifier=notifier
    )

    assert approval.status == "pending"
    assert approval.category == "business"
    assert approval.priority == "normal"
    assert approval.applicant_name == "Olga Operator"
    assert approval.applicant_role == "operator"
    assert approval.applicant_department == "Export"
    assert approval.is_executed is False
    assert as_utc(approval.expires_at) - as_utc(approval.created_at) == timedelta(hours=72)


def test_create_rejects_payload_not_matching_operation(
    db_session: Session, default_triggers, make_user, notifier
) -> None:
    operator = make_user("Olga Operator")
    with pytest.raises(ApprovalValidationError, match="SUPPLIER_DELETE"):
        approval_store.create_approval(
            db_session,
            {
                "operation_code": "SUPPLIER_DELETE",
                "title": "Delete supplier",
                "request_data": {"supplier": "not-a-uuid"},
                "applicant_id": operator.id,
            },
            notifier=notifier,
        )
    assert db_session.query(ApprovalRequest).count() == 0


def test_create_notifies_every_active_approver(
    db_session: Session, default_triggers, make_user, supplier, notifier, sink
) -> None:
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")
    boss = make_user("Bo Boss", role_code="boss")
    make_user("Old Boss", role_code="boss", status="disabled")
    make_user("Fin Director", role_code="finance_director")

    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    recipients = {notification.recipient_id for notification in sink.delivered}
    assert recipients == {admin.id, boss.id}
    assert all(notification.correlation_id == str(approval.id) for notification in sink.delivered)


def test_notification_failure_does_not_fail_create(
    db_session: Session, default_triggers, make_user, supplier
) -> None:
    operator = make_user("Olga Operator")
    make_user("Bo Boss", role_code="boss")

    approval = approval_store.create_approval(
        db_session,
        _supplier_request(supplier, operator.id),
        notifier=ApprovalNotifier(sinks=[ExplodingSink()]),
    )

    assert db_session.get(ApprovalRequest, approval.id).status == "pending"


def test_message_sink_stores_inbox_entries(
    db_session: Session, default_triggers, make_user, supplier
) -> None:
    operator = make_user("Olga Operator")
    boss = make_user("Bo Boss", role_code="boss")

    approval = approval_store.create_approval(
        db_session,
        _supplier_request(supplier, operator.id),
        notifier=ApprovalNotifier(sinks=[MessageSink()]),
    )

    message = db_session.query(Message).one()
    assert message.recipient_id == boss.id
    assert message.related_type == "approval_request"
    assert message.related_id == str(approval.id)


def test_gate_without_trigger_lets_operation_proceed(db_session: Session, make_user, notifier) -> None:
    operator = make_user("Olga Operator")
    result = approval_store.check_and_create(
        db_session,
        "CUSTOMER_DELETE",
        {"title": "Delete customer", "applicant_id": operator.id},
        notifier=notifier,
    )
    assert result.needs_approval is False
    assert result.approval is None
    assert db_session.query(ApprovalRequest).count() == 0


def test_gate_creates_pending_request(
    db_session: Session, default_triggers, make_user, supplier, notifier
) -> None:
    operator = make_user("Olga Operator")
    data = _supplier_request(supplier, operator.id)
    data.pop("operation_code")

    result = approval_store.check_and_create(db_session, "SUPPLIER_DELETE", data, notifier=notifier)

    assert result.needs_approval is True
    assert result.approval.status == "pending"
    assert result.error is None


def _fail_first_commit(db_session: Session, monkeypatch: pytest.MonkeyPatch) -> None:
    original_commit = db_session.commit
    calls = {"count": 0}

    def flaky_commit() -> None:
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("INSERT INTO approval_requests", {}, Exception("database is locked"))
        original_commit()

    monkeypatch.setattr(db_session, "commit", flaky_commit)


def test_gate_fails_open_when_request_cannot_be_stored(
    db_session: Session, default_triggers, make_user, supplier, notifier, monkeypatch, settings
) -> None:
    operator = make_user("Olga Operator")
    data = _supplier_request(supplier, operator.id)
    _fail_first_commit(db_session, monkeypatch)

    result = approval_store.check_and_create(
        db_session, "SUPPLIER_DELETE", data, settings=settings, notifier=notifier
    )

    assert result.needs_approval is False
    assert result.approval is None
    assert "SUPPLIER_DELETE" in result.error


def test_gate_fails_closed_for_configured_category(
    db_session: Session, default_triggers, make_user, notifier, monkeypatch
) -> None:
    operator = make_user("Fay Finance", role_code="finance_assistant")
    closed = Settings(approval_fail_closed_categories="finance", finance_approval_threshold=Decimal("10000"))
    _fail_first_commit(db_session, monkeypatch)

    with pytest.raises(PolicyCreationError):
        approval_store.check_and_create(
            db_session,
            "FEE_SUPPLEMENT",
            {
                "title": "Extra demurrage",
                "amount": "25000",
                "request_data": {"fee_id": "6a1d9a55-5d0b-4a7f-9c2e-3f3d2a1b0c9d"},
                "applicant_id": operator.id,
            },
            settings=closed,
            notifier=notifier,
        )


def test_gate_fails_closed_even_when_caller_sends_another_category(
    db_session: Session, default_triggers, make_user, notifier, monkeypatch
) -> None:
    operator = make_user("Fay Finance", role_code="finance_assistant")
    closed = Settings(approval_fail_closed_categories="finance", finance_approval_threshold=Decimal("10000"))
    _fail_first_commit(db_session, monkeypatch)

    with pytest.raises(PolicyCreationError):
        approval_store.check_and_create(
            db_session,
            "FEE_SUPPLEMENT",
            {
                "title": "Extra demurrage",
                "amount": "25000",
                "category": "business",
                "request_data": {"fee_id": "6a1d9a55-5d0b-4a7f-9c2e-3f3d2a1b0c9d"},
                "applicant_id": operator.id,
            },
            settings=closed,
            notifier=notifier,
        )


def test_stored_category_comes_from_trigger(
    db_session: Session, default_triggers, make_user, notifier, settings
) -> None:
    operator = make_user("Fay Finance", role_code="finance_assistant")

    result = approval_store.check_and_create(
        db_session,
        "FEE_SUPPLEMENT",
        {
            "title": "Extra demurrage",
            "amount": "25000",
            "category": "business",
            "request_data": {"fee_id": "6a1d9a55-5d0b-4a7f-9c2e-3f3d2a1b0c9d"},
            "applicant_id": operator.id,
        },
        settings=settings,
        notifier=notifier,
    )

    assert result.needs_approval is True
    assert result.approval.category == "finance"


def test_gate_never_swallows_validation_errors(
    db_session: Session, default_triggers, make_user, notifier
) -> None:
    operator = make_user("Olga Operator")
    with pytest.raises(ApprovalValidationError):
        approval_store.check_and_create(
            db_session,
            "SUPPLIER_DELETE",
            {"title": "Delete supplier", "request_data": {}, "applicant_id": operator.id},
            notifier=notifier,
        )


def test_operator_cannot_decide_supplier_delete(
    db_session: Session, default_triggers, make_user, supplier, notifier
) -> None:
    operator = make_user("Olga Operator")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    with pytest.raises(ApprovalPermissionError):
        approval_store.approve(db_session, approval.id, operator.id, operator.name, "operator", notifier=notifier)

    assert db_session.get(ApprovalRequest, approval.id).status == "pending"


def test_boss_approval_executes_supplier_delete(
    db_session: Session, default_triggers, make_user, supplier, notifier, sink
) -> None:
    operator = make_user("Olga Operator")
    boss = make_user("Bo Boss", role_code="boss")
    supplier_id = supplier.id
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    result = approval_store.approve(
        db_session, approval.id, boss.id, boss.name, "boss", "fine", notifier=notifier
    )

    assert result.approval.status == "approved"
    assert result.approval.approver_id == boss.id
    assert result.approval.approval_comment == "fine"
    assert result.approval.decided_at is not None
    assert result.execution.executed is True
    assert result.approval.is_executed is True
    assert result.approval.execution_result["supplier_id"] == str(supplier_id)
    assert db_session.get(Supplier, supplier_id) is None
    assert sink.delivered[-1].recipient_id == operator.id


def test_reject_requires_reason(db_session: Session, default_triggers, make_user, supplier, notifier) -> None:
    operator = make_user("Olga Operator")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    with pytest.raises(ApprovalValidationError):
        approval_store.reject(db_session, approval.id, operator.id, "Ada", "admin", "   ", notifier=notifier)


def test_reject_does_not_execute(db_session: Session, default_triggers, make_user, supplier, notifier) -> None:
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    result = approval_store.reject(
        db_session, approval.id, admin.id, admin.name, "admin", "Supplier still has open bills", notifier=notifier
    )

    assert result.approval.status == "rejected"
    assert result.approval.rejection_reason == "Supplier still has open bills"
    assert result.approval.is_executed is False
    assert db_session.get(Supplier, supplier.id) is not None


def test_second_decision_fails_and_keeps_first(
    db_session: Session, default_triggers, make_user, supplier, notifier
) -> None:
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")
    boss = make_user("Bo Boss", role_code="boss")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )
    approval_store.reject(db_session, approval.id, admin.id, admin.name, "admin", "duplicate", notifier=notifier)

    with pytest.raises(InvalidStateError):
        approval_store.approve(db_session, approval.id, boss.id, boss.name, "boss", notifier=notifier)

    stored = db_session.get(ApprovalRequest, approval.id)
    assert stored.status == "rejected"
    assert stored.approver_id == admin.id
    assert stored.rejection_reason == "duplicate"


def test_concurrent_decision_loses_race(
    db_session: Session, default_triggers, make_user, supplier, notifier, monkeypatch
) -> None:
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")
    boss = make_user("Bo Boss", role_code="boss")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )

    original_check = approval_store.check_approver_permission
    state = {"raced": False}

    def check_then_race(db, role, operation_code, hierarchy=None):
        allowed = original_check(db, role, operation_code, hierarchy)
        if not state["raced"]:
            state["raced"] = True
            # Another approver decides between our read and our write.
            approval_store.reject(db, approval.id, admin.id, admin.name, "admin", "too late", notifier=notifier)
        return allowed

    monkeypatch.setattr(approval_store, "check_approver_permission", check_then_race)

    with pytest.raises(InvalidStateError):
        approval_store.approve(db_session, approval.id, boss.id, boss.name, "boss", notifier=notifier)

    stored = db_session.get(ApprovalRequest, approval.id)
    db_session.refresh(stored)
    assert stored.status == "rejected"
    assert stored.approver_id == admin.id
    assert stored.is_executed is False
    assert db_session.get(Supplier, supplier.id) is not None


def test_decide_unknown_request(db_session: Session, make_user, notifier) -> None:
    admin = make_user("Ada Admin", role_code="admin")
    with pytest.raises(ApprovalNotFoundError):
        approval_store.decide(
            db_session,
            admin.id,
            admin.id,
            "admin",
            "approve",
            notifier=notifier,
        )


def test_decide_rejects_unknown_decision(
    db_session: Session, default_triggers, make_user, supplier, notifier
) -> None:
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")
    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier
    )
    with pytest.raises(ApprovalValidationError):
        approval_store.decide(db_session, approval.id, admin.id, "admin", "maybe", notifier=notifier)


def test_execution_failure_is_recorded_and_retryable(
    db_session: Session, default_triggers, make_user, supplier, notifier
) -> None:
    operator = make_user("Olga Operator")
    boss = make_user("Bo Boss", role_code="boss")
    registry = ExecutionRegistry()
    calls = {"count": 0}

    @registry.register("SUPPLIER_DELETE")
    def flaky_delete(db, approval, payload):
        calls["count"] += 1
        if calls["count"] == 1:
            raise RuntimeError("supplier locked by another user")
        return {"deleted": payload["supplier_id"]}

    approval = approval_store.create_approval(
        db_session, _supplier_request(supplier, operator.id), notifier=notifier, registry=registry
    )
    result = approval_store.approve(
        db_session, approval.id, boss.id, boss.name, "boss", registry=registry, notifier=notifier
    )

    assert result.approval.status == "approved"
    assert result.execution.executed is False
    assert "supplier locked" in result.approval.execution_result["error"]
    assert result.approval.is_executed is False

    retried = approval_store.execute_approval(db_session, approval.id, registry=registry)
    assert retried.executed is True
    assert retried.replayed is False

    replayed = approval_store.execute_approval(db_session, approval.id, registry=registry)
    assert replayed.replayed is True
    assert replayed.result == retried.result
    assert calls["count"] == 2


def _create_pending(db_session, notifier, applicant, operation_code, title, priority="normal", **extra):
    return approval_store.create_approval(
        db_session,
        {
            "operation_code": operation_code,
            "title": title,
            "applicant_id": applicant.id,
            "priority": priority,
            **extra,
        },
        notifier=notifier,
    )


def test_pending_queue_orders_by_priority_then_age(
    db_session: Session, default_triggers, make_user, notifier
) -> None:
    operator = make_user("Olga Operator")
    normal = _create_pending(db_session, notifier, operator, "ORDER_LARGE_AMOUNT", "normal first")
    urgent = _create_pending(db_session, notifier, operator, "ORDER_LARGE_AMOUNT", "urgent", priority="urgent")
    low = _create_pending(db_session, notifier, operator, "ORDER_LARGE_AMOUNT", "low", priority="low")
    later_normal = _create_pending(db_session, notifier, operator, "ORDER_LARGE_AMOUNT", "normal second")

    page = approval_store.pending_queue_for_role(db_session, "admin")

    assert [item.id for item in page.items] == [urgent.id, normal.id, later_normal.id, low.id]
    assert page.total == 4


def test_pending_queue_filters_by_approver_role(
    db_session: Session, default_triggers, make_user, notifier
) -> None:
    operator = make_user("Olga Operator")
    fee = _create_pending(
        db_session,
        notifier,
        operator,
        "FEE_SUPPLEMENT",
        "Extra fee",
        request_data={"fee_id": "6a1d9a55-5d0b-4a7f-9c2e-3f3d2a1b0c9d"},
    )
    user_delete = _create_pending(
        db_session,
        notifier,
        operator,
        "USER_DELETE",
        "Remove account",
        request_data={"user_id": str(operator.id)},
    )
    untriggered = _create_pending(db_session, notifier, operator, "ORDER_LARGE_AMOUNT", "Big order")

    finance_queue = approval_store.pending_queue_for_role(db_session, "finance_director")
    boss_queue = approval_store.pending_queue_for_role(db_session, "boss")
    admin_queue = approval_store.pending_queue_for_role(db_session, "admin")

    assert [item.id for item in finance_queue.items] == [fee.id]
    assert {item.id for item in boss_queue.items} == {fee.id, untriggered.id}
    assert {item.id for item in admin_queue.items} == {fee.id, user_delete.id, untriggered.id}
    assert approval_store.count_pending_for_role(db_session, "operator") == 0
    assert approval_store.count_pending_for_role(db_session, "boss") == 2


def test_list_approvals_filters_and_pages(db_session: Session, default_triggers, make_user, notifier) -> None:
    olga = make_user("Olga Operator")
    otto = make_user("Otto Operator")
    for index in range(3):
        _create_pending(db_session, notifier, olga, "ORDER_LARGE_AMOUNT", f"olga {index}")
    newest_otto = _create_pending(db_session, notifier, otto, "ORDER_LARGE_AMOUNT", "otto")

    everything = approval_store.list_approvals(db_session, page=1, page_size=2)
    assert everything.total == 4
    assert len(everything.items) == 2
    assert everything.items[0].id == newest_otto.id

    mine = approval_store.list_approvals(
        db_session, approval_store.ApprovalFilters(applicant_id=olga.id), page=2, page_size=2
    )
    assert mine.total == 3
    assert [item.title for item in mine.items] == ["olga 0"]
