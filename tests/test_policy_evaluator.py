from decimal import Decimal

import pytest
from sqlalchemy.orm import Session

from freight_approvals.config import Settings
from freight_approvals.services import approval_settings
from freight_approvals.services.approval_errors import ApprovalValidationError
from freight_approvals.services.policy_evaluator import evaluate, resolve_threshold
from freight_approvals.services.trigger_registry import create_trigger, toggle_trigger


@pytest.fixture()
def settings() -> Settings:
    return Settings(finance_approval_threshold=Decimal("10000"), approvals_enabled=True)


def test_unknown_operation_is_not_gated(db_session: Session, settings: Settings) -> None:
    decision = evaluate(db_session, "NOT_REGISTERED", {"amount": 999999}, settings)
    assert decision.required is False
    assert decision.trigger is None


def test_active_trigger_requires_approval(db_session: Session, default_triggers, settings: Settings) -> None:
    decision = evaluate(db_session, "SUPPLIER_DELETE", {}, settings)
    assert decision.required is True
    assert decision.trigger.operation_code == "SUPPLIER_DELETE"


def test_inactive_trigger_is_not_gated(db_session: Session, default_triggers, settings: Settings) -> None:
    toggle_trigger(db_session, default_triggers["SUPPLIER_DELETE"].id)
    assert evaluate(db_session, "SUPPLIER_DELETE", {}, settings).required is False


def test_trigger_without_requires_approval_is_not_gated(db_session: Session, settings: Settings) -> None:
    create_trigger(
        db_session,
        {"operation_code": "ORDER_CANCEL", "operation_name": "Cancel order", "requires_approval": False},
    )
    assert evaluate(db_session, "ORDER_CANCEL", {}, settings).required is False


@pytest.mark.parametrize(
    ("amount", "expected"),
    [("9999.99", False), ("10000", True), ("10000.01", True)],
)
def test_finance_threshold_boundary(
    db_session: Session, default_triggers, settings: Settings, amount: str, expected: bool
) -> None:
    decision = evaluate(db_session, "FEE_SUPPLEMENT", {"amount": amount}, settings)
    assert decision.required is expected


def test_missing_amount_still_requires_approval(db_session: Session, default_triggers, settings: Settings) -> None:
    assert evaluate(db_session, "FEE_SUPPLEMENT", {}, settings).required is True


def test_explicit_threshold_overrides_configured_value(db_session: Session, settings: Settings) -> None:
    trigger = create_trigger(
        db_session,
        {
            "operation_code": "PAYMENT_REQUEST",
            "operation_name": "Payment request",
            "category": "business",
            "trigger_condition": {"amount_threshold": 500},
        },
    )
    assert resolve_threshold(db_session, trigger, settings) == Decimal("500")
    assert evaluate(db_session, "PAYMENT_REQUEST", {"amount": 499}, settings).required is False
    assert evaluate(db_session, "PAYMENT_REQUEST", {"amount": 500}, settings).required is True


def test_database_threshold_overrides_environment(
    db_session: Session, default_triggers, settings: Settings
) -> None:
    approval_settings.update_approval_configs(db_session, {"finance_approval_threshold": 200})
    assert evaluate(db_session, "FEE_SUPPLEMENT", {"amount": 250}, settings).required is True
    assert evaluate(db_session, "FEE_SUPPLEMENT", {"amount": 150}, settings).required is False


def test_global_switch_disables_every_gate(db_session: Session, default_triggers, settings: Settings) -> None:
    approval_settings.update_approval_configs(db_session, {"approval_enabled": False})
    assert evaluate(db_session, "SUPPLIER_DELETE", {}, settings).required is False

    disabled = Settings(approvals_enabled=False)
    approval_settings.update_approval_configs(db_session, {"approval_enabled": True})
    assert evaluate(db_session, "SUPPLIER_DELETE", {}, disabled).required is True


def test_unknown_config_key_is_rejected(db_session: Session) -> None:
    with pytest.raises(ApprovalValidationError):
        approval_settings.update_approval_configs(db_session, {"not_a_key": 1})


@pytest.mark.parametrize(
    "updates",
    [
        {"finance_approval_threshold": "ten thousand"},
        {"finance_approval_threshold": -5},
        {"default_expiry_hours": 0},
        {"default_expiry_hours": "1.5"},
        {"approval_enabled": "maybe"},
    ],
)
def test_invalid_config_values_are_rejected(db_session: Session, updates) -> None:
    with pytest.raises(ApprovalValidationError):
        approval_settings.update_approval_configs(db_session, updates)

    assert approval_settings.get_approval_configs(db_session)["approval_enabled"] is True


def test_config_accepts_textual_values(db_session: Session, settings: Settings) -> None:
    configs = approval_settings.update_approval_configs(
        db_session,
        {"approval_enabled": "false", "finance_approval_threshold": "2500", "default_expiry_hours": "48"},
        settings,
    )

    assert configs["approval_enabled"] is False
    assert configs["finance_approval_threshold"] == Decimal("2500")
    assert configs["default_expiry_hours"] == 48
