"""Lifecycle of approval requests: gate, create, decide, execute, query.

``check_and_create`` is the one call business modules make before a
sensitive mutation. Decisions move a request out of ``pending`` with a
single conditional UPDATE, so two concurrent decisions on the same request
cannot both succeed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Generic, Mapping, TypeVar
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import Select

from freight_approvals.config import Settings, get_settings
from freight_approvals.constants.approvals import APPROVAL_CATEGORIES, PRIORITY_RANKS
from freight_approvals.models import ApprovalRequest, User
from freight_approvals.models.entities import utcnow
from freight_approvals.services import approval_settings
from freight_approvals.services.approval_errors import (
    ApprovalNotFoundError,
    ApprovalPermissionError,
    ApprovalValidationError,
    InvalidStateError,
    PolicyCreationError,
)
from freight_approvals.services.approval_notifications import ApprovalNotifier, approval_notifier
from freight_approvals.services.delegation import check_approver_permission
from freight_approvals.services.execution_dispatcher import (
    ExecutionOutcome,
    ExecutionRegistry,
    execution_registry,
)
from freight_approvals.services.policy_evaluator import evaluate
from freight_approvals.services.role_hierarchy import RoleHierarchy, get_role_hierarchy
from freight_approvals.services.trigger_registry import (
    get_trigger_by_code,
    list_triggers,
    operation_codes_for_role,
)

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"

FAIL_OPEN = "fail_open"
FAIL_CLOSED = "fail_closed"

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    page_size: int


@dataclass
class GateResult:
    needs_approval: bool
    approval: ApprovalRequest | None = None
    error: str | None = None


@dataclass
class DecisionResult:
    approval: ApprovalRequest
    execution: ExecutionOutcome | None = None


@dataclass
class ApprovalFilters:
    status: str | None = None
    category: str | None = None
    operation_code: str | None = None
    applicant_id: UUID | None = None
    approver_id: UUID | None = None


def policy_error_mode(category: str | None, settings: Settings | None = None) -> str:
    settings = settings or get_settings()
    if category and category.lower() in settings.approval_fail_closed_categories:
        return FAIL_CLOSED
    return FAIL_OPEN


def _clean(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _to_amount(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ApprovalValidationError(f"Invalid amount: {value!r}") from exc


def _to_uuid(value: Any, field_name: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise ApprovalValidationError(f"{field_name} must be a UUID") from exc


def create_approval(
    db: Session,
    params: Mapping[str, Any],
    *,
    settings: Settings | None = None,
    registry: ExecutionRegistry | None = None,
    notifier: ApprovalNotifier | None = None,
) -> ApprovalRequest:
    registry = registry or execution_registry
    notifier = notifier or approval_notifier

    operation_code = _clean(params.get("operation_code"))
    title = _clean(params.get("title"))
    applicant_id = params.get("applicant_id")
    missing = [
        name
        for name, value in (
            ("operation_code", operation_code),
            ("title", title),
            ("applicant_id", applicant_id),
        )
        if not value
    ]
    if missing:
        raise ApprovalValidationError(f"Missing required fields: {', '.join(missing)}")
    applicant_id = _to_uuid(applicant_id, "applicant_id")

    priority = params.get("priority") or "normal"
    if priority not in PRIORITY_RANKS:
        raise ApprovalValidationError(f"Priority must be one of: {', '.join(PRIORITY_RANKS)}")

    trigger = get_trigger_by_code(db, operation_code)
    if trigger is not None:
        category = trigger.category
    else:
        category = params.get("category") or "business"
    if category not in APPROVAL_CATEGORIES:
        raise ApprovalValidationError(f"Category must be one of: {', '.join(APPROVAL_CATEGORIES)}")

    request_data = registry.validate_payload(operation_code, category, params.get("request_data"))

    expires_in_hours = params.get("expires_in_hours") or approval_settings.default_expiry_hours(
        db, settings
    )
    if int(expires_in_hours) <= 0:
        raise ApprovalValidationError("expires_in_hours must be positive")

    applicant = db.get(User, applicant_id)
    created_at = utcnow()
    approval = ApprovalRequest(
        category=category,
        operation_code=operation_code,
        business_id=str(params["business_id"]) if params.get("business_id") is not None else None,
        business_table=params.get("business_table"),
        title=title,
        content=params.get("content") or "",
        amount=_to_amount(params.get("amount")),
        currency=params.get("currency") or "EUR",
        request_data=request_data,
        applicant_id=applicant_id,
        applicant_name=params.get("applicant_name") or (applicant.name if applicant else ""),
        applicant_role=params.get("applicant_role") or (applicant.role_code if applicant else ""),
        applicant_department=params.get("applicant_department")
        or (applicant.department if applicant else None),
        priority=priority,
        status=PENDING,
        created_at=created_at,
        updated_at=created_at,
        expires_at=created_at + timedelta(hours=int(expires_in_hours)),
    )

    try:
        db.add(approval)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to persist approval request for %s: %s", operation_code, exc)
        raise PolicyCreationError(f"Could not create approval request for {operation_code}") from exc

    db.refresh(approval)
    logger.info(
        "Created approval %s for %s requested by %s",
        approval.id,
        operation_code,
        applicant_id,
    )

    notifier.notify_approvers(db, approval, trigger)
    return approval


def check_and_create(
    db: Session,
    operation_code: str,
    data: Mapping[str, Any],
    *,
    settings: Settings | None = None,
    registry: ExecutionRegistry | None = None,
    notifier: ApprovalNotifier | None = None,
) -> GateResult:
    """Gate ``operation_code``: create an approval request when policy requires one.

    When the request cannot be persisted the gate fails open (the caller may
    proceed, with ``error`` set) unless the operation's category is
    configured to fail closed, in which case ``PolicyCreationError``
    propagates.
    """

    decision = evaluate(db, operation_code, data, settings)
    if not decision.required:
        return GateResult(needs_approval=False)

    trigger = decision.trigger
    category = trigger.category if trigger is not None else data.get("category")
    params = {**data, "operation_code": operation_code, "category": category}

    try:
        approval = create_approval(db, params, settings=settings, registry=registry, notifier=notifier)
    except PolicyCreationError as exc:
        mode = policy_error_mode(category, settings)
        logger.error("Approval gate for %s could not create a request (%s): %s", operation_code, mode, exc)
        if mode == FAIL_CLOSED:
            raise
        return GateResult(needs_approval=False, error=str(exc))

    return GateResult(needs_approval=True, approval=approval)


def get_approval(db: Session, approval_id: UUID) -> ApprovalRequest | None:
    return db.get(ApprovalRequest, approval_id)


def require_approval(db: Session, approval_id: UUID) -> ApprovalRequest:
    approval = get_approval(db, approval_id)
    if approval is None:
        raise ApprovalNotFoundError(f"Approval {approval_id} not found")
    return approval


def _load_decidable(
    db: Session,
    approval_id: UUID,
    approver_role: str | None,
    hierarchy: RoleHierarchy | None,
) -> ApprovalRequest:
    approval = require_approval(db, approval_id)
    if approval.status != PENDING:
        raise InvalidStateError(f"Approval {approval_id} is already {approval.status}")
    if not check_approver_permission(db, approver_role, approval.operation_code, hierarchy):
        raise ApprovalPermissionError(
            f"Role {approver_role or 'unknown'} may not decide {approval.operation_code} approvals"
        )
    return approval


def _transition_from_pending(db: Session, approval_id: UUID, values: dict[str, Any]) -> bool:
    result = db.execute(
        update(ApprovalRequest)
        .where(ApprovalRequest.id == approval_id, ApprovalRequest.status == PENDING)
        .values(**values, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        return False
    db.commit()
    return True


def approve(
    db: Session,
    approval_id: UUID,
    approver_id: UUID,
    approver_name: str | None,
    approver_role: str | None,
    comment: str | None = "",
    *,
    registry: ExecutionRegistry | None = None,
    notifier: ApprovalNotifier | None = None,
    hierarchy: RoleHierarchy | None = None,
) -> DecisionResult:
    registry = registry or execution_registry
    notifier = notifier or approval_notifier

    approval = _load_decidable(db, approval_id, approver_role, hierarchy)
    transitioned = _transition_from_pending(
        db,
        approval.id,
        {
            "status": APPROVED,
            "approver_id": approver_id,
            "approver_name": approver_name or "",
            "approver_role": approver_role,
            "approval_comment": comment or "",
            "decided_at": utcnow(),
        },
    )
    if not transitioned:
        raise InvalidStateError(f"Approval {approval_id} was decided concurrently")
    db.refresh(approval)
    logger.info("Approval %s approved by %s (%s)", approval.id, approver_id, approver_role)

    try:
        outcome = registry.execute(db, approval)
    except Exception as exc:
        db.rollback()
        logger.exception("Execution dispatch failed for approval %s", approval.id)
        outcome = ExecutionOutcome(executed=False, error=str(exc))
    db.refresh(approval)

    notifier.notify_applicant(db, approval, APPROVED, comment)
    return DecisionResult(approval=approval, execution=outcome)


def reject(
    db: Session,
    approval_id: UUID,
    approver_id: UUID,
    approver_name: str | None,
    approver_role: str | None,
    reason: str | None,
    *,
    notifier: ApprovalNotifier | None = None,
    hierarchy: RoleHierarchy | None = None,
) -> DecisionResult:
    notifier = notifier or approval_notifier

    reason = _clean(reason)
    if not reason:
        raise ApprovalValidationError("A rejection reason is required")

    approval = _load_decidable(db, approval_id, approver_role, hierarchy)
    transitioned = _transition_from_pending(
        db,
        approval.id,
        {
            "status": REJECTED,
            "approver_id": approver_id,
            "approver_name": approver_name or "",
            "approver_role": approver_role,
            "rejection_reason": reason,
            "decided_at": utcnow(),
        },
    )
    if not transitioned:
        raise InvalidStateError(f"Approval {approval_id} was decided concurrently")
    db.refresh(approval)
    logger.info("Approval %s rejected by %s (%s)", approval.id, approver_id, approver_role)

    notifier.notify_applicant(db, approval, REJECTED, reason)
    return DecisionResult(approval=approval)


def decide(
    db: Session,
    approval_id: UUID,
    approver_id: UUID,
    approver_role: str | None,
    decision: str,
    comment: str | None = None,
    *,
    approver_name: str | None = None,
    registry: ExecutionRegistry | None = None,
    notifier: ApprovalNotifier | None = None,
    hierarchy: RoleHierarchy | None = None,
) -> DecisionResult:
    if approver_name is None:
        approver = db.get(User, approver_id)
        approver_name = approver.name if approver else ""

    if decision == "approve":
        return approve(
            db,
            approval_id,
            approver_id,
            approver_name,
            approver_role,
            comment,
            registry=registry,
            notifier=notifier,
            hierarchy=hierarchy,
        )
    if decision == "reject":
        return reject(
            db,
            approval_id,
            approver_id,
            approver_name,
            approver_role,
            comment,
            notifier=notifier,
            hierarchy=hierarchy,
        )
    raise ApprovalValidationError("Decision must be 'approve' or 'reject'")


def execute_approval(
    db: Session,
    approval_id: UUID,
    *,
    registry: ExecutionRegistry | None = None,
) -> ExecutionOutcome:
    """Run (or replay) execution for an approved request."""

    registry = registry or execution_registry
    approval = require_approval(db, approval_id)
    return registry.execute(db, approval)


def paginate(db: Session, stmt: Select, page: int, page_size: int) -> Page[Any]:
    page = max(page, 1)
    page_size = max(min(page_size, 200), 1)
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    items = list(db.execute(stmt.limit(page_size).offset((page - 1) * page_size)).scalars())
    return Page(items=items, total=total, page=page, page_size=page_size)


def list_approvals(
    db: Session,
    filters: ApprovalFilters | None = None,
    *,
    page: int = 1,
    page_size: int = 20,
) -> Page[ApprovalRequest]:
    filters = filters or ApprovalFilters()
    stmt = select(ApprovalRequest)
    if filters.status:
        stmt = stmt.where(ApprovalRequest.status == filters.status)
    if filters.category:
        stmt = stmt.where(ApprovalRequest.category == filters.category)
    if filters.operation_code:
        stmt = stmt.where(ApprovalRequest.operation_code == filters.operation_code)
    if filters.applicant_id:
        stmt = stmt.where(ApprovalRequest.applicant_id == filters.applicant_id)
    if filters.approver_id:
        stmt = stmt.where(ApprovalRequest.approver_id == filters.approver_id)
    stmt = stmt.order_by(ApprovalRequest.created_at.desc(), ApprovalRequest.id)
    return paginate(db, stmt, page, page_size)


def _pending_for_role_statement(
    db: Session,
    role: str | None,
    hierarchy: RoleHierarchy | None,
) -> Select | None:
    roles = hierarchy or get_role_hierarchy()
    stmt = select(ApprovalRequest).where(ApprovalRequest.status == PENDING)
    if roles.is_admin(role):
        return stmt

    codes = operation_codes_for_role(db, role or "")
    conditions = []
    if codes:
        conditions.append(ApprovalRequest.operation_code.in_(codes))
    if roles.is_admin_or_boss(role):
        # Requests without an active trigger fall back to admin/boss approval.
        active_codes = [trigger.operation_code for trigger in list_triggers(db, is_active=True)]
        conditions.append(ApprovalRequest.operation_code.not_in(active_codes))
    if not conditions:
        return None
    return stmt.where(or_(*conditions))


def pending_queue_for_role(
    db: Session,
    role: str | None,
    *,
    page: int = 1,
    page_size: int = 20,
    hierarchy: RoleHierarchy | None = None,
) -> Page[ApprovalRequest]:
    """Pending requests the role may decide, highest priority then oldest first."""

    stmt = _pending_for_role_statement(db, role, hierarchy)
    if stmt is None:
        return Page(items=[], total=0, page=max(page, 1), page_size=page_size)
    priority_rank = case(PRIORITY_RANKS, value=ApprovalRequest.priority, else_=PRIORITY_RANKS["normal"])
    stmt = stmt.order_by(priority_rank.desc(), ApprovalRequest.created_at.asc(), ApprovalRequest.id)
    return paginate(db, stmt, page, page_size)


def count_pending_for_role(
    db: Session,
    role: str | None,
    hierarchy: RoleHierarchy | None = None,
) -> int:
    stmt = _pending_for_role_statement(db, role, hierarchy)
    if stmt is None:
        return 0
    return db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()


__all__ = [
    "ApprovalFilters",
    "DecisionResult",
    "FAIL_CLOSED",
    "FAIL_OPEN",
    "GateResult",
    "Page",
    "approve",
    "check_and_create",
    "count_pending_for_role",
    "create_approval",
    "decide",
    "execute_approval",
    "get_approval",
    "list_approvals",
    "paginate",
    "pending_queue_for_role",
    "policy_error_mode",
    "reject",
    "require_approval",
]
