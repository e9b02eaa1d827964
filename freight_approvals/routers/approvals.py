from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.schemas import (
    ApprovalApproveRequest,
    ApprovalDecisionRequest,
    ApprovalDecisionResult,
    ApprovalGateRequest,
    ApprovalGateResult,
    ApprovalPage,
    ApprovalRejectRequest,
    ApprovalRequestRead,
    ApprovalStatus,
    ExecutionOutcomeRead,
    PendingCount,
)
from freight_approvals.services import approval_store
from freight_approvals.services.approval_errors import (
    ApprovalError,
    ApprovalNotFoundError,
    ApprovalPermissionError,
    ApprovalValidationError,
    InvalidStateError,
    PolicyCreationError,
)

router = APIRouter(prefix="/approvals", tags=["Approvals"])

_STATUS_BY_ERROR = (
    (ApprovalValidationError, status.HTTP_400_BAD_REQUEST),
    (ApprovalNotFoundError, status.HTTP_404_NOT_FOUND),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (ApprovalPermissionError, status.HTTP_403_FORBIDDEN),
    (PolicyCreationError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def approval_http_error(exc: ApprovalError) -> HTTPException:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.post("/gate", response_model=ApprovalGateResult)
def gate_operation(payload: ApprovalGateRequest, db: Session = Depends(get_db)) -> ApprovalGateResult:
    data = payload.model_dump(mode="json", exclude_none=True)
    operation_code = data.pop("operation_code")
    try:
        result = approval_store.check_and_create(db, operation_code, data)
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc
    return ApprovalGateResult(
        needs_approval=result.needs_approval,
        approval=result.approval,
        error=result.error,
    )


@router.get("", response_model=ApprovalPage)
def list_approvals(
    status_filter: Optional[ApprovalStatus] = Query(None, alias="status"),
    category: Optional[str] = None,
    operation_code: Optional[str] = None,
    applicant_id: Optional[UUID] = None,
    approver_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ApprovalPage:
    filters = approval_store.ApprovalFilters(
        status=status_filter.value if status_filter else None,
        category=category,
        operation_code=operation_code,
        applicant_id=applicant_id,
        approver_id=approver_id,
    )
    result = approval_store.list_approvals(db, filters, page=page, page_size=page_size)
    return ApprovalPage(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/pending", response_model=ApprovalPage)
def pending_queue(
    role: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ApprovalPage:
    result = approval_store.pending_queue_for_role(db, role, page=page, page_size=page_size)
    return ApprovalPage(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/pending-count", response_model=PendingCount)
def pending_count(role: str, db: Session = Depends(get_db)) -> PendingCount:
    return PendingCount(role=role, count=approval_store.count_pending_for_role(db, role))


@router.get("/mine", response_model=ApprovalPage)
def my_requests(
    applicant_id: UUID,
    status_filter: Optional[ApprovalStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ApprovalPage:
    filters = approval_store.ApprovalFilters(
        applicant_id=applicant_id,
        status=status_filter.value if status_filter else None,
    )
    result = approval_store.list_approvals(db, filters, page=page, page_size=page_size)
    return ApprovalPage(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/{approval_id}", response_model=ApprovalRequestRead)
def get_approval(approval_id: UUID, db: Session = Depends(get_db)) -> ApprovalRequestRead:
    try:
        return approval_store.require_approval(db, approval_id)
    except ApprovalNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Approval not found") from None


@router.post("/{approval_id}/decision", response_model=ApprovalDecisionResult)
def decide(
    approval_id: UUID,
    payload: ApprovalDecisionRequest,
    db: Session = Depends(get_db),
) -> ApprovalDecisionResult:
    try:
        return approval_store.decide(
            db,
            approval_id,
            payload.approver_id,
            payload.approver_role,
            payload.decision.value,
            payload.comment,
            approver_name=payload.approver_name,
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.post("/{approval_id}/approve", response_model=ApprovalDecisionResult)
def approve(
    approval_id: UUID,
    payload: ApprovalApproveRequest,
    db: Session = Depends(get_db),
) -> ApprovalDecisionResult:
    try:
        return approval_store.decide(
            db,
            approval_id,
            payload.approver_id,
            payload.approver_role,
            "approve",
            payload.comment,
            approver_name=payload.approver_name,
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.post("/{approval_id}/reject", response_model=ApprovalDecisionResult)
def reject(
    approval_id: UUID,
    payload: ApprovalRejectRequest,
    db: Session = Depends(get_db),
) -> ApprovalDecisionResult:
    try:
        return approval_store.decide(
            db,
            approval_id,
            payload.approver_id,
            payload.approver_role,
            "reject",
            payload.reason,
            approver_name=payload.approver_name,
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.post("/{approval_id}/execute", response_model=ExecutionOutcomeRead)
def execute(approval_id: UUID, db: Session = Depends(get_db)) -> ExecutionOutcomeRead:
    try:
        return approval_store.execute_approval(db, approval_id)
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc
