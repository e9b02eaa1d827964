from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import ApprovalNotificationPage, ApprovalNotificationRead
from freight_approvals.services import approval_inbox
from freight_approvals.services.approval_errors import ApprovalError

router = APIRouter(prefix="/approval-notifications", tags=["Approval Notifications"])


@router.get("", response_model=ApprovalNotificationPage)
def list_notifications(
    recipient_id: UUID,
    unread_only: bool = False,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> ApprovalNotificationPage:
    result = approval_inbox.list_notifications(
        db, recipient_id, unread_only=unread_only, page=page, page_size=page_size
    )
    return ApprovalNotificationPage(
        items=result.items,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.put("/{message_id}/read", response_model=ApprovalNotificationRead)
def mark_notification_read(
    message_id: UUID,
    recipient_id: UUID,
    db: Session = Depends(get_db),
) -> ApprovalNotificationRead:
    try:
        return approval_inbox.mark_notification_read(db, message_id, recipient_id)
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc
