from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_approvals.models import Message
from freight_approvals.models.entities import utcnow
from freight_approvals.services.approval_errors import ApprovalNotFoundError
from freight_approvals.services.approval_store import Page, paginate

logger = logging.getLogger(__name__)


def list_notifications(
    db: Session,
    recipient_id: UUID,
    *,
    unread_only: bool = False,
    page: int = 1,
    page_size: int = 20,
) -> Page[Message]:
    stmt = select(Message).where(Message.recipient_id == recipient_id)
    if unread_only:
        stmt = stmt.where(Message.is_read.is_(False))
    stmt = stmt.order_by(Message.created_at.desc(), Message.id)
    return paginate(db, stmt, page, page_size)


def mark_notification_read(db: Session, message_id: UUID, recipient_id: UUID) -> Message:
    """Mark one of the recipient's messages read; other recipients' messages count as missing."""

    message = db.get(Message, message_id)
    if message is None or message.recipient_id != recipient_id:
        raise ApprovalNotFoundError(f"Notification {message_id} not found")

    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        db.commit()
        db.refresh(message)
        logger.debug("Notification %s read by %s", message_id, recipient_id)
    return message


__all__ = ["list_notifications", "mark_notification_read"]
