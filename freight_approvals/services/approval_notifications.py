"""Tell approvers about new requests and applicants about decisions.

Delivery is best effort: every failure is logged and swallowed so that a
broken message table or webhook never fails a create or decide call.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Protocol
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_approvals.config import get_settings
from freight_approvals.constants.approvals import MESSAGE_RELATED_TYPE
from freight_approvals.constants.roles import ADMIN_ROLE
from freight_approvals.models import ApprovalRequest, Message, OperationTrigger, User

logger = logging.getLogger(__name__)

NEW_REQUEST_TITLE = "New approval pending"
OUTCOME_TITLE = "Approval result"


@dataclass(frozen=True)
class ApprovalNotification:
    recipient_id: UUID
    recipient_name: str | None
    title: str
    body: str
    correlation_id: str
    sender_id: UUID | None = None
    sender_name: str | None = None


class NotificationSink(Protocol):
    def deliver(self, db: Session, notification: ApprovalNotification) -> None:
        ...


class MessageSink:
    """Store notifications in the host system's message inbox."""

    def deliver(self, db: Session, notification: ApprovalNotification) -> None:
        db.add(
            Message(
                message_type="approval",
                title=notification.title,
                content=notification.body,
                sender_id=notification.sender_id,
                sender_name=notification.sender_name,
                recipient_id=notification.recipient_id,
                recipient_name=notification.recipient_name,
                related_type=MESSAGE_RELATED_TYPE,
                related_id=notification.correlation_id,
            )
        )
        db.flush()


class WebhookSink:
    """Post a JSON copy of each notification to the configured webhook."""

    def __init__(self, *, settings_provider=get_settings, request_client=None) -> None:
        self._settings_provider = settings_provider
        self._request_client = request_client

    def deliver(self, db: Session, notification: ApprovalNotification) -> None:
        settings = self._settings_provider()
        webhook_url = getattr(settings, "approval_notification_webhook_url", None)
        if not webhook_url:
            return

        body = self._build_payload(notification)
        client = self._request_client
        if client is None:
            import requests

            response = requests.post(
                webhook_url,
                headers={"Content-Type": "application/json"},
                data=json.dumps(body),
                timeout=15,
            )
        else:
            response = client(webhook_url, body)

        status_code = getattr(response, "status_code", None)
        if status_code is not None and status_code >= 400:
            logger.warning(
                "Approval webhook responded with %s for %s",
                status_code,
                notification.correlation_id,
            )

    def _build_payload(self, notification: ApprovalNotification) -> dict[str, Any]:
        return {
            "recipient_id": str(notification.recipient_id),
            "recipient_name": notification.recipient_name,
            "title": notification.title,
            "body": notification.body,
            "correlation_id": notification.correlation_id,
        }


class ApprovalNotifier:
    def __init__(self, sinks: Iterable[NotificationSink] | None = None) -> None:
        self._sinks = list(sinks) if sinks is not None else [MessageSink(), WebhookSink()]

    def notify_approvers(
        self,
        db: Session,
        approval: ApprovalRequest,
        trigger: OperationTrigger | None,
    ) -> int:
        """Notify every active user holding an approver role; returns the count delivered."""

        try:
            approver_roles = list(trigger.approver_roles or []) if trigger is not None else []
            if not approver_roles:
                approver_roles = [ADMIN_ROLE]

            recipients = db.execute(
                select(User).where(User.role_code.in_(approver_roles), User.status == "active")
            ).scalars().all()

            applicant = approval.applicant_name or "A user"
            body = f'{applicant} submitted "{approval.title}" for approval.'
            delivered = 0
            for user in recipients:
                notification = ApprovalNotification(
                    recipient_id=user.id,
                    recipient_name=user.name,
                    title=NEW_REQUEST_TITLE,
                    body=body,
                    correlation_id=str(approval.id),
                    sender_id=approval.applicant_id,
                    sender_name=approval.applicant_name,
                )
                if self._dispatch(db, notification):
                    delivered += 1
            db.commit()
            return delivered
        except Exception:
            db.rollback()
            logger.warning("Failed to notify approvers for approval %s", approval.id, exc_info=True)
            return 0

    def notify_applicant(
        self,
        db: Session,
        approval: ApprovalRequest,
        outcome: str,
        comment: str | None = None,
    ) -> bool:
        try:
            if outcome == "approved":
                body = f'Your request "{approval.title}" was approved.'
                if comment:
                    body += f" Comment: {comment}"
            else:
                body = f'Your request "{approval.title}" was rejected. Reason: {comment or "none given"}'

            notification = ApprovalNotification(
                recipient_id=approval.applicant_id,
                recipient_name=approval.applicant_name,
                title=OUTCOME_TITLE,
                body=body,
                correlation_id=str(approval.id),
                sender_id=approval.approver_id,
                sender_name=approval.approver_name,
            )
            delivered = self._dispatch(db, notification)
            db.commit()
            return delivered
        except Exception:
            db.rollback()
            logger.warning("Failed to notify applicant for approval %s", approval.id, exc_info=True)
            return False

    def _dispatch(self, db: Session, notification: ApprovalNotification) -> bool:
        delivered = False
        for sink in self._sinks:
            try:
                sink.deliver(db, notification)
                delivered = True
            except Exception as exc:
                logger.warning(
                    "%s failed to deliver notification for %s to %s: %s",
                    type(sink).__name__,
                    notification.correlation_id,
                    notification.recipient_id,
                    exc,
                )
        return delivered


approval_notifier = ApprovalNotifier()


__all__ = [
    "ApprovalNotification",
    "ApprovalNotifier",
    "MessageSink",
    "NotificationSink",
    "WebhookSink",
    "approval_notifier",
]
