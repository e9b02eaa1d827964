"""Run the deferred business mutation behind an approved request.

Business modules register one handler per operation code (or, as a
fallback, per category) at startup. Each handler may declare a payload
model; payloads are validated when the approval is created and parsed again
before execution.

Execution is idempotent per approval request: the handler's changes and the
``is_executed`` flag commit together, and the flag is set with a conditional
update so a concurrent or retried execution can never apply the mutation
twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Type

from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError
from sqlalchemy import update
from sqlalchemy.orm import Session

from freight_approvals.models import ApprovalRequest
from freight_approvals.models.entities import utcnow
from freight_approvals.services.approval_errors import (
    ApprovalValidationError,
    InvalidStateError,
)

logger = logging.getLogger(__name__)

HandlerFunc = Callable[[Session, ApprovalRequest, Any], Optional[dict[str, Any]]]

MANUAL_EXECUTION_RESULT = {"executed": False, "reason": "manual execution required"}


@dataclass(frozen=True)
class ExecutionHandler:
    func: HandlerFunc
    payload_model: Type[BaseModel] | None = None
    name: str = ""

    def parse_payload(self, data: dict[str, Any] | None) -> Any:
        if self.payload_model is None:
            return data or {}
        return self.payload_model.model_validate(data or {})


@dataclass
class ExecutionOutcome:
    executed: bool
    result: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    replayed: bool = False


class ExecutionRegistry:
    def __init__(self) -> None:
        self._by_code: dict[str, ExecutionHandler] = {}
        self._by_category: dict[str, ExecutionHandler] = {}

    def register(
        self,
        operation_code: str,
        *,
        payload_model: Type[BaseModel] | None = None,
    ) -> Callable[[HandlerFunc], HandlerFunc]:
        def decorator(func: HandlerFunc) -> HandlerFunc:
            self.add(operation_code, func, payload_model=payload_model)
            return func

        return decorator

    def add(
        self,
        operation_code: str,
        func: HandlerFunc,
        *,
        payload_model: Type[BaseModel] | None = None,
    ) -> ExecutionHandler:
        if operation_code in self._by_code:
            logger.info("Replacing execution handler for %s", operation_code)
        handler = ExecutionHandler(func=func, payload_model=payload_model, name=operation_code)
        self._by_code[operation_code] = handler
        return handler

    def add_category(
        self,
        category: str,
        func: HandlerFunc,
        *,
        payload_model: Type[BaseModel] | None = None,
    ) -> ExecutionHandler:
        handler = ExecutionHandler(func=func, payload_model=payload_model, name=f"category:{category}")
        self._by_category[category] = handler
        return handler

    def resolve(self, operation_code: str, category: str | None = None) -> ExecutionHandler | None:
        handler = self._by_code.get(operation_code)
        if handler is None and category:
            handler = self._by_category.get(category)
        return handler

    def operation_codes(self) -> list[str]:
        return sorted(self._by_code)

    def validate_payload(
        self,
        operation_code: str,
        category: str | None,
        data: dict[str, Any] | None,
    ) -> dict[str, Any] | None:
        """Check ``data`` against the handler's payload model and return it normalized."""

        handler = self.resolve(operation_code, category)
        if handler is None or handler.payload_model is None:
            return data
        try:
            payload = handler.parse_payload(data)
        except PayloadValidationError as exc:
            raise ApprovalValidationError(
                f"Invalid request data for {operation_code}: {exc.errors(include_url=False)}"
            ) from exc
        return payload.model_dump(mode="json")

    def execute(self, db: Session, approval: ApprovalRequest) -> ExecutionOutcome:
        if approval.status != "approved":
            raise InvalidStateError(f"Approval {approval.id} is {approval.status}, not approved")

        if approval.is_executed:
            return self._replay(approval)

        handler = self.resolve(approval.operation_code, approval.category)
        if handler is None:
            self._record(db, approval, dict(MANUAL_EXECUTION_RESULT))
            return ExecutionOutcome(executed=False, result=dict(MANUAL_EXECUTION_RESULT))

        approval_id = approval.id
        try:
            payload = handler.parse_payload(approval.request_data)
            result = dict(handler.func(db, approval, payload) or {})
            result.setdefault("executed", True)
            claimed = db.execute(
                update(ApprovalRequest)
                .where(
                    ApprovalRequest.id == approval_id,
                    ApprovalRequest.is_executed.is_(False),
                )
                .values(is_executed=True, executed_at=utcnow(), execution_result=result)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                db.rollback()
                db.refresh(approval)
                logger.info("Approval %s was executed concurrently; returning stored result", approval_id)
                return self._replay(approval)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.exception("Execution of %s for approval %s failed", handler.name, approval_id)
            failure = {"executed": False, "error": str(exc)}
            self._record(db, approval, failure)
            return ExecutionOutcome(executed=False, result=failure, error=str(exc))

        db.refresh(approval)
        logger.info("Executed %s for approval %s", handler.name, approval_id)
        return ExecutionOutcome(executed=True, result=result)

    def _replay(self, approval: ApprovalRequest) -> ExecutionOutcome:
        return ExecutionOutcome(
            executed=True,
            result=dict(approval.execution_result or {}),
            replayed=True,
        )

    def _record(self, db: Session, approval: ApprovalRequest, result: dict[str, Any]) -> None:
        db.execute(
            update(ApprovalRequest)
            .where(
                ApprovalRequest.id == approval.id,
                ApprovalRequest.is_executed.is_(False),
            )
            .values(execution_result=result)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.refresh(approval)


execution_registry = ExecutionRegistry()


__all__ = [
    "ExecutionHandler",
    "ExecutionOutcome",
    "ExecutionRegistry",
    "MANUAL_EXECUTION_RESULT",
    "execution_registry",
]
