"""Decide whether an operation needs human approval.

Evaluation only reads: callers may run it speculatively before deciding to
go ahead with a mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from sqlalchemy.orm import Session

from freight_approvals.config import Settings
from freight_approvals.constants.approvals import FINANCE_CATEGORY
from freight_approvals.models import OperationTrigger
from freight_approvals.services import approval_settings
from freight_approvals.services.trigger_registry import get_active_trigger

logger = logging.getLogger(__name__)

AMOUNT_THRESHOLD_KEY = "amount_threshold"


@dataclass(frozen=True)
class PolicyDecision:
    required: bool
    trigger: OperationTrigger | None = None


NOT_REQUIRED = PolicyDecision(required=False)


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def resolve_threshold(
    db: Session, trigger: OperationTrigger, settings: Settings | None = None
) -> Decimal | None:
    """Return the amount threshold that applies to ``trigger``, if any.

    A numeric ``amount_threshold`` in the trigger condition wins. A condition
    that names the key without a number, or any finance-category trigger,
    uses the configured finance threshold.
    """

    condition = trigger.trigger_condition or {}
    declares_threshold = isinstance(condition, Mapping) and AMOUNT_THRESHOLD_KEY in condition
    if declares_threshold:
        explicit = _to_decimal(condition.get(AMOUNT_THRESHOLD_KEY))
        if explicit is not None:
            return explicit
    if declares_threshold or trigger.category == FINANCE_CATEGORY:
        return approval_settings.finance_threshold(db, settings)
    return None


def evaluate(
    db: Session,
    operation_code: str,
    context: Mapping[str, Any] | None = None,
    settings: Settings | None = None,
) -> PolicyDecision:
    if not operation_code:
        return NOT_REQUIRED
    if not approval_settings.approvals_enabled(db, settings):
        logger.debug("Approvals globally disabled; %s proceeds without approval", operation_code)
        return NOT_REQUIRED

    trigger = get_active_trigger(db, operation_code)
    if trigger is None or not trigger.requires_approval:
        return NOT_REQUIRED

    threshold = resolve_threshold(db, trigger, settings)
    if threshold is not None:
        amount = _to_decimal((context or {}).get("amount"))
        if amount is not None and amount < threshold:
            logger.debug(
                "%s amount %s below threshold %s; approval not required",
                operation_code,
                amount,
                threshold,
            )
            return NOT_REQUIRED

    return PolicyDecision(required=True, trigger=trigger)


__all__ = ["PolicyDecision", "evaluate", "resolve_threshold"]
