from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from freight_approvals.constants.approvals import BUSINESS_MODULES
from freight_approvals.database import get_db
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import (
    ApprovalCategory,
    ApprovalConfigRead,
    ApprovalConfigUpdate,
    BusinessModuleRead,
    OperationTriggerCreate,
    OperationTriggerRead,
    OperationTriggerUpdate,
    TriggerCatalogRead,
    TriggerProvisioningCreate,
    TriggerProvisioningRead,
    TriggerProvisioningStatusUpdate,
    TriggerRequestStatus,
)
from freight_approvals.services import approval_settings, trigger_provisioning, trigger_registry
from freight_approvals.services.approval_errors import ApprovalError, ApprovalPermissionError
from freight_approvals.services.role_hierarchy import get_role_hierarchy

router = APIRouter(prefix="/approval-settings", tags=["Approval Settings"])


def require_settings_admin(actor_role: str = Query(..., max_length=50)) -> str:
    if not get_role_hierarchy().is_admin_or_boss(actor_role):
        raise approval_http_error(
            ApprovalPermissionError("Only administrators may change approval settings")
        )
    return actor_role


@router.get("/triggers", response_model=TriggerCatalogRead)
def list_triggers(
    category: Optional[ApprovalCategory] = None,
    availability_status: Optional[str] = None,
    is_active: Optional[bool] = None,
    db: Session = Depends(get_db),
) -> TriggerCatalogRead:
    triggers = trigger_registry.list_triggers(
        db,
        category=category.value if category else None,
        availability_status=availability_status,
        is_active=is_active,
    )
    pending = [
        request
        for request in trigger_provisioning.list_requests(db)
        if request.status in trigger_provisioning.OPEN_STATUSES
    ]
    return TriggerCatalogRead(triggers=triggers, pending_requests=pending)


@router.post("/triggers", response_model=OperationTriggerRead, status_code=status.HTTP_201_CREATED)
def create_trigger(
    payload: OperationTriggerCreate,
    actor_role: str = Depends(require_settings_admin),
    db: Session = Depends(get_db),
) -> OperationTriggerRead:
    try:
        return trigger_registry.create_trigger(db, payload.model_dump(mode="json"))
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.patch("/triggers/{trigger_id}", response_model=OperationTriggerRead)
def update_trigger(
    trigger_id: UUID,
    payload: OperationTriggerUpdate,
    actor_role: str = Depends(require_settings_admin),
    db: Session = Depends(get_db),
) -> OperationTriggerRead:
    try:
        return trigger_registry.update_trigger(
            db, trigger_id, payload.model_dump(mode="json", exclude_unset=True)
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.post("/triggers/{trigger_id}/toggle", response_model=OperationTriggerRead)
def toggle_trigger(
    trigger_id: UUID,
    actor_role: str = Depends(require_settings_admin),
    db: Session = Depends(get_db),
) -> OperationTriggerRead:
    try:
        return trigger_registry.toggle_trigger(db, trigger_id)
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.post(
    "/trigger-requests",
    response_model=TriggerProvisioningRead,
    status_code=status.HTTP_201_CREATED,
)
def request_trigger(
    payload: TriggerProvisioningCreate,
    db: Session = Depends(get_db),
) -> TriggerProvisioningRead:
    data = payload.model_dump(exclude={"requested_by_id", "requested_by_name"})
    try:
        return trigger_provisioning.request_trigger(
            db,
            data,
            requested_by_id=payload.requested_by_id,
            requested_by_name=payload.requested_by_name,
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.get("/trigger-requests", response_model=list[TriggerProvisioningRead])
def list_trigger_requests(
    status_filter: Optional[TriggerRequestStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
) -> list[TriggerProvisioningRead]:
    return trigger_provisioning.list_requests(db, status_filter.value if status_filter else None)


@router.put("/trigger-requests/{request_id}/status", response_model=TriggerProvisioningRead)
def update_trigger_request_status(
    request_id: UUID,
    payload: TriggerProvisioningStatusUpdate,
    db: Session = Depends(get_db),
) -> TriggerProvisioningRead:
    try:
        return trigger_provisioning.advance(
            db,
            request_id,
            payload.status.value,
            actor_id=payload.actor_id,
            actor_name=payload.actor_name,
            actor_role=payload.actor_role,
            developer_notes=payload.developer_notes,
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc


@router.get("/configs", response_model=ApprovalConfigRead)
def get_configs(db: Session = Depends(get_db)) -> ApprovalConfigRead:
    return ApprovalConfigRead(**approval_settings.get_approval_configs(db))


@router.put("/configs", response_model=ApprovalConfigRead)
def update_configs(
    payload: ApprovalConfigUpdate,
    actor_role: str = Depends(require_settings_admin),
    db: Session = Depends(get_db),
) -> ApprovalConfigRead:
    try:
        configs = approval_settings.update_approval_configs(db, payload.model_dump(exclude_unset=True))
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc
    return ApprovalConfigRead(**configs)


@router.get("/business-modules", response_model=list[BusinessModuleRead])
def list_business_modules() -> list[BusinessModuleRead]:
    return [BusinessModuleRead(**module) for module in BUSINESS_MODULES]
