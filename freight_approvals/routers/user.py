from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.models import User
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import (
    CanManageRead,
    GatedActionResult,
    PermissionRead,
    UserCreate,
    UserCreateResult,
    UserHierarchyEntry,
    UserRead,
    UserUpdate,
)
from freight_approvals.services import approval_store, delegation
from freight_approvals.services.approval_errors import ApprovalError

router = APIRouter(prefix="/users", tags=["Users"])


def _get_user_or_404(user_id: UUID, db: Session) -> User:
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _ensure_unique_email(email: Optional[str], db: Session, user_id: UUID | None = None) -> None:
    if not email:
        return
    query = db.query(User).filter(User.email == email)
    if user_id:
        query = query.filter(User.id != user_id)
    if db.query(query.exists()).scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already in use",
        )


@router.post("", response_model=UserCreateResult, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserCreate, response: Response, db: Session = Depends(get_db)) -> UserCreateResult:
    _ensure_unique_email(payload.email, db)
    requester = _get_user_or_404(payload.requested_by_id, db)

    request_data = payload.model_dump(
        mode="json",
        include={"name", "email", "role_code", "supervisor_id", "department"},
    )
    try:
        gate = approval_store.check_and_create(
            db,
            "USER_CREATE",
            {
                "title": f"Create user {payload.name}",
                "content": f"{requester.name} requests a new {payload.role_code} account.",
                "business_table": "users",
                "request_data": request_data,
                "applicant_id": requester.id,
            },
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc

    if gate.needs_approval:
        response.status_code = status.HTTP_202_ACCEPTED
        return UserCreateResult(executed=False, needs_approval=True, approval_id=gate.approval.id)

    user = User(**payload.model_dump(exclude={"requested_by_id"}))
    db.add(user)
    db.commit()
    db.refresh(user)
    return UserCreateResult(
        executed=True,
        needs_approval=False,
        error=gate.error,
        result={"user_id": str(user.id)},
        user=user,
    )


@router.get("", response_model=list[UserRead])
def list_users(db: Session = Depends(get_db)) -> list[UserRead]:
    return db.query(User).order_by(User.name).all()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: UUID, db: Session = Depends(get_db)) -> UserRead:
    return _get_user_or_404(user_id, db)


@router.get("/{user_id}/hierarchy", response_model=list[UserHierarchyEntry])
def get_user_hierarchy(user_id: UUID, db: Session = Depends(get_db)) -> list[UserHierarchyEntry]:
    _get_user_or_404(user_id, db)
    return delegation.get_user_hierarchy(db, user_id)


@router.get("/{user_id}/team", response_model=list[UserRead])
def get_team(user_id: UUID, db: Session = Depends(get_db)) -> list[UserRead]:
    _get_user_or_404(user_id, db)
    return delegation.get_team_members(db, user_id)


@router.get("/{user_id}/can-manage/{target_id}", response_model=CanManageRead)
def can_manage(user_id: UUID, target_id: UUID, db: Session = Depends(get_db)) -> CanManageRead:
    return CanManageRead(
        manager_id=user_id,
        target_id=target_id,
        can_manage=delegation.can_manage_user(db, user_id, target_id),
    )


@router.get("/{user_id}/grantable-permissions", response_model=list[PermissionRead])
def grantable_permissions(user_id: UUID, db: Session = Depends(get_db)) -> list[PermissionRead]:
    _get_user_or_404(user_id, db)
    return delegation.get_grantable_permissions(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
def update_user(user_id: UUID, payload: UserUpdate, db: Session = Depends(get_db)) -> UserRead:
    user = _get_user_or_404(user_id, db)

    update_data = payload.model_dump(exclude_unset=True)
    if "email" in update_data:
        _ensure_unique_email(update_data["email"], db, user_id=user_id)
    if update_data.get("supervisor_id") == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user cannot supervise themselves",
        )

    for field, value in update_data.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)
    return user


@router.delete("/{user_id}", response_model=GatedActionResult)
def delete_user(
    user_id: UUID,
    requested_by_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
) -> GatedActionResult:
    user = _get_user_or_404(user_id, db)
    requester = _get_user_or_404(requested_by_id, db)
    if not delegation.can_manage_user(db, requester.id, user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Requester cannot manage this user",
        )

    try:
        gate = approval_store.check_and_create(
            db,
            "USER_DELETE",
            {
                "title": f"Deactivate user {user.name}",
                "business_id": str(user.id),
                "business_table": "users",
                "request_data": {"user_id": str(user.id)},
                "applicant_id": requester.id,
            },
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc

    if gate.needs_approval:
        response.status_code = status.HTTP_202_ACCEPTED
        return GatedActionResult(executed=False, needs_approval=True, approval_id=gate.approval.id)

    user.status = "disabled"
    db.commit()
    return GatedActionResult(
        executed=True,
        needs_approval=False,
        error=gate.error,
        result={"user_id": str(user.id)},
    )
