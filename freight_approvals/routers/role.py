from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from freight_approvals.database import get_db
from freight_approvals.models import Permission, Role, RolePermission, User
from freight_approvals.routers.approvals import approval_http_error
from freight_approvals.schemas import (
    PermissionRead,
    RoleCreate,
    RolePermissionGrant,
    RolePermissionGrantResult,
    RoleRead,
    RoleUpdate,
)
from freight_approvals.services import approval_store, delegation
from freight_approvals.services.approval_errors import ApprovalError
from freight_approvals.services.role_hierarchy import load_role_hierarchy

router = APIRouter(prefix="/roles", tags=["Roles"])


def _get_role_or_404(role_id: UUID, db: Session) -> Role:
    role = db.get(Role, role_id)
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


def _get_role_by_code_or_404(role_code: str, db: Session) -> Role:
    role = db.query(Role).filter(Role.code == role_code).one_or_none()
    if not role:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Role not found")
    return role


def _ensure_unique_code(code: str, db: Session) -> None:
    if db.query(db.query(Role).filter(Role.code == code).exists()).scalar():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Role code must be unique",
        )


@router.post("", response_model=RoleRead, status_code=status.HTTP_201_CREATED)
def create_role(payload: RoleCreate, db: Session = Depends(get_db)) -> RoleRead:
    _ensure_unique_code(payload.code, db)

    role = Role(**payload.model_dump())
    db.add(role)
    db.commit()
    db.refresh(role)
    load_role_hierarchy(db)
    return role


@router.get("", response_model=list[RoleRead])
def list_roles(db: Session = Depends(get_db)) -> list[RoleRead]:
    return db.query(Role).order_by(Role.level, Role.code).all()


@router.get("/{role_id}", response_model=RoleRead)
def get_role(role_id: UUID, db: Session = Depends(get_db)) -> RoleRead:
    return _get_role_or_404(role_id, db)


@router.put("/{role_id}", response_model=RoleRead)
def update_role(role_id: UUID, payload: RoleUpdate, db: Session = Depends(get_db)) -> RoleRead:
    role = _get_role_or_404(role_id, db)

    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(role, field, value)

    db.commit()
    db.refresh(role)
    load_role_hierarchy(db)
    return role


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: UUID, db: Session = Depends(get_db)) -> None:
    role = _get_role_or_404(role_id, db)
    if db.query(db.query(User).filter(User.role_code == role.code).exists()).scalar():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Role is still assigned to users",
        )
    db.delete(role)
    db.commit()
    load_role_hierarchy(db)


@router.get("/{role_code}/permissions", response_model=list[PermissionRead])
def list_role_permissions(role_code: str, db: Session = Depends(get_db)) -> list[PermissionRead]:
    _get_role_by_code_or_404(role_code, db)
    return (
        db.query(Permission)
        .join(RolePermission, RolePermission.permission_code == Permission.code)
        .filter(RolePermission.role_code == role_code)
        .order_by(Permission.sort_order, Permission.code)
        .all()
    )


@router.post("/{role_code}/permissions", response_model=RolePermissionGrantResult)
def grant_permission(
    role_code: str,
    payload: RolePermissionGrant,
    response: Response,
    db: Session = Depends(get_db),
) -> RolePermissionGrantResult:
    _get_role_by_code_or_404(role_code, db)
    granter = db.get(User, payload.granter_id)
    if not granter:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not db.query(db.query(Permission).filter(Permission.code == payload.permission_code).exists()).scalar():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Permission not found")
    if not delegation.can_grant_permission(db, granter.id, payload.permission_code):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Granter may not delegate this permission",
        )

    if delegation.role_has_permission(db, role_code, payload.permission_code):
        return RolePermissionGrantResult(
            role_code=role_code,
            permission_code=payload.permission_code,
            granted=True,
            needs_approval=False,
        )

    try:
        gate = approval_store.check_and_create(
            db,
            "PERMISSION_GRANT",
            {
                "title": f"Grant {payload.permission_code} to {role_code}",
                "business_table": "role_permissions",
                "request_data": {
                    "granter_id": str(granter.id),
                    "role_code": role_code,
                    "permission_code": payload.permission_code,
                },
                "applicant_id": granter.id,
            },
        )
    except ApprovalError as exc:
        raise approval_http_error(exc) from exc

    if gate.needs_approval:
        response.status_code = status.HTTP_202_ACCEPTED
        return RolePermissionGrantResult(
            role_code=role_code,
            permission_code=payload.permission_code,
            granted=False,
            needs_approval=True,
            approval_id=gate.approval.id,
        )

    db.add(RolePermission(role_code=role_code, permission_code=payload.permission_code))
    db.commit()
    return RolePermissionGrantResult(
        role_code=role_code,
        permission_code=payload.permission_code,
        granted=True,
        error=gate.error,
    )
