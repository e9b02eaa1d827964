"""Team-management and permission-delegation checks.

The supervisor reference on ``User`` is a single-parent pointer that nothing
in the schema keeps acyclic, so every upward walk tracks visited ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from freight_approvals.constants.roles import BOSS_ROLE
from freight_approvals.models import Permission, RolePermission, User
from freight_approvals.services.role_hierarchy import RoleHierarchy, get_role_hierarchy
from freight_approvals.services.trigger_registry import get_active_trigger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HierarchyEntry:
    id: UUID
    name: str
    role_code: str
    role_level: int


def _hierarchy(hierarchy: RoleHierarchy | None) -> RoleHierarchy:
    return hierarchy or get_role_hierarchy()


def role_has_permission(db: Session, role_code: str, permission_code: str) -> bool:
    stmt = (
        select(RolePermission.id)
        .where(
            RolePermission.role_code == role_code,
            RolePermission.permission_code == permission_code,
        )
        .limit(1)
    )
    return db.execute(stmt).first() is not None


def can_manage_user(
    db: Session,
    manager_id: UUID,
    target_id: UUID,
    hierarchy: RoleHierarchy | None = None,
) -> bool:
    if manager_id == target_id:
        return False

    manager = db.get(User, manager_id)
    if manager is None:
        return False

    roles = _hierarchy(hierarchy)
    if roles.is_admin(manager.role_code):
        return True
    if not roles.can_manage_team(manager.role_code):
        return False

    target = db.get(User, target_id)
    if target is None:
        return False

    if target.supervisor_id == manager.id:
        return True

    if not roles.outranks(manager.role_code, target.role_code):
        return False

    return manager.role_code == BOSS_ROLE and not roles.is_admin(target.role_code)


def get_user_hierarchy(
    db: Session,
    user_id: UUID,
    hierarchy: RoleHierarchy | None = None,
) -> list[HierarchyEntry]:
    """Return the supervisor chain above ``user_id``, nearest first."""

    roles = _hierarchy(hierarchy)
    chain: list[HierarchyEntry] = []
    visited: set[UUID] = set()
    current_id: UUID | None = user_id

    while current_id is not None:
        if current_id in visited:
            logger.warning("Supervisor cycle detected above user %s at %s", user_id, current_id)
            break
        visited.add(current_id)

        user = db.get(User, current_id)
        if user is None:
            break

        if user.id != user_id:
            chain.append(
                HierarchyEntry(
                    id=user.id,
                    name=user.name,
                    role_code=user.role_code,
                    role_level=roles.level(user.role_code),
                )
            )
        current_id = user.supervisor_id

    return chain


def get_team_members(db: Session, supervisor_id: UUID) -> list[User]:
    stmt = (
        select(User)
        .where(User.supervisor_id == supervisor_id, User.status == "active")
        .order_by(User.name)
    )
    return list(db.execute(stmt).scalars())


def can_grant_permission(
    db: Session,
    granter_id: UUID,
    permission_code: str,
    hierarchy: RoleHierarchy | None = None,
) -> bool:
    granter = db.get(User, granter_id)
    if granter is None:
        return False

    roles = _hierarchy(hierarchy)
    if roles.is_admin(granter.role_code):
        return True
    if not roles.can_manage_team(granter.role_code):
        return False

    # A delegator only hands out what their own role already holds.
    if not role_has_permission(db, granter.role_code, permission_code):
        return False

    permission = db.execute(
        select(Permission).where(Permission.code == permission_code).limit(1)
    ).scalars().first()
    if permission is not None and permission.is_sensitive:
        return roles.is_admin_or_boss(granter.role_code)

    return True


def get_grantable_permissions(
    db: Session,
    user_id: UUID,
    hierarchy: RoleHierarchy | None = None,
) -> list[Permission]:
    user = db.get(User, user_id)
    if user is None:
        return []

    roles = _hierarchy(hierarchy)
    if roles.is_admin(user.role_code):
        return list(
            db.execute(select(Permission).order_by(Permission.sort_order, Permission.code)).scalars()
        )
    if not roles.can_manage_team(user.role_code):
        return []

    stmt = (
        select(Permission)
        .join(RolePermission, RolePermission.permission_code == Permission.code)
        .where(RolePermission.role_code == user.role_code)
        .order_by(Permission.sort_order, Permission.code)
    )
    if not roles.is_admin_or_boss(user.role_code):
        stmt = stmt.where(Permission.is_sensitive.is_(False))
    return list(db.execute(stmt).scalars())


def check_approver_permission(
    db: Session,
    approver_role: str | None,
    operation_code: str,
    hierarchy: RoleHierarchy | None = None,
) -> bool:
    roles = _hierarchy(hierarchy)
    if roles.is_admin(approver_role):
        return True

    trigger = get_active_trigger(db, operation_code)
    if trigger is None:
        return roles.is_admin_or_boss(approver_role)
    return approver_role in (trigger.approver_roles or [])


__all__ = [
    "HierarchyEntry",
    "can_grant_permission",
    "can_manage_user",
    "check_approver_permission",
    "get_grantable_permissions",
    "get_team_members",
    "get_user_hierarchy",
    "role_has_permission",
]
