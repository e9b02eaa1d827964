"""Role code → level and capability lookup shared by every authorization check."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from freight_approvals.constants.roles import (
    ADMIN_ROLE,
    BOSS_ROLE,
    DEFAULT_ROLE_DEFINITIONS,
    UNKNOWN_ROLE_LEVEL,
)
from freight_approvals.models import Role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleDefinition:
    code: str
    level: int
    can_manage_team: bool = False
    can_approve: bool = False


class RoleHierarchy:
    """Immutable view of the configured roles.

    Levels compare numerically: a lower level outranks a higher one. Role
    codes that are not configured resolve to a capability-less definition at
    ``UNKNOWN_ROLE_LEVEL`` instead of raising.
    """

    def __init__(self, definitions: Iterable[RoleDefinition]) -> None:
        self._definitions: dict[str, RoleDefinition] = {item.code: item for item in definitions}

    @classmethod
    def from_mappings(cls, rows: Iterable[Mapping[str, object]]) -> "RoleHierarchy":
        return cls(
            RoleDefinition(
                code=str(row["code"]),
                level=int(row["level"]),  # type: ignore[arg-type]
                can_manage_team=bool(row.get("can_manage_team", False)),
                can_approve=bool(row.get("can_approve", False)),
            )
            for row in rows
        )

    @classmethod
    def default(cls) -> "RoleHierarchy":
        return cls.from_mappings(DEFAULT_ROLE_DEFINITIONS)

    def get(self, role_code: str | None) -> RoleDefinition:
        code = role_code or ""
        definition = self._definitions.get(code)
        if definition is None:
            return RoleDefinition(code=code, level=UNKNOWN_ROLE_LEVEL)
        return definition

    def level(self, role_code: str | None) -> int:
        return self.get(role_code).level

    def can_manage_team(self, role_code: str | None) -> bool:
        return self.get(role_code).can_manage_team

    def can_approve(self, role_code: str | None) -> bool:
        return self.get(role_code).can_approve

    def outranks(self, role_code: str | None, other_role_code: str | None) -> bool:
        return self.level(role_code) < self.level(other_role_code)

    @staticmethod
    def is_admin(role_code: str | None) -> bool:
        return role_code == ADMIN_ROLE

    @staticmethod
    def is_admin_or_boss(role_code: str | None) -> bool:
        return role_code in (ADMIN_ROLE, BOSS_ROLE)

    def codes(self) -> list[str]:
        return sorted(self._definitions)


_role_hierarchy = RoleHierarchy.default()


def get_role_hierarchy() -> RoleHierarchy:
    return _role_hierarchy


def set_role_hierarchy(hierarchy: RoleHierarchy) -> RoleHierarchy:
    global _role_hierarchy
    _role_hierarchy = hierarchy
    return _role_hierarchy


def load_role_hierarchy(db: Session) -> RoleHierarchy:
    """Replace the active hierarchy with the roles stored in the database.

    Falls back to the built-in definitions when the roles table is empty or
    cannot be read.
    """

    try:
        roles = list(db.execute(select(Role)).scalars())
    except SQLAlchemyError:
        logger.warning("Unable to load roles; keeping built-in role hierarchy", exc_info=True)
        return set_role_hierarchy(RoleHierarchy.default())

    if not roles:
        return set_role_hierarchy(RoleHierarchy.default())

    hierarchy = RoleHierarchy(
        RoleDefinition(
            code=role.code,
            level=role.level,
            can_manage_team=role.can_manage_team,
            can_approve=role.can_approve,
        )
        for role in roles
    )
    logger.info("Loaded %d roles into the role hierarchy", len(roles))
    return set_role_hierarchy(hierarchy)


__all__ = [
    "RoleDefinition",
    "RoleHierarchy",
    "get_role_hierarchy",
    "load_role_hierarchy",
    "set_role_hierarchy",
]
