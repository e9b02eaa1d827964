import argparse

from sqlalchemy.exc import IntegrityError

from freight_approvals.constants.approvals import DEFAULT_OPERATION_TRIGGERS
from freight_approvals.constants.roles import (
    ADMIN_ROLE,
    DEFAULT_PERMISSIONS,
    DEFAULT_ROLE_DEFINITIONS,
    DEFAULT_ROLE_PERMISSIONS,
)
from freight_approvals.database import SessionLocal
from freight_approvals.models import Permission, Role, RolePermission, User
from freight_approvals.services.trigger_registry import seed_default_triggers


def seed_roles(session) -> int:
    existing = {code for (code,) in session.query(Role.code)}
    created = 0
    for definition in DEFAULT_ROLE_DEFINITIONS:
        if definition["code"] in existing:
            continue
        session.add(Role(**definition))
        created += 1
    session.flush()
    return created


def seed_permissions(session) -> int:
    existing = {code for (code,) in session.query(Permission.code)}
    created = 0
    for sort_order, (code, name, category, is_sensitive) in enumerate(DEFAULT_PERMISSIONS):
        if code in existing:
            continue
        session.add(
            Permission(
                code=code,
                name=name,
                category=category,
                is_sensitive=is_sensitive,
                sort_order=sort_order,
            )
        )
        created += 1
    session.flush()

    granted = {
        (role_code, permission_code)
        for role_code, permission_code in session.query(
            RolePermission.role_code, RolePermission.permission_code
        )
    }
    for role_code, permission_codes in DEFAULT_ROLE_PERMISSIONS.items():
        for permission_code in permission_codes:
            if (role_code, permission_code) not in granted:
                session.add(RolePermission(role_code=role_code, permission_code=permission_code))
    session.flush()
    return created


def seed_admin(session, name: str, email: str) -> None:
    existing = session.query(User).filter(User.email == email).first()
    if existing:
        print(f"Admin already exists: {existing.id} ({existing.email})")
        return
    session.add(User(name=name, email=email, role_code=ADMIN_ROLE))


def seed(admin_name: str | None = None, admin_email: str | None = None) -> None:
    with SessionLocal() as session:
        roles = seed_roles(session)
        permissions = seed_permissions(session)
        if admin_email:
            seed_admin(session, admin_name or "Administrator", admin_email)

        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise RuntimeError(f"Failed to seed approval defaults due to integrity error: {exc}") from exc

        triggers = seed_default_triggers(session, DEFAULT_OPERATION_TRIGGERS)
        print(f"Seeded {roles} roles, {permissions} permissions and {len(triggers)} triggers")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Seed roles, permissions and default approval triggers."
    )
    parser.add_argument("--admin-name", help="Name of an administrator account to create")
    parser.add_argument("--admin-email", help="Email of an administrator account to create")

    args = parser.parse_args()
    seed(admin_name=args.admin_name, admin_email=args.admin_email)


if __name__ == "__main__":
    main()
