import logging

from sqlalchemy.orm import Session

from freight_approvals.models import Permission, RolePermission
from freight_approvals.services.delegation import (
    can_grant_permission,
    can_manage_user,
    check_approver_permission,
    get_grantable_permissions,
    get_team_members,
    get_user_hierarchy,
)
from freight_approvals.services.role_hierarchy import RoleHierarchy, get_role_hierarchy
from freight_approvals.services.trigger_registry import toggle_trigger


def _seed_permissions(db_session: Session) -> None:
    db_session.add_all(
        [
            Permission(code="fee:view", name="View fees", category="fee", sort_order=1),
            Permission(code="fee:approve", name="Approve fees", category="fee", is_sensitive=True, sort_order=2),
            Permission(code="supplier:view", name="View suppliers", category="supplier", sort_order=3),
        ]
    )
    db_session.flush()
    db_session.add_all(
        [
            RolePermission(role_code="manager", permission_code="fee:view"),
            RolePermission(role_code="manager", permission_code="fee:approve"),
            RolePermission(role_code="boss", permission_code="fee:view"),
            RolePermission(role_code="boss", permission_code="fee:approve"),
        ]
    )
    db_session.commit()


def test_role_hierarchy_levels_and_capabilities() -> None:
    roles = RoleHierarchy.default()
    assert roles.level("admin") == 1
    assert roles.level("boss") == 2
    assert roles.outranks("manager", "operator")
    assert not roles.outranks("manager", "finance_director")
    assert roles.can_manage_team("finance_director")
    assert not roles.can_approve("doc_clerk")


def test_unknown_role_gets_default_level_without_capabilities() -> None:
    definition = get_role_hierarchy().get("forklift_driver")
    assert definition.level == 4
    assert definition.can_manage_team is False
    assert definition.can_approve is False


def test_nobody_manages_themselves(db_session: Session, make_user) -> None:
    admin = make_user("Ada Admin", role_code="admin")
    assert can_manage_user(db_session, admin.id, admin.id) is False


def test_admin_manages_anyone(db_session: Session, make_user) -> None:
    admin = make_user("Ada Admin", role_code="admin")
    other_admin = make_user("Alan Admin", role_code="admin")
    assert can_manage_user(db_session, admin.id, other_admin.id) is True


def test_manager_manages_direct_reports_only(db_session: Session, make_user) -> None:
    manager = make_user("Mia Manager", role_code="manager")
    report = make_user("Olga Operator", supervisor=manager)
    stranger = make_user("Otto Operator")

    assert can_manage_user(db_session, manager.id, report.id) is True
    assert can_manage_user(db_session, manager.id, stranger.id) is False


def test_boss_manages_lower_levels_but_not_admins(db_session: Session, make_user) -> None:
    boss = make_user("Bo Boss", role_code="boss")
    operator = make_user("Olga Operator")
    admin = make_user("Ada Admin", role_code="admin")

    assert can_manage_user(db_session, boss.id, operator.id) is True
    assert can_manage_user(db_session, boss.id, admin.id) is False


def test_roles_without_team_management_manage_nobody(db_session: Session, make_user) -> None:
    clerk = make_user("Cleo Clerk", role_code="doc_clerk")
    report = make_user("Olga Operator", supervisor=clerk)
    assert can_manage_user(db_session, clerk.id, report.id) is False


def test_hierarchy_returns_chain_nearest_first(db_session: Session, make_user) -> None:
    boss = make_user("Bo Boss", role_code="boss")
    manager = make_user("Mia Manager", role_code="manager", supervisor=boss)
    operator = make_user("Olga Operator", supervisor=manager)

    chain = get_user_hierarchy(db_session, operator.id)

    assert [(entry.id, entry.role_level) for entry in chain] == [(manager.id, 3), (boss.id, 2)]


def test_hierarchy_walk_terminates_on_cycle(db_session: Session, make_user, caplog) -> None:
    first = make_user("First Manager", role_code="manager")
    second = make_user("Second Manager", role_code="manager", supervisor=first)
    first.supervisor_id = second.id
    db_session.commit()

    with caplog.at_level(logging.WARNING):
        chain = get_user_hierarchy(db_session, first.id)

    assert [entry.id for entry in chain] == [second.id]
    assert "cycle" in caplog.text


def test_team_members_lists_active_direct_reports(db_session: Session, make_user) -> None:
    manager = make_user("Mia Manager", role_code="manager")
    active = make_user("Olga Operator", supervisor=manager)
    make_user("Gone Operator", supervisor=manager, status="disabled")

    assert [member.id for member in get_team_members(db_session, manager.id)] == [active.id]


def test_grant_requires_granter_to_hold_permission(db_session: Session, make_user) -> None:
    _seed_permissions(db_session)
    manager = make_user("Mia Manager", role_code="manager")

    assert can_grant_permission(db_session, manager.id, "fee:view") is True
    assert can_grant_permission(db_session, manager.id, "supplier:view") is False


def test_sensitive_permissions_need_admin_or_boss(db_session: Session, make_user) -> None:
    _seed_permissions(db_session)
    manager = make_user("Mia Manager", role_code="manager")
    boss = make_user("Bo Boss", role_code="boss")
    admin = make_user("Ada Admin", role_code="admin")

    assert can_grant_permission(db_session, manager.id, "fee:approve") is False
    assert can_grant_permission(db_session, boss.id, "fee:approve") is True
    assert can_grant_permission(db_session, admin.id, "supplier:view") is True


def test_operator_cannot_grant_anything(db_session: Session, make_user) -> None:
    _seed_permissions(db_session)
    operator = make_user("Olga Operator")
    db_session.add(RolePermission(role_code="operator", permission_code="fee:view"))
    db_session.commit()

    assert can_grant_permission(db_session, operator.id, "fee:view") is False


def test_grantable_permissions_follow_grant_rules(db_session: Session, make_user) -> None:
    _seed_permissions(db_session)
    manager = make_user("Mia Manager", role_code="manager")
    admin = make_user("Ada Admin", role_code="admin")

    assert [permission.code for permission in get_grantable_permissions(db_session, manager.id)] == ["fee:view"]
    assert len(get_grantable_permissions(db_session, admin.id)) == 3


def test_approver_permission_uses_trigger_roles(db_session: Session, default_triggers) -> None:
    assert check_approver_permission(db_session, "finance_director", "FEE_SUPPLEMENT") is True
    assert check_approver_permission(db_session, "boss", "USER_DELETE") is False
    assert check_approver_permission(db_session, "admin", "USER_DELETE") is True


def test_approver_permission_without_active_trigger(db_session: Session, default_triggers) -> None:
    toggle_trigger(db_session, default_triggers["FEE_SUPPLEMENT"].id)

    assert check_approver_permission(db_session, "finance_director", "FEE_SUPPLEMENT") is False
    assert check_approver_permission(db_session, "boss", "FEE_SUPPLEMENT") is True
    assert check_approver_permission(db_session, "boss", "ORDER_CANCEL") is True
    assert check_approver_permission(db_session, "manager", "ORDER_CANCEL") is False
