ADMIN_ROLE = "admin"
BOSS_ROLE = "boss"

# Lower level means more privilege.
DEFAULT_ROLE_DEFINITIONS = (
    {"code": ADMIN_ROLE, "name": "Administrator", "level": 1, "can_manage_team": True, "can_approve": True},
    {"code": BOSS_ROLE, "name": "Boss", "level": 2, "can_manage_team": True, "can_approve": True},
    {"code": "manager", "name": "Manager", "level": 3, "can_manage_team": True, "can_approve": True},
    {
        "code": "finance_director",
        "name": "Finance Director",
        "level": 3,
        "can_manage_team": True,
        "can_approve": True,
    },
    {"code": "doc_clerk", "name": "Documentation Clerk", "level": 4, "can_manage_team": False, "can_approve": False},
    {"code": "doc_officer", "name": "Documentation Officer", "level": 4, "can_manage_team": False, "can_approve": False},
    {
        "code": "finance_assistant",
        "name": "Finance Assistant",
        "level": 4,
        "can_manage_team": False,
        "can_approve": False,
    },
    {"code": "operator", "name": "Operator", "level": 4, "can_manage_team": False, "can_approve": False},
    {"code": "viewer", "name": "Viewer", "level": 5, "can_manage_team": False, "can_approve": False},
)

# Level assigned to role codes missing from the hierarchy.
UNKNOWN_ROLE_LEVEL = 4

DEFAULT_APPROVER_ROLES = (ADMIN_ROLE, BOSS_ROLE)

# (code, name, category, is_sensitive)
DEFAULT_PERMISSIONS = (
    ("supplier:view", "View suppliers", "supplier", False),
    ("supplier:edit", "Edit suppliers", "supplier", False),
    ("supplier:delete", "Delete suppliers", "supplier", True),
    ("fee:view", "View fees", "fee", False),
    ("fee:supplement", "Add supplementary fees", "fee", False),
    ("fee:approve", "Approve fees", "fee", True),
    ("user:view", "View users", "user", False),
    ("user:manage", "Manage users", "user", True),
    ("approval:view", "View approvals", "approval", False),
    ("approval:decide", "Decide approvals", "approval", True),
)

DEFAULT_ROLE_PERMISSIONS = {
    BOSS_ROLE: tuple(code for code, *_ in DEFAULT_PERMISSIONS),
    "manager": ("supplier:view", "supplier:edit", "fee:view", "fee:supplement", "user:view", "approval:view"),
    "finance_director": ("fee:view", "fee:supplement", "fee:approve", "approval:view", "approval:decide"),
    "operator": ("supplier:view", "fee:view"),
    "viewer": ("supplier:view",),
}
