from freight_approvals.constants.roles import ADMIN_ROLE, BOSS_ROLE

APPROVAL_CATEGORIES = ("business", "system", "finance")
FINANCE_CATEGORY = "finance"

PRIORITY_RANKS = {"low": 0, "normal": 1, "high": 2, "urgent": 3}

FALLBACK_FINANCE_THRESHOLD = 10000
FALLBACK_EXPIRY_HOURS = 72

MESSAGE_RELATED_TYPE = "approval_request"

# Default gated operations seeded into a fresh registry.
DEFAULT_OPERATION_TRIGGERS = (
    {
        "operation_code": "SUPPLIER_DELETE",
        "operation_name": "Delete supplier",
        "operation_type": "supplier_management",
        "category": "business",
        "approver_roles": [ADMIN_ROLE, BOSS_ROLE],
        "business_module": "supplier",
        "trigger_action": "delete",
    },
    {
        "operation_code": "USER_CREATE",
        "operation_name": "Create user",
        "operation_type": "user_management",
        "category": "system",
        "approver_roles": [ADMIN_ROLE, BOSS_ROLE],
        "business_module": "user",
        "trigger_action": "create",
    },
    {
        "operation_code": "USER_DELETE",
        "operation_name": "Deactivate user",
        "operation_type": "user_management",
        "category": "system",
        "approver_roles": [ADMIN_ROLE],
        "business_module": "user",
        "trigger_action": "delete",
    },
    {
        "operation_code": "PERMISSION_GRANT",
        "operation_name": "Grant permission to role",
        "operation_type": "user_management",
        "category": "system",
        "approver_roles": [ADMIN_ROLE, BOSS_ROLE],
        "business_module": "user",
        "trigger_action": "permission_grant",
    },
    {
        "operation_code": "FEE_SUPPLEMENT",
        "operation_name": "Supplementary fee",
        "operation_type": "fee_management",
        "category": "finance",
        "approver_roles": [ADMIN_ROLE, BOSS_ROLE, "finance_director"],
        "business_module": "fee",
        "trigger_action": "supplement",
        "trigger_condition": {"amount_threshold": None},
    },
)

BUSINESS_MODULES = (
    {"code": "supplier", "name": "Supplier management", "actions": ["create", "delete", "update"]},
    {"code": "customer", "name": "Customer management", "actions": ["create", "delete", "update"]},
    {"code": "user", "name": "User management", "actions": ["create", "delete", "role_change", "permission_grant"]},
    {"code": "fee", "name": "Fee management", "actions": ["supplement", "item_create", "category_create", "delete"]},
    {"code": "payment", "name": "Payment management", "actions": ["request", "approve", "cancel"]},
    {"code": "order", "name": "Order management", "actions": ["create", "large_amount", "cancel"]},
    {"code": "contract", "name": "Contract management", "actions": ["create", "sign", "terminate"]},
    {"code": "quotation", "name": "Quotation management", "actions": ["create", "approve"]},
    {"code": "invoice", "name": "Invoice management", "actions": ["create", "void"]},
    {"code": "data", "name": "Data management", "actions": ["export", "import", "delete"]},
    {"code": "system", "name": "System management", "actions": ["config_change", "security_change"]},
)
