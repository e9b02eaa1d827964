from freight_approvals.models.entities import (
    ApprovalConfig,
    ApprovalRequest,
    Fee,
    Message,
    OperationTrigger,
    Permission,
    Role,
    RolePermission,
    Supplier,
    TimestampMixin,
    TriggerProvisioningRequest,
    User,
)

__all__ = [
    "ApprovalConfig",
    "ApprovalRequest",
    "Fee",
    "Message",
    "OperationTrigger",
    "Permission",
    "Role",
    "RolePermission",
    "Supplier",
    "TimestampMixin",
    "TriggerProvisioningRequest",
    "User",
]
