from freight_approvals.schemas.approval_payloads import (
    ApprovalPayload,
    FeeSupplementPayload,
    PermissionGrantPayload,
    SupplierDeletePayload,
    UserCreatePayload,
    UserDeletePayload,
)
from freight_approvals.schemas.approvals import (
    ApprovalApproveRequest,
    ApprovalCategory,
    ApprovalConfigRead,
    ApprovalConfigUpdate,
    ApprovalDecisionRequest,
    ApprovalDecisionResult,
    ApprovalGateRequest,
    ApprovalGateResult,
    ApprovalNotificationPage,
    ApprovalNotificationRead,
    ApprovalPage,
    ApprovalPriority,
    ApprovalRejectRequest,
    ApprovalRequestRead,
    ApprovalStatus,
    BusinessModuleRead,
    DecisionType,
    ExecutionOutcomeRead,
    OperationTriggerCreate,
    OperationTriggerRead,
    OperationTriggerUpdate,
    PendingCount,
    TriggerCatalogRead,
    TriggerProvisioningCreate,
    TriggerProvisioningRead,
    TriggerProvisioningStatusUpdate,
    TriggerRequestStatus,
)
from freight_approvals.schemas.entities import (
    CanManageRead,
    FeeRead,
    FeeSupplementCreate,
    FeeSupplementResult,
    GatedActionResult,
    PermissionRead,
    RoleCreate,
    RolePermissionGrant,
    RolePermissionGrantResult,
    RoleRead,
    RoleUpdate,
    SupplierCreate,
    SupplierRead,
    SupplierUpdate,
    TimestampSchema,
    UserCreate,
    UserCreateResult,
    UserHierarchyEntry,
    UserRead,
    UserUpdate,
)

__all__ = [
    "ApprovalApproveRequest",
    "ApprovalCategory",
    "ApprovalConfigRead",
    "ApprovalConfigUpdate",
    "ApprovalDecisionRequest",
    "ApprovalDecisionResult",
    "ApprovalGateRequest",
    "ApprovalGateResult",
    "ApprovalNotificationPage",
    "ApprovalNotificationRead",
    "ApprovalPage",
    "ApprovalPayload",
    "ApprovalPriority",
    "ApprovalRejectRequest",
    "ApprovalRequestRead",
    "ApprovalStatus",
    "BusinessModuleRead",
    "CanManageRead",
    "DecisionType",
    "ExecutionOutcomeRead",
    "FeeRead",
    "FeeSupplementCreate",
    "FeeSupplementPayload",
    "FeeSupplementResult",
    "GatedActionResult",
    "OperationTriggerCreate",
    "OperationTriggerRead",
    "OperationTriggerUpdate",
    "PendingCount",
    "PermissionGrantPayload",
    "PermissionRead",
    "RoleCreate",
    "RolePermissionGrant",
    "RolePermissionGrantResult",
    "RoleRead",
    "RoleUpdate",
    "SupplierCreate",
    "SupplierDeletePayload",
    "SupplierRead",
    "SupplierUpdate",
    "TimestampSchema",
    "TriggerCatalogRead",
    "TriggerProvisioningCreate",
    "TriggerProvisioningRead",
    "TriggerProvisioningStatusUpdate",
    "TriggerRequestStatus",
    "UserCreate",
    "UserCreatePayload",
    "UserCreateResult",
    "UserDeletePayload",
    "UserHierarchyEntry",
    "UserRead",
    "UserUpdate",
]
