from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from freight_approvals.schemas.entities import TimestampSchema


class ApprovalCategory(str, Enum):
    BUSINESS = "business"
    SYSTEM = "system"
    FINANCE = "finance"


class ApprovalPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class DecisionType(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class TriggerRequestStatus(str, Enum):
    REQUESTED = "requested"
    DEVELOPING = "developing"
    COMPLETED = "completed"
    REJECTED = "rejected"


class ApprovalGateRequest(BaseModel):
    operation_code: str = Field(..., max_length=100)
    title: str = Field(..., max_length=200)
    content: str = ""
    category: Optional[ApprovalCategory] = None
    business_id: Optional[str] = Field(None, max_length=100)
    business_table: Optional[str] = Field(None, max_length=100)
    amount: Optional[Decimal] = None
    currency: str = Field("EUR", min_length=3, max_length=3)
    request_data: Optional[dict[str, Any]] = None
    applicant_id: UUID
    applicant_name: Optional[str] = Field(None, max_length=200)
    applicant_role: Optional[str] = Field(None, max_length=50)
    applicant_department: Optional[str] = Field(None, max_length=100)
    priority: ApprovalPriority = ApprovalPriority.NORMAL
    expires_in_hours: Optional[int] = Field(None, gt=0)


class ApprovalRequestRead(TimestampSchema):
    id: UUID
    category: str
    operation_code: str
    business_id: Optional[str] = None
    business_table: Optional[str] = None
    title: str
    content: str
    amount: Optional[Decimal] = None
    currency: str
    request_data: Optional[dict[str, Any]] = None
    applicant_id: UUID
    applicant_name: str
    applicant_role: str
    applicant_department: Optional[str] = None
    priority: str
    expires_at: datetime
    status: str
    approver_id: Optional[UUID] = None
    approver_name: Optional[str] = None
    approver_role: Optional[str] = None
    approval_comment: Optional[str] = None
    rejection_reason: Optional[str] = None
    decided_at: Optional[datetime] = None
    is_executed: bool
    executed_at: Optional[datetime] = None
    execution_result: Optional[dict[str, Any]] = None


class ApprovalGateResult(BaseModel):
    needs_approval: bool
    approval: Optional[ApprovalRequestRead] = None
    error: Optional[str] = None


class ApprovalPage(BaseModel):
    items: list[ApprovalRequestRead]
    total: int
    page: int
    page_size: int


class PendingCount(BaseModel):
    role: str
    count: int


class ApprovalNotificationRead(TimestampSchema):
    id: UUID
    message_type: str
    title: str
    content: str
    sender_name: Optional[str] = None
    recipient_id: UUID
    related_type: Optional[str] = None
    related_id: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None


class ApprovalNotificationPage(BaseModel):
    items: list[ApprovalNotificationRead]
    total: int
    page: int
    page_size: int


class ApprovalDecisionRequest(BaseModel):
    decision: DecisionType
    approver_id: UUID
    approver_role: str = Field(..., max_length=50)
    approver_name: Optional[str] = Field(None, max_length=200)
    comment: Optional[str] = None


class ApprovalApproveRequest(BaseModel):
    approver_id: UUID
    approver_role: str = Field(..., max_length=50)
    approver_name: Optional[str] = Field(None, max_length=200)
    comment: Optional[str] = None


class ApprovalRejectRequest(BaseModel):
    approver_id: UUID
    approver_role: str = Field(..., max_length=50)
    approver_name: Optional[str] = Field(None, max_length=200)
    reason: str = Field(..., min_length=1)


class ExecutionOutcomeRead(BaseModel):
    executed: bool
    result: dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    replayed: bool = False

    model_config = ConfigDict(from_attributes=True)


class ApprovalDecisionResult(BaseModel):
    approval: ApprovalRequestRead
    execution: Optional[ExecutionOutcomeRead] = None

    model_config = ConfigDict(from_attributes=True)


class OperationTriggerBase(BaseModel):
    operation_name: str = Field(..., max_length=200)
    operation_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    category: ApprovalCategory = ApprovalCategory.BUSINESS
    requires_approval: bool = True
    approval_level: int = Field(1, ge=1)
    approver_roles: list[str] = Field(default_factory=list)
    business_module: Optional[str] = Field(None, max_length=50)
    trigger_action: Optional[str] = Field(None, max_length=50)
    trigger_condition: Optional[dict[str, Any]] = None
    availability_status: str = Field("available", max_length=20)
    is_active: bool = True


class OperationTriggerCreate(OperationTriggerBase):
    operation_code: str = Field(..., max_length=100)


class OperationTriggerUpdate(BaseModel):
    operation_name: Optional[str] = Field(None, max_length=200)
    operation_type: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    category: Optional[ApprovalCategory] = None
    requires_approval: Optional[bool] = None
    approval_level: Optional[int] = Field(None, ge=1)
    approver_roles: Optional[list[str]] = None
    business_module: Optional[str] = Field(None, max_length=50)
    trigger_action: Optional[str] = Field(None, max_length=50)
    trigger_condition: Optional[dict[str, Any]] = None
    availability_status: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class OperationTriggerRead(OperationTriggerBase, TimestampSchema):
    id: UUID
    operation_code: str
    category: str


class TriggerProvisioningCreate(BaseModel):
    business_module: str = Field(..., max_length=50)
    trigger_action: str = Field(..., max_length=50)
    module_name: Optional[str] = Field(None, max_length=100)
    action_name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    expected_roles: list[str] = Field(default_factory=list)
    requested_by_id: Optional[UUID] = None
    requested_by_name: Optional[str] = Field(None, max_length=200)


class TriggerProvisioningStatusUpdate(BaseModel):
    status: TriggerRequestStatus
    actor_id: UUID
    actor_role: str = Field(..., max_length=50)
    actor_name: Optional[str] = Field(None, max_length=200)
    developer_notes: Optional[str] = None


class TriggerProvisioningRead(TimestampSchema):
    id: UUID
    business_module: str
    trigger_action: str
    module_name: Optional[str] = None
    action_name: Optional[str] = None
    description: Optional[str] = None
    expected_roles: list[str]
    status: str
    requested_by_id: Optional[UUID] = None
    requested_by_name: Optional[str] = None
    developer_notes: Optional[str] = None
    completed_by_id: Optional[UUID] = None
    completed_by_name: Optional[str] = None
    completed_at: Optional[datetime] = None
    operation_code: Optional[str] = None


class TriggerCatalogRead(BaseModel):
    triggers: list[OperationTriggerRead]
    pending_requests: list[TriggerProvisioningRead]


class ApprovalConfigRead(BaseModel):
    approval_enabled: bool
    finance_approval_threshold: Decimal
    default_expiry_hours: int


class ApprovalConfigUpdate(BaseModel):
    approval_enabled: Optional[bool] = None
    finance_approval_threshold: Optional[Decimal] = Field(None, ge=0)
    default_expiry_hours: Optional[int] = Field(None, gt=0)


class BusinessModuleRead(BaseModel):
    code: str
    name: str
    actions: list[str]
