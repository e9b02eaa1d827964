from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class TimestampSchema(BaseModel):
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleBase(BaseModel):
    code: str = Field(..., max_length=50)
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    level: int = Field(..., ge=1)
    can_manage_team: bool = False
    can_approve: bool = False


class RoleCreate(RoleBase):
    pass


class RoleUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    level: Optional[int] = Field(None, ge=1)
    can_manage_team: Optional[bool] = None
    can_approve: Optional[bool] = None


class RoleRead(RoleBase, TimestampSchema):
    id: UUID


class PermissionRead(TimestampSchema):
    id: UUID
    code: str
    name: str
    category: Optional[str] = None
    is_sensitive: bool
    sort_order: int


class RolePermissionGrant(BaseModel):
    granter_id: UUID
    permission_code: str = Field(..., max_length=100)


class RolePermissionGrantResult(BaseModel):
    role_code: str
    permission_code: str
    granted: bool
    needs_approval: bool = False
    approval_id: Optional[UUID] = None
    error: Optional[str] = None


class UserBase(BaseModel):
    name: str = Field(..., max_length=200)
    email: Optional[EmailStr] = None
    role_code: str = Field("operator", max_length=50)
    supervisor_id: Optional[UUID] = None
    department: Optional[str] = Field(None, max_length=100)
    status: str = Field("active", max_length=50)


class UserCreate(UserBase):
    requested_by_id: UUID


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    role_code: Optional[str] = Field(None, max_length=50)
    supervisor_id: Optional[UUID] = None
    department: Optional[str] = Field(None, max_length=100)
    status: Optional[str] = Field(None, max_length=50)


class UserRead(UserBase, TimestampSchema):
    id: UUID


class UserHierarchyEntry(BaseModel):
    id: UUID
    name: str
    role_code: str
    role_level: int

    model_config = ConfigDict(from_attributes=True)


class CanManageRead(BaseModel):
    manager_id: UUID
    target_id: UUID
    can_manage: bool


class SupplierBase(BaseModel):
    name: str = Field(..., max_length=200)
    supplier_type: Optional[str] = Field(None, max_length=50)
    contact_email: Optional[EmailStr] = None
    status: str = Field("active", max_length=50)


class SupplierCreate(SupplierBase):
    pass


class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    supplier_type: Optional[str] = Field(None, max_length=50)
    contact_email: Optional[EmailStr] = None
    status: Optional[str] = Field(None, max_length=50)


class SupplierRead(SupplierBase, TimestampSchema):
    id: UUID


class FeeRead(TimestampSchema):
    id: UUID
    bill_number: Optional[str] = None
    fee_name: str
    amount: Decimal
    currency: str
    approval_status: str
    notes: Optional[str] = None


class FeeSupplementCreate(BaseModel):
    bill_number: Optional[str] = Field(None, max_length=100)
    fee_name: str = Field(..., max_length=200)
    amount: Decimal = Field(..., gt=0)
    currency: str = Field("EUR", min_length=3, max_length=3)
    notes: Optional[str] = None
    applicant_id: UUID


class GatedActionResult(BaseModel):
    """Outcome of a business action that may have been deferred for approval."""

    executed: bool
    needs_approval: bool
    approval_id: Optional[UUID] = None
    error: Optional[str] = None
    result: dict[str, Any] = Field(default_factory=dict)


class FeeSupplementResult(GatedActionResult):
    fee: FeeRead


class UserCreateResult(GatedActionResult):
    user: Optional[UserRead] = None
