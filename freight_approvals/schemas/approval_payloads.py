"""Request payloads stored on approval requests, one model per operation code."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class ApprovalPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")


class SupplierDeletePayload(ApprovalPayload):
    supplier_id: UUID


class FeeSupplementPayload(ApprovalPayload):
    fee_id: UUID


class UserCreatePayload(ApprovalPayload):
    name: str = Field(..., max_length=200)
    email: Optional[EmailStr] = None
    role_code: str = Field("operator", max_length=50)
    supervisor_id: Optional[UUID] = None
    department: Optional[str] = Field(None, max_length=100)


class UserDeletePayload(ApprovalPayload):
    user_id: UUID


class PermissionGrantPayload(ApprovalPayload):
    granter_id: UUID
    role_code: str = Field(..., max_length=50)
    permission_code: str = Field(..., max_length=100)
