"""
Pydantic schemas for user administration.
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..models.user import UserRole


VALID_ROLES = [role.value for role in UserRole]


class AdminUserSummary(BaseModel):
    id: UUID
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    role: str

    model_config = {"from_attributes": True}

    @field_validator("role", mode="before")
    @classmethod
    def role_value(cls, v):
        return v.value if isinstance(v, UserRole) else v


class AdminUserListResponse(BaseModel):
    users: List[AdminUserSummary]


class RoleUpdateRequest(BaseModel):
    role: str = Field(..., description="One of admin, manager, bdr, sdr")


class RoleChangeSummary(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    old_role: str = Field(..., serialization_alias="oldRole")
    new_role: str = Field(..., serialization_alias="newRole")


class RoleUpdateResponse(BaseModel):
    success: bool = True
    message: str
    user: RoleChangeSummary
