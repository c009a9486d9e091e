"""
Pydantic schemas for user-related requests and responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.features.roles.hierarchy import Role, RoleScope


# ============================================================================
# Account Schemas
# ============================================================================

class PermissionGrantResponse(BaseModel):
    """One permission grant stored on an account."""
    resource: str
    actions: List[str]
    scope: str
    conditions: Optional[Dict[str, Any]] = None


class UserBase(BaseModel):
    """Base user schema with common fields."""
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def email_lowercase(cls, v: str) -> str:
        return v.lower()

    @field_validator("first_name", "last_name")
    @classmethod
    def strip_names(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class AccountCreate(UserBase):
    """Schema for creating an account with a role."""
    password: str = Field(..., min_length=8, max_length=128)
    role: Role
    tenant_id: Optional[str] = Field(None, max_length=64, description="Defaults to the creator's tenant")
    managed_tenants: Optional[List[str]] = Field(None, description="Tenants a manager account oversees")


class RoleUpdate(BaseModel):
    """Schema for changing an account's role."""
    role: Role


class UserUpdate(BaseModel):
    """Schema for updating profile information."""
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=20)
    avatar_url: Optional[str] = Field(None, max_length=500)


class UserResponse(BaseModel):
    """Account without credential fields."""
    id: str
    tenant_id: str
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role
    role_level: int
    role_scope: RoleScope
    created_by_id: Optional[str] = None
    managed_tenants: List[str] = []
    permissions: List[PermissionGrantResponse] = []
    is_active: bool
    is_email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserListResponse(BaseModel):
    """Paginated account list."""
    items: List[UserResponse]
    total: int
    page: int
    page_size: int
    pages: int


# ============================================================================
# Role Hierarchy Schemas
# ============================================================================

class AvailableRolesResponse(BaseModel):
    role: Role
    available_roles: List[Role]


class RoleHierarchyEntry(BaseModel):
    role: Role
    level: int
    scope: RoleScope
    display_name: str
    assignable_roles: List[Role]


# ============================================================================
# Authentication Schemas
# ============================================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    tenant: Optional[str] = Field(None, description="Tenant ID or subdomain")


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    tenant: Optional[str] = None


class ForgotPasswordResponse(BaseModel):
    message: str
    reset_token: Optional[str] = None
    expires_in: int


class ResetPasswordRequest(BaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)
