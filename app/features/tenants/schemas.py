"""
Pydantic schemas for tenant-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr


class TenantBase(BaseModel):
    """Base tenant schema."""
    name: str = Field(..., min_length=1, max_length=255)
    subdomain: str = Field(..., min_length=2, max_length=63, pattern="^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)


class TenantCreate(TenantBase):
    """Schema for creating a tenant (super admin only)."""
    pass


class TenantUpdate(BaseModel):
    """Schema for updating tenant information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=20)
    is_active: bool | None = None


class TenantResponse(TenantBase):
    """Schema for tenant responses."""
    id: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    
    model_config = {"from_attributes": True}
