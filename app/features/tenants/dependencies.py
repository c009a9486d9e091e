"""
Tenant-related dependency injection functions.
"""
from typing import Annotated, Optional
from fastapi import Depends, HTTPException, status
from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.dependencies import resolve_tenant
from app.features.tenants.models import Tenant
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


async def find_active_tenant(db: AsyncSession, key: str) -> Optional[Tenant]:
    """Look up an active tenant by id or subdomain."""
    result = await db.execute(
        select(Tenant).where(
            or_(Tenant.id == key, Tenant.subdomain == key),
            Tenant.is_active == True  # noqa: E712
        )
    )
    return result.scalars().first()


async def get_tenant_by_id(
    tenant_id: str,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Tenant:
    """
    Get tenant by ID or raise 404.
    
    Raises:
        HTTPException: 404 if tenant not found
    """
    result = await db.execute(select(Tenant).where(Tenant.id == tenant_id))
    tenant = result.scalar_one_or_none()
    
    if tenant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tenant not found"
        )
    
    return tenant


async def get_visible_tenant(
    tenant_id: str,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> Tenant:
    """
    Get tenant and verify it is within the user's scope.
    
    Raises:
        HTTPException: 404 if not found
        ForbiddenError: if the tenant is outside the user's scope
    """
    tenant = await get_tenant_by_id(tenant_id, db)
    resolve_tenant(user, tenant.id)
    return tenant
