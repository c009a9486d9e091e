"""
Tenant feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.dependencies import require_permission, visible_tenants
from app.features.roles.hierarchy import Role
from app.features.tenants.dependencies import get_visible_tenant
from app.features.tenants.models import Tenant
from app.features.tenants.schemas import TenantCreate, TenantUpdate, TenantResponse
from app.features.users.dependencies import require_roles
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)
router = APIRouter(tags=["tenants"])


@router.post("/", response_model=TenantResponse, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    tenant_data: TenantCreate,
    user: Annotated[User, Depends(require_roles(Role.SUPER_ADMIN))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a new tenant (super admin only)."""
    result = await db.execute(select(Tenant).where(Tenant.subdomain == tenant_data.subdomain))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Tenant with this subdomain already exists"
        )
    
    tenant = Tenant(**tenant_data.model_dump())
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    
    log.info(f"User {user.id} created tenant {tenant.id} ({tenant.subdomain})")
    return tenant


@router.get("/", response_model=list[TenantResponse])
async def list_tenants(
    user: Annotated[User, Depends(require_permission("tenant", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    skip: int = 0,
    limit: int = 50
):
    """List tenants visible to the current user."""
    query = select(Tenant).order_by(Tenant.name)
    
    tenant_ids = visible_tenants(user)
    if tenant_ids is not None:
        query = query.where(Tenant.id.in_(list(tenant_ids)))
    
    result = await db.execute(query.offset(skip).limit(limit))
    return result.scalars().all()


@router.get("/{tenant_id}", response_model=TenantResponse)
async def get_tenant(
    tenant: Annotated[Tenant, Depends(get_visible_tenant)]
):
    """Get tenant by ID."""
    return tenant


@router.patch("/{tenant_id}", response_model=TenantResponse)
async def update_tenant(
    update_data: TenantUpdate,
    tenant: Annotated[Tenant, Depends(get_visible_tenant)],
    user: Annotated[User, Depends(require_permission("tenant", "update"))],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Update tenant information."""
    # Update only provided fields
    update_dict = update_data.model_dump(exclude_unset=True)
    for field, value in update_dict.items():
        setattr(tenant, field, value)
    
    await db.commit()
    await db.refresh(tenant)
    
    log.info(f"User {user.id} updated tenant {tenant.id}: {sorted(update_dict)}")
    return tenant
