"""
Class-related dependency injection and lookup helpers.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, NotFoundError
from app.features.classes.models import SchoolClass
from app.features.permissions.dependencies import visible_tenants
from app.features.roles.hierarchy import Role
from app.features.users.models import User


async def get_class_by_id(db: AsyncSession, class_id: str, user: User) -> SchoolClass:
    """
    Load a class the user can see.

    Classes of tenants outside the user's scope are reported as missing.

    Raises:
        NotFoundError: class does not exist or is not visible
    """
    result = await db.execute(select(SchoolClass).where(SchoolClass.id == class_id))
    school_class = result.scalar_one_or_none()
    if school_class is None:
        raise NotFoundError("Class not found")

    tenant_ids = visible_tenants(user)
    if tenant_ids is not None and school_class.tenant_id not in tenant_ids:
        raise NotFoundError("Class not found")
    return school_class


async def get_tenant_member(db: AsyncSession, user_id: str, tenant_id: str, role: Role, label: str) -> User:
    """
    Load an active account of `role` in `tenant_id`.

    Raises:
        BadRequestError: no such account, wrong role, other tenant or inactive
    """
    result = await db.execute(
        select(User).where(
            User.id == user_id,
            User.tenant_id == tenant_id,
            User.role == role,
        )
    )
    member = result.scalar_one_or_none()
    if member is None or not member.is_active:
        raise BadRequestError(f"Invalid {label} or {label} is not active")
    return member
