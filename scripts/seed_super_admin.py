"""
Seed script creating the first tenant and its super admin.

Super admins are the only accounts without a creator, so the first one has
to be created outside the API.

Usage:
    SEED_ADMIN_EMAIL=root@school.edu SEED_ADMIN_PASSWORD=... python -m scripts.seed_super_admin
"""
import asyncio
import os
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db, init_db
from app.features.permissions.defaults import DEFAULT_PERMISSION_TABLE
from app.features.roles.hierarchy import DEFAULT_HIERARCHY, Role
from app.features.tenants.models import Tenant
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


TENANT_NAME = os.environ.get("SEED_TENANT_NAME", "Platform")
TENANT_SUBDOMAIN = os.environ.get("SEED_TENANT_SUBDOMAIN", "platform")
ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "superadmin@school.edu")
ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD")


async def seed_tenant(db: AsyncSession) -> Tenant:
    result = await db.execute(select(Tenant).where(Tenant.subdomain == TENANT_SUBDOMAIN))
    tenant = result.scalar_one_or_none()
    if tenant is not None:
        log.info(f"Tenant {TENANT_SUBDOMAIN} already exists ({tenant.id})")
        return tenant

    tenant = Tenant(name=TENANT_NAME, subdomain=TENANT_SUBDOMAIN)
    db.add(tenant)
    await db.commit()
    await db.refresh(tenant)
    log.info(f"Created tenant {TENANT_SUBDOMAIN} ({tenant.id})")
    return tenant


async def seed_super_admin(db: AsyncSession, tenant: Tenant) -> User:
    result = await db.execute(select(User).where(User.tenant_id == tenant.id, User.email == ADMIN_EMAIL))
    user = result.scalar_one_or_none()
    if user is not None:
        log.info(f"Super admin {ADMIN_EMAIL} already exists ({user.id})")
        return user

    user = User(
        tenant_id=tenant.id,
        first_name="Super",
        last_name="Admin",
        email=ADMIN_EMAIL,
        password_hash=hash_password(ADMIN_PASSWORD),
        role=Role.SUPER_ADMIN,
        role_level=DEFAULT_HIERARCHY.level(Role.SUPER_ADMIN),
        role_scope=DEFAULT_HIERARCHY.resolve_scope(Role.SUPER_ADMIN),
        permissions=DEFAULT_PERMISSION_TABLE.defaults_for(Role.SUPER_ADMIN),
        created_by_id=None,
        is_email_verified=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    log.info(f"Created super admin {ADMIN_EMAIL} ({user.id})")
    return user


async def main():
    if not ADMIN_PASSWORD:
        raise SystemExit("SEED_ADMIN_PASSWORD must be set")

    log.info("Initializing database tables...")
    await init_db()

    async for db in get_db():
        try:
            tenant = await seed_tenant(db)
            await seed_super_admin(db, tenant)
        except Exception as e:
            log.error(f"Error seeding super admin: {e}", exc_info=True)
            await db.rollback()
            raise

        break  # Only use first session


if __name__ == "__main__":
    asyncio.run(main())
