"""
Permission checking utilities and dependencies.

Implements:
- Grant matching against the permissions stored on an account
- Tenant scope resolution for tenant-scoped resources
- FastAPI dependencies for route protection
"""
from typing import Any, Dict, Iterable, Optional
from fastapi import Depends, HTTPException, status

from app.core.errors import ForbiddenError
from app.features.roles.hierarchy import RoleScope
from app.features.users.dependencies import get_current_user
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Grant Matching
# ============================================================================

def grant_allows(grant: Dict[str, Any], resource: str, action: str) -> bool:
    """
    Whether one stored grant covers `action` on `resource`.

    "manage" implies every action on its resource; a "system" grant with
    "manage" covers every resource.
    """
    actions = set(grant.get("actions") or ())
    if grant.get("resource") == "system" and "manage" in actions:
        return True
    if grant.get("resource") != resource:
        return False
    return action in actions or "manage" in actions


def has_permission(user: User, resource: str, action: str) -> bool:
    """Check the account's grant list for `action` on `resource`."""
    for grant in user.permissions or ():
        if grant_allows(grant, resource, action):
            log.debug(f"User {user.id} granted {action} on {resource} via {grant.get('resource')}")
            return True

    log.debug(f"User {user.id} denied {action} on {resource}")
    return False


# ============================================================================
# Tenant Scope
# ============================================================================

def resolve_tenant(user: User, requested: Optional[str] = None) -> str:
    """
    Tenant a request by `user` operates on.

    - global scope: the requested tenant, or the user's own
    - limited scope: own tenant or one of managed_tenants
    - tenant scope: own tenant only

    Raises:
        ForbiddenError: If the requested tenant is outside the user's scope
    """
    if requested is None or requested == user.tenant_id:
        return user.tenant_id

    if user.role_scope == RoleScope.GLOBAL:
        return requested

    if user.role_scope == RoleScope.LIMITED and requested in (user.managed_tenants or []):
        return requested

    log.info(f"User {user.id} ({user.role_scope.value}) refused access to tenant {requested}")
    raise ForbiddenError("Cannot access resources of another tenant")


def visible_tenants(user: User) -> Optional[Iterable[str]]:
    """Tenants whose records the user may list; None means all."""
    if user.role_scope == RoleScope.GLOBAL:
        return None
    if user.role_scope == RoleScope.LIMITED:
        return [user.tenant_id, *(user.managed_tenants or [])]
    return [user.tenant_id]


# ============================================================================
# FastAPI Dependencies
# ============================================================================

def require_permission(resource: str, action: str):
    """
    FastAPI dependency to require a specific permission.

    Usage:
        @router.post("/classes")
        async def create_class(
            user: User = Depends(require_permission("class", "create"))
        ):
            # User may create classes
            pass

    Raises:
        HTTPException: 403 if the user's grants do not cover the action
    """
    async def permission_dependency(
        current_user: User = Depends(get_current_user)
    ) -> User:
        if not has_permission(current_user, resource, action):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {action} on {resource}"
            )
        return current_user

    return permission_dependency
