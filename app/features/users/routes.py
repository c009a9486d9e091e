"""
User feature routes.

Account creation and role changes go through RoleManagementService; the
remaining account endpoints go through UserService.
"""
from typing import Annotated, List, Optional
from fastapi import APIRouter, Depends, Query, status

from app.features.roles.dependencies import get_role_service
from app.features.roles.hierarchy import DEFAULT_HIERARCHY, ROLE_DISPLAY_NAMES, Role
from app.features.roles.service import RoleManagementService
from app.features.users.dependencies import get_current_user, get_user_service, require_roles
from app.features.users.models import User
from app.features.users.schemas import (
    AccountCreate,
    AvailableRolesResponse,
    ChangePasswordRequest,
    RoleHierarchyEntry,
    RoleUpdate,
    TokenResponse,
    UserListResponse,
    UserResponse,
    UserUpdate,
)
from app.core import config
from app.features.users.service import UserService, page_count


router = APIRouter(tags=["users"])

staff_only = require_roles(Role.SUPER_ADMIN, Role.MANAGER, Role.ADMIN, Role.TENANT_ADMIN)


def _sorted_roles(roles) -> List[Role]:
    return sorted(roles, key=lambda r: (-DEFAULT_HIERARCHY.level(r), r.value))


# Current user
@router.get("/me", response_model=UserResponse)
async def get_current_user_profile(
    user: Annotated[User, Depends(get_current_user)]
):
    """Get current authenticated user's profile."""
    return user


@router.patch("/me", response_model=UserResponse)
async def update_current_user_profile(
    update_data: UserUpdate,
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Update current user's profile."""
    return await service.update_profile(user, update_data)


@router.patch("/me/password", response_model=TokenResponse)
async def change_password(
    data: ChangePasswordRequest,
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Change password; tokens issued before the change stop working."""
    token = await service.change_password(user, data.current_password, data.new_password)
    return TokenResponse(
        access_token=token,
        expires_in=config.JWT_EXPIRES_MINUTES * 60,
        user=UserResponse.model_validate(user),
    )


# Role hierarchy
@router.get("/available-roles", response_model=AvailableRolesResponse)
async def get_available_roles(
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[RoleManagementService, Depends(get_role_service)]
):
    """Roles the current user may assign."""
    roles = await service.available_roles(user.id)
    return AvailableRolesResponse(role=user.role, available_roles=_sorted_roles(roles))


@router.get("/my-created-users", response_model=list[UserResponse])
async def get_my_created_users(
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[RoleManagementService, Depends(get_role_service)]
):
    """Accounts created by the current user, newest first."""
    return await service.list_created_by(user.id)


@router.get("/role-hierarchy", response_model=list[RoleHierarchyEntry])
async def get_role_hierarchy(
    user: Annotated[User, Depends(get_current_user)]
):
    """Level, scope and assignable roles of every role."""
    return [
        RoleHierarchyEntry(
            role=role,
            level=DEFAULT_HIERARCHY.level(role),
            scope=DEFAULT_HIERARCHY.resolve_scope(role),
            display_name=ROLE_DISPLAY_NAMES[role],
            assignable_roles=_sorted_roles(DEFAULT_HIERARCHY.assignable_roles(role)),
        )
        for role in _sorted_roles(Role)
    ]


# Account administration
@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: AccountCreate,
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[RoleManagementService, Depends(get_role_service)]
):
    """Create an account; the role hierarchy decides what the caller may create."""
    return await service.create_account_with_role(user.id, data)


@router.get("/", response_model=UserListResponse)
async def list_users(
    user: Annotated[User, Depends(staff_only)],
    service: Annotated[UserService, Depends(get_user_service)],
    tenant: Optional[str] = None,
    role: Optional[Role] = None,
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100)
):
    """List accounts in the tenants visible to the caller."""
    items, total = await service.list_users(
        user, tenant=tenant, role=role, search=search, is_active=is_active,
        page=page, page_size=page_size,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(item) for item in items],
        total=total,
        page=page,
        page_size=page_size,
        pages=page_count(total, page_size),
    )


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    user: Annotated[User, Depends(staff_only)],
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Get an account by ID."""
    return await service.get_visible_user(user, user_id)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def update_user_role(
    user_id: str,
    data: RoleUpdate,
    user: Annotated[User, Depends(get_current_user)],
    service: Annotated[RoleManagementService, Depends(get_role_service)]
):
    """Change an account's role; its permissions are reset to the role defaults."""
    return await service.update_account_role(user.id, user_id, data.role)


@router.patch("/{user_id}/toggle-status", response_model=UserResponse)
async def toggle_user_status(
    user_id: str,
    user: Annotated[User, Depends(staff_only)],
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Activate or deactivate an account."""
    return await service.toggle_status(user, user_id)


@router.delete("/{user_id}")
async def deactivate_user(
    user_id: str,
    user: Annotated[User, Depends(staff_only)],
    service: Annotated[UserService, Depends(get_user_service)]
):
    """Deactivate an account (soft delete)."""
    await service.deactivate(user, user_id)
    return {"message": "User deactivated successfully"}
