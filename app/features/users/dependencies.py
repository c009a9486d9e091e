"""
FastAPI dependencies for authentication and authorization.
"""
from typing import Annotated, Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.roles.hierarchy import Role
from app.features.users.models import User
from app.features.users.auth import verify_access_token, changed_password_after


security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.

    This dependency:
    1. Extracts the JWT from the Authorization header
    2. Verifies signature, expiry and token type
    3. Loads the account and checks it is still active
    4. Rejects tokens issued before the last password change

    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You are not logged in",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_access_token(credentials.credentials)

    result = await db.execute(select(User).where(User.id == payload["sub"]))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="The user belonging to this token no longer exists",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User account is deactivated",
        )

    if changed_password_after(user.password_changed_at, payload.get("iat", 0)):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Password was changed recently, please log in again",
        )

    return user


def require_roles(*roles: Role):
    """
    FastAPI dependency restricting a route to the given roles.

    Usage:
        @router.get("/stats")
        async def stats(user: User = Depends(require_roles(Role.ADMIN, Role.TENANT_ADMIN))):
            ...
    """
    allowed = frozenset(roles)

    async def role_dependency(
        user: Annotated[User, Depends(get_current_user)]
    ) -> User:
        if user.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role {user.role.value} is not allowed to perform this action",
            )
        return user

    return role_dependency


async def get_user_service(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """UserService bound to the request session."""
    from app.features.audit.sink import RequestMeta
    from app.features.users.service import UserService

    return UserService(db, meta=RequestMeta.from_request(request))
