"""
Dependency wiring for the role policy engine.
"""
from typing import Annotated
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.sink import RequestMeta
from app.features.roles.service import RoleManagementService


async def get_role_service(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)]
) -> RoleManagementService:
    """RoleManagementService with the default role tables and this request's client details."""
    return RoleManagementService(db, meta=RequestMeta.from_request(request))
