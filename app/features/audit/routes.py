"""
Audit log routes (read only).
"""
from datetime import datetime
from typing import Annotated, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.audit.models import AuditAction, AuditLog, AuditResource, AuditSeverity
from app.features.audit.schemas import AuditLogListResponse, AuditLogResponse, AuditStatsResponse
from app.features.permissions.dependencies import require_permission, resolve_tenant, visible_tenants
from app.features.users.models import User
from app.features.users.service import page_count


router = APIRouter(tags=["audit"])

RECENT_CRITICAL_LIMIT = 10


def _scoped(query: Select, user: User, tenant: Optional[str]) -> Select:
    if tenant is not None:
        return query.where(AuditLog.tenant_id == resolve_tenant(user, tenant))
    tenant_ids = visible_tenants(user)
    if tenant_ids is not None:
        query = query.where(AuditLog.tenant_id.in_(list(tenant_ids)))
    return query


@router.get("/", response_model=AuditLogListResponse)
async def list_audit_logs(
    user: Annotated[User, Depends(require_permission("audit", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    actor_id: Optional[str] = None,
    target_id: Optional[str] = None,
    action: Optional[AuditAction] = None,
    resource: Optional[AuditResource] = None,
    severity: Optional[AuditSeverity] = None,
    tenant: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200)
):
    """
    List audit entries visible to the current user, newest first.

    Global callers see every tenant; managers see their own and managed
    tenants; everyone else sees their own tenant only.
    """
    query = _scoped(select(AuditLog), user, tenant)

    if actor_id:
        query = query.where(AuditLog.actor_id == actor_id)
    if target_id:
        query = query.where(AuditLog.target_id == target_id)
    if action is not None:
        query = query.where(AuditLog.action == action)
    if resource is not None:
        query = query.where(AuditLog.resource == resource)
    if severity is not None:
        query = query.where(AuditLog.severity == severity)
    if start_date is not None:
        query = query.where(AuditLog.timestamp >= start_date.replace(tzinfo=None))
    if end_date is not None:
        query = query.where(AuditLog.timestamp <= end_date.replace(tzinfo=None))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(
        query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(entry) for entry in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
        pages=page_count(total, page_size),
    )


@router.get("/stats", response_model=AuditStatsResponse)
async def get_audit_stats(
    user: Annotated[User, Depends(require_permission("audit", "read"))],
    db: Annotated[AsyncSession, Depends(get_db)],
    tenant: Optional[str] = None
):
    """Totals by action and by severity, and the most recent critical entries."""
    by_action = {}
    rows = await db.execute(_scoped(
        select(AuditLog.action, func.count(AuditLog.id)).group_by(AuditLog.action), user, tenant
    ))
    for action, count in rows.all():
        by_action[action.value] = count

    by_severity = {}
    rows = await db.execute(_scoped(
        select(AuditLog.severity, func.count(AuditLog.id)).group_by(AuditLog.severity), user, tenant
    ))
    for severity, count in rows.all():
        by_severity[severity.value] = count

    critical = await db.execute(
        _scoped(select(AuditLog), user, tenant)
        .where(AuditLog.severity == AuditSeverity.CRITICAL)
        .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .limit(RECENT_CRITICAL_LIMIT)
    )

    return AuditStatsResponse(
        total=sum(by_action.values()),
        by_action=by_action,
        by_severity=by_severity,
        recent_critical=[AuditLogResponse.model_validate(entry) for entry in critical.scalars().all()],
    )
