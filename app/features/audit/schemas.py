"""
Pydantic schemas for audit log responses.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict

from app.features.audit.models import AuditAction, AuditResource, AuditSeverity


class AuditLogResponse(BaseModel):
    id: str
    actor_id: str
    target_id: Optional[str] = None
    action: AuditAction
    resource: Optional[AuditResource] = None
    severity: AuditSeverity
    tenant_id: str
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    timestamp: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListResponse(BaseModel):
    """Paginated audit log listing."""
    items: List[AuditLogResponse]
    total: int
    page: int
    page_size: int
    pages: int


class AuditStatsResponse(BaseModel):
    """Totals by action and severity plus the latest critical entries."""
    total: int
    by_action: Dict[str, int]
    by_severity: Dict[str, int]
    recent_critical: List[AuditLogResponse]
