"""
Audit writing.

Two layers:
- AuditSink persists one entry in its own session and raises on failure.
- AuditRecorder is what services call after their own write has committed.
  It never raises; failures go to the log.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.features.audit.models import AuditLog, AuditAction, AuditResource, AuditSeverity
from app.utils import get_logger


log = get_logger(__name__)


@dataclass(frozen=True)
class AuditEntry:
    """Immutable description of one privileged action."""
    actor_id: str
    action: AuditAction
    tenant_id: str
    severity: AuditSeverity = AuditSeverity.LOW
    target_id: Optional[str] = None
    resource: Optional[AuditResource] = None
    details: Dict[str, Any] = field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditSink:
    """
    Persists audit entries in the audit_logs table.
    
    Entries are written through a separate session bound to the engine of
    `db`. A failed write leaves the request session and its objects untouched.
    """
    
    def __init__(self, db: AsyncSession):
        self.sessions = async_sessionmaker(db.bind, class_=AsyncSession, expire_on_commit=False)
    
    async def append(self, entry: AuditEntry) -> AuditLog:
        audit_log = AuditLog(
            actor_id=entry.actor_id,
            action=entry.action,
            target_id=entry.target_id,
            resource=entry.resource,
            tenant_id=entry.tenant_id,
            severity=entry.severity,
            details=dict(entry.details),
            ip_address=entry.ip_address,
            user_agent=entry.user_agent,
        )
        async with self.sessions() as session:
            session.add(audit_log)
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        
        log.info(
            f"Audit: actor={entry.actor_id} action={entry.action.value} "
            f"target={entry.target_id} tenant={entry.tenant_id} severity={entry.severity.value}"
        )
        return audit_log


class AuditRecorder:
    """
    Best-effort audit side channel.
    
    Call record() only after the primary mutation has been committed. A failed
    write is logged with its traceback; the caller's result is unaffected.
    """
    
    def __init__(self, sink: AuditSink):
        self.sink = sink
    
    async def record(self, entry: AuditEntry) -> Optional[AuditLog]:
        try:
            return await self.sink.append(entry)
        except Exception:
            log.exception(
                f"Failed to write audit entry action={entry.action.value} "
                f"actor={entry.actor_id} target={entry.target_id} tenant={entry.tenant_id}"
            )
            return None


@dataclass(frozen=True)
class RequestMeta:
    """Client details attached to audit entries."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    
    @classmethod
    def from_request(cls, request) -> "RequestMeta":
        return cls(
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )
