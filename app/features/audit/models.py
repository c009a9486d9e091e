"""
Audit log model.

Rows are written once and never updated or deleted by the application.
"""
import enum
from datetime import datetime
from typing import Any, Dict
from sqlalchemy import String, JSON, DateTime, Index, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, generate_ulid
from app.utils import utcnow


class AuditAction(str, enum.Enum):
    CREATE_USER = "create_user"
    UPDATE_ROLE = "update_role"
    DELETE_USER = "delete_user"
    LOGIN = "login"
    LOGOUT = "logout"
    PASSWORD_RESET = "password_reset"
    ACCOUNT_LOCKED = "account_locked"
    ACCOUNT_UNLOCKED = "account_unlocked"
    PERMISSION_DENIED = "permission_denied"
    TENANT_ACCESS_VIOLATION = "tenant_access_violation"


class AuditResource(str, enum.Enum):
    USER = "user"
    ROLE = "role"
    TENANT = "tenant"
    PERMISSION = "permission"
    AUTH = "auth"
    SYSTEM = "system"


class AuditSeverity(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class AuditLog(Base):
    """
    Audit log entry: who did what to whom, in which tenant, and how severe it is.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_tenant_timestamp", "tenant_id", "timestamp"),
        Index("ix_audit_logs_actor_timestamp", "actor_id", "timestamp"),
    )
    
    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Actor and target
    actor_id: Mapped[str] = mapped_column(String(26), nullable=False, index=True)
    target_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    
    # Action details
    action: Mapped[AuditAction] = mapped_column(
        SQLEnum(AuditAction, native_enum=False, length=40, values_callable=_enum_values),
        nullable=False,
        index=True
    )
    resource: Mapped[AuditResource | None] = mapped_column(
        SQLEnum(AuditResource, native_enum=False, length=20, values_callable=_enum_values),
        nullable=True,
        index=True
    )
    severity: Mapped[AuditSeverity] = mapped_column(
        SQLEnum(AuditSeverity, native_enum=False, length=10, values_callable=_enum_values),
        default=AuditSeverity.LOW,
        nullable=False,
        index=True
    )
    
    # Context
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(255), nullable=True)
    
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False, index=True)
    
    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, actor_id={self.actor_id}, action={self.action.value}, severity={self.severity.value})>"
