"""
User account model with ULID primary keys.
"""
from datetime import datetime
from typing import Any
from sqlalchemy import String, Boolean, Integer, JSON, DateTime, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid
from app.features.roles.hierarchy import Role, RoleScope


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class User(Base, TimestampMixin):
    """
    School account: staff, students and parents of one tenant.
    
    role_level and role_scope are cached from the role tables and are only
    written together with role (see RoleManagementService).
    """
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    
    # Primary key using ULID (Universally Unique Lexicographically Sortable Identifier)
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    # Tenant the account belongs to
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    
    # User information
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    
    # Role hierarchy
    role: Mapped[Role] = mapped_column(
        SQLEnum(Role, native_enum=False, length=20, values_callable=_enum_values),
        default=Role.STUDENT,
        nullable=False,
        index=True
    )
    role_level: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)
    role_scope: Mapped[RoleScope] = mapped_column(
        SQLEnum(RoleScope, native_enum=False, length=20, values_callable=_enum_values),
        default=RoleScope.TENANT,
        nullable=False,
        index=True
    )
    # Null only for super admins
    created_by_id: Mapped[str | None] = mapped_column(String(26), nullable=True, index=True)
    # Only meaningful for limited scope
    managed_tenants: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    # [{"resource", "actions", "scope", "conditions"}]
    permissions: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    
    # Status flags
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    
    # Credentials bookkeeping (naive UTC)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lock_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    password_reset_token: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    password_reset_expires: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    
    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
    
    def is_locked(self, now: datetime) -> bool:
        return self.lock_until is not None and self.lock_until > now
    
    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r}, role={self.role.value}, tenant={self.tenant_id})>"
