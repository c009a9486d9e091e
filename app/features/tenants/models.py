"""
Tenant models.

A tenant is one school: an isolated partition that every account, class and
grade sheet belongs to.
"""
from sqlalchemy import String, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, TimestampMixin, generate_ulid


class Tenant(Base, TimestampMixin):
    """
    Tenant (school) model.
    
    Accounts reference tenants by id; logins may name the tenant by id or by
    subdomain.
    """
    __tablename__ = "tenants"
    
    # Primary key using ULID
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    subdomain: Mapped[str] = mapped_column(String(63), unique=True, nullable=False, index=True)
    
    # Optional contact details
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, subdomain={self.subdomain!r})>"
