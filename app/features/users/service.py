"""
User service: login, credential changes and tenant-scoped account admin.

Role changes and account creation live in RoleManagementService.
"""
import math
from datetime import timedelta
from typing import Optional, Sequence
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.core.errors import BadRequestError, ForbiddenError, LockedError, NotFoundError, UnauthorizedError
from app.features.audit.models import AuditAction, AuditResource, AuditSeverity
from app.features.audit.sink import AuditEntry, AuditRecorder, AuditSink, RequestMeta
from app.features.permissions.dependencies import resolve_tenant, visible_tenants
from app.features.roles.hierarchy import Role
from app.features.tenants.dependencies import find_active_tenant
from app.features.users.auth import (
    create_access_token,
    generate_reset_token,
    hash_password,
    hash_reset_token,
    verify_password,
)
from app.features.users.models import User
from app.features.users.schemas import UserUpdate
from app.utils import get_logger, utcnow


log = get_logger(__name__)

STAFF_ROLES = frozenset({Role.SUPER_ADMIN, Role.MANAGER, Role.ADMIN, Role.TENANT_ADMIN})


class UserService:
    """Account operations bound to one database session."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditRecorder] = None, meta: RequestMeta = RequestMeta()):
        self.db = db
        self.audit = audit or AuditRecorder(AuditSink(db))
        self.meta = meta

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def authenticate(self, email: str, password: str, tenant: Optional[str] = None) -> tuple[User, str]:
        """
        Verify credentials and issue an access token.

        Five consecutive failures lock the account for LOCK_TIME_HOURS; a
        successful login or an expired lock resets the counter.

        Raises:
            BadRequestError: unknown tenant, or email ambiguous without tenant
            UnauthorizedError: wrong credentials or deactivated account
            LockedError: account currently locked
        """
        query = select(User).where(User.email == email.lower())
        if tenant:
            tenant_obj = await find_active_tenant(self.db, tenant)
            if tenant_obj is None:
                raise BadRequestError("Invalid or inactive tenant")
            query = query.where(User.tenant_id == tenant_obj.id)

        result = await self.db.execute(query)
        matches = result.scalars().all()
        if len(matches) > 1:
            raise BadRequestError("Tenant must be specified for this email address")
        user = matches[0] if matches else None

        if user is None:
            raise UnauthorizedError("Invalid email or password")
        if not user.is_active:
            raise UnauthorizedError("Your account has been deactivated")

        now = utcnow()
        if user.is_locked(now):
            raise LockedError("Account temporarily locked due to too many failed login attempts")

        if not verify_password(password, user.password_hash):
            await self._register_failed_login(user)
            raise UnauthorizedError("Invalid email or password")

        was_locked = user.lock_until is not None
        user.login_attempts = 0
        user.lock_until = None
        user.last_login_at = now
        await self.db.commit()
        await self.db.refresh(user)

        log.info(f"User {user.id} logged in")
        if was_locked:
            await self._audit_auth(user, AuditAction.ACCOUNT_UNLOCKED, AuditSeverity.LOW)
        await self._audit_auth(user, AuditAction.LOGIN, AuditSeverity.LOW)

        return user, create_access_token(user.id, user.tenant_id, user.role.value)

    async def _register_failed_login(self, user: User) -> None:
        now = utcnow()
        if user.lock_until is not None and user.lock_until <= now:
            # Previous lock expired, restart counting
            user.lock_until = None
            user.login_attempts = 1
        else:
            user.login_attempts += 1

        locked_now = False
        if user.login_attempts >= config.MAX_LOGIN_ATTEMPTS and not user.is_locked(now):
            user.lock_until = now + timedelta(hours=config.LOCK_TIME_HOURS)
            locked_now = True

        await self.db.commit()

        if locked_now:
            log.warning(f"User {user.id} locked after {user.login_attempts} failed logins")
            await self._audit_auth(
                user, AuditAction.ACCOUNT_LOCKED, AuditSeverity.MEDIUM,
                {"attempts": user.login_attempts},
            )
        else:
            log.warning(f"Failed login for user {user.id} ({user.login_attempts} attempts)")

    async def change_password(self, user: User, current_password: str, new_password: str) -> str:
        """Change the password and return a token issued after the change."""
        if not verify_password(current_password, user.password_hash):
            raise BadRequestError("Current password is incorrect")

        self._set_password(user, new_password)
        await self.db.commit()
        await self.db.refresh(user)

        log.info(f"User {user.id} changed password")
        return create_access_token(user.id, user.tenant_id, user.role.value)

    async def forgot_password(self, email: str, tenant: Optional[str] = None) -> str:
        """Issue a password reset token; only its digest is stored."""
        query = select(User).where(User.email == email.lower())
        if tenant:
            tenant_obj = await find_active_tenant(self.db, tenant)
            if tenant_obj is None:
                raise BadRequestError("Invalid or inactive tenant")
            query = query.where(User.tenant_id == tenant_obj.id)

        result = await self.db.execute(query)
        user = result.scalars().first()
        if user is None:
            raise NotFoundError("No user found with that email address")

        raw, digest = generate_reset_token()
        user.password_reset_token = digest
        user.password_reset_expires = utcnow() + timedelta(minutes=config.PASSWORD_RESET_EXPIRES_MINUTES)
        await self.db.commit()

        log.info(f"Password reset requested for user {user.id}")
        return raw

    async def reset_password(self, token: str, new_password: str) -> User:
        result = await self.db.execute(
            select(User).where(
                User.password_reset_token == hash_reset_token(token),
                User.password_reset_expires > utcnow(),
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise BadRequestError("Token is invalid or has expired")

        self._set_password(user, new_password)
        user.password_reset_token = None
        user.password_reset_expires = None
        user.login_attempts = 0
        user.lock_until = None
        await self.db.commit()
        await self.db.refresh(user)

        await self._audit_auth(user, AuditAction.PASSWORD_RESET, AuditSeverity.MEDIUM)
        return user

    @staticmethod
    def _set_password(user: User, new_password: str) -> None:
        user.password_hash = hash_password(new_password)
        # One second back so a token issued right after the change stays valid
        user.password_changed_at = utcnow() - timedelta(seconds=1)

    # ------------------------------------------------------------------
    # Account administration
    # ------------------------------------------------------------------

    async def update_profile(self, user: User, update_data: UserUpdate) -> User:
        for field, value in update_data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(user, field, value)
        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def list_users(
        self,
        actor: User,
        tenant: Optional[str] = None,
        role: Optional[Role] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[Sequence[User], int]:
        """Accounts visible to `actor`, newest first, with the total count."""
        query = select(User)
        if tenant is not None:
            query = query.where(User.tenant_id == resolve_tenant(actor, tenant))
        else:
            tenant_ids = visible_tenants(actor)
            if tenant_ids is not None:
                query = query.where(User.tenant_id.in_(list(tenant_ids)))

        if role is not None:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            ))

        total = (await self.db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
        result = await self.db.execute(
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        return result.scalars().all(), total

    async def get_visible_user(self, actor: User, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise NotFoundError("User not found")
        tenant_ids = visible_tenants(actor)
        if tenant_ids is not None and user.tenant_id not in tenant_ids:
            # Do not reveal accounts of other tenants
            raise NotFoundError("User not found")
        return user

    async def toggle_status(self, actor: User, user_id: str) -> User:
        user = await self.get_visible_user(actor, user_id)
        if user.id == actor.id:
            raise BadRequestError("Cannot change the status of your own account")
        self._require_seniority(actor, user)

        user.is_active = not user.is_active
        await self.db.commit()
        await self.db.refresh(user)
        log.info(f"User {actor.id} set {user.id} active={user.is_active}")
        return user

    async def deactivate(self, actor: User, user_id: str) -> None:
        """Soft delete: the row stays, the account can no longer log in."""
        user = await self.get_visible_user(actor, user_id)
        if user.id == actor.id:
            raise BadRequestError("Cannot deactivate your own account")
        self._require_seniority(actor, user)

        user.is_active = False
        await self.db.commit()

        await self.audit.record(AuditEntry(
            actor_id=actor.id,
            action=AuditAction.DELETE_USER,
            target_id=user.id,
            resource=AuditResource.USER,
            tenant_id=user.tenant_id,
            severity=AuditSeverity.HIGH if user.role in STAFF_ROLES else AuditSeverity.MEDIUM,
            details={"deleted_role": user.role.value},
            ip_address=self.meta.ip_address,
            user_agent=self.meta.user_agent,
        ))

    @staticmethod
    def _require_seniority(actor: User, target: User) -> None:
        if target.role_level >= actor.role_level and actor.role != Role.SUPER_ADMIN:
            raise ForbiddenError("Cannot modify accounts at or above your own level")

    async def _audit_auth(self, user: User, action: AuditAction, severity: AuditSeverity, details: Optional[dict] = None) -> None:
        await self.audit.record(AuditEntry(
            actor_id=user.id,
            action=action,
            target_id=user.id,
            resource=AuditResource.AUTH,
            tenant_id=user.tenant_id,
            severity=severity,
            details=details or {},
            ip_address=self.meta.ip_address,
            user_agent=self.meta.user_agent,
        ))


def page_count(total: int, page_size: int) -> int:
    return math.ceil(total / page_size) if page_size else 0
