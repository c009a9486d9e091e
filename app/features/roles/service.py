"""
Role management service.

Policy-checked account creation and role changes. The role tables and
default grants are injected, the audit trail is written after the account
write has committed and never affects the result.
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, InternalError, NotFoundError
from app.features.audit.models import AuditAction, AuditResource, AuditSeverity
from app.features.audit.sink import AuditEntry, AuditRecorder, AuditSink, RequestMeta
from app.features.permissions.defaults import DEFAULT_PERMISSION_TABLE, PermissionTable
from app.features.roles.hierarchy import DEFAULT_HIERARCHY, Role, RoleHierarchy, RoleScope
from app.features.users.auth import hash_password
from app.features.users.models import User
from app.features.users.schemas import AccountCreate
from app.utils import get_logger


log = get_logger(__name__)

SENSITIVE_ROLES = frozenset({Role.SUPER_ADMIN, Role.MANAGER})


def creation_severity(role: Role) -> AuditSeverity:
    return AuditSeverity.HIGH if role in SENSITIVE_ROLES else AuditSeverity.MEDIUM


def role_change_severity(new_role: Role) -> AuditSeverity:
    return AuditSeverity.CRITICAL if new_role in SENSITIVE_ROLES else AuditSeverity.HIGH


class RoleManagementService:
    """
    Role policy engine bound to one database session.

    Usage:
        service = RoleManagementService(db)
        account = await service.create_account_with_role(actor.id, data)
    """

    def __init__(
        self,
        db: AsyncSession,
        hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
        permission_table: PermissionTable = DEFAULT_PERMISSION_TABLE,
        audit: Optional[AuditRecorder] = None,
        meta: RequestMeta = RequestMeta(),
    ):
        self.db = db
        self.hierarchy = hierarchy
        self.permission_table = permission_table
        self.audit = audit or AuditRecorder(AuditSink(db))
        self.meta = meta

    # ------------------------------------------------------------------
    # Pure policy
    # ------------------------------------------------------------------

    def can_assign(self, actor_role: Role, target_role: Role) -> bool:
        return self.hierarchy.can_assign(actor_role, target_role)

    def resolve_scope(self, role: Role) -> RoleScope:
        return self.hierarchy.resolve_scope(role)

    def apply_role(self, account: User, role: Role) -> None:
        """Set role together with its level, scope and default grants."""
        account.role = role
        account.role_level = self.hierarchy.level(role)
        account.role_scope = self.hierarchy.resolve_scope(role)
        account.permissions = self.permission_table.defaults_for(role)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get_account(self, account_id: str) -> Optional[User]:
        try:
            result = await self.db.execute(select(User).where(User.id == account_id))
        except SQLAlchemyError as e:
            log.exception(f"Failed to load user {account_id}")
            raise InternalError("Failed to load user") from e
        return result.scalar_one_or_none()

    async def available_roles(self, actor_id: str) -> frozenset[Role]:
        actor = await self.get_account(actor_id)
        if actor is None:
            raise NotFoundError("User not found")
        return self.hierarchy.assignable_roles(actor.role)

    async def create_account_with_role(self, actor_id: str, data: AccountCreate) -> User:
        """
        Create an account on behalf of `actor_id`.

        Raises:
            NotFoundError: actor does not exist
            ForbiddenError: role not assignable by the actor, or tenant outside its scope
            BadRequestError: global super admin did not name a tenant
            ConflictError: email already used in the tenant
        """
        actor = await self.get_account(actor_id)
        if actor is None:
            raise NotFoundError("Creator user not found")

        if not self.can_assign(actor.role, data.role):
            log.info(f"User {actor.id} ({actor.role.value}) refused creating {data.role.value}")
            raise ForbiddenError(
                f"Insufficient permissions. {actor.role.value} cannot create {data.role.value}"
            )

        tenant_id = data.tenant_id
        if not tenant_id:
            if actor.role_scope == RoleScope.GLOBAL and actor.role == Role.SUPER_ADMIN:
                raise BadRequestError("Tenant must be specified for user creation")
            tenant_id = actor.tenant_id

        if actor.role_scope == RoleScope.TENANT and tenant_id != actor.tenant_id:
            raise ForbiddenError("Cannot create users in other tenants")

        if actor.role_scope == RoleScope.LIMITED and tenant_id not in (actor.managed_tenants or []):
            raise ForbiddenError("Cannot create users in unmanaged tenants")

        existing = await self.db.execute(
            select(User.id).where(User.tenant_id == tenant_id, User.email == data.email)
        )
        if existing.first() is not None:
            raise ConflictError("User with this email already exists in this tenant")

        account = User(
            tenant_id=tenant_id,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            password_hash=hash_password(data.password),
            created_by_id=actor.id,
            managed_tenants=list(data.managed_tenants or []),
        )
        self.apply_role(account, data.role)

        self.db.add(account)
        await self._commit("create user")
        await self.db.refresh(account)

        log.info(f"User {actor.id} created {account.id} as {data.role.value} in tenant {tenant_id}")

        await self.audit.record(AuditEntry(
            actor_id=actor.id,
            action=AuditAction.CREATE_USER,
            target_id=account.id,
            resource=AuditResource.USER,
            tenant_id=tenant_id,
            severity=creation_severity(data.role),
            details={"new_role": data.role.value, "tenant": tenant_id},
            ip_address=self.meta.ip_address,
            user_agent=self.meta.user_agent,
        ))
        return account

    async def update_account_role(self, actor_id: str, target_id: str, new_role: Role) -> User:
        """
        Move `target_id` to `new_role`, replacing its grants with the role defaults.

        Raises:
            NotFoundError: actor or target does not exist
            ForbiddenError: role not assignable by the actor, or target in another tenant
        """
        actor = await self.get_account(actor_id)
        target = await self.get_account(target_id)
        if actor is None or target is None:
            raise NotFoundError("User not found")

        if not self.can_assign(actor.role, new_role):
            log.info(f"User {actor.id} ({actor.role.value}) refused assigning {Role(new_role).value}")
            raise ForbiddenError(
                f"Insufficient permissions. {actor.role.value} cannot assign {Role(new_role).value}"
            )

        if actor.role_scope == RoleScope.TENANT and target.tenant_id != actor.tenant_id:
            raise ForbiddenError("Cannot modify users in other tenants")

        old_role = target.role
        self.apply_role(target, Role(new_role))
        # Only super admins may lack a creator
        if target.role != Role.SUPER_ADMIN and target.created_by_id is None:
            target.created_by_id = actor.id
        await self._commit("update user role")
        await self.db.refresh(target)

        log.info(f"User {actor.id} changed role of {target.id}: {old_role.value} -> {target.role.value}")

        await self.audit.record(AuditEntry(
            actor_id=actor.id,
            action=AuditAction.UPDATE_ROLE,
            target_id=target.id,
            resource=AuditResource.ROLE,
            tenant_id=target.tenant_id,
            severity=role_change_severity(target.role),
            details={"old_role": old_role.value, "new_role": target.role.value},
            ip_address=self.meta.ip_address,
            user_agent=self.meta.user_agent,
        ))
        return target

    async def list_created_by(self, creator_id: str) -> list[User]:
        """Accounts created by `creator_id`, newest first."""
        try:
            result = await self.db.execute(
                select(User)
                .where(User.created_by_id == creator_id)
                .order_by(User.created_at.desc(), User.id.desc())
            )
        except SQLAlchemyError as e:
            log.exception("Failed to list users by creator")
            raise InternalError("Failed to get users by creator") from e
        return list(result.scalars().all())

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError("User with this email already exists in this tenant") from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            log.exception(f"Failed to {operation}")
            raise InternalError(f"Failed to {operation}") from e
