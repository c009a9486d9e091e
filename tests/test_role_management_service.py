"""
Role Management Service Tests

Account creation and role changes against the policy engine, including the
best-effort audit trail.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from app.core.errors import BadRequestError, ConflictError, ForbiddenError, InternalError, NotFoundError
from app.features.audit.models import AuditAction, AuditLog, AuditResource, AuditSeverity
from app.features.audit.sink import AuditRecorder
from app.features.permissions.defaults import DEFAULT_PERMISSION_TABLE
from app.features.roles.hierarchy import Role, RoleScope
from app.features.roles.service import RoleManagementService
from app.features.users.auth import verify_password
from app.features.users.schemas import AccountCreate


class FailingSink:
    """Audit sink whose store is unavailable."""

    def __init__(self):
        self.calls = 0

    async def append(self, entry):
        self.calls += 1
        raise RuntimeError("audit store unavailable")


def _new_account(role: Role, tenant_id=None, email="new.user@greenfield.edu", **extra) -> AccountCreate:
    return AccountCreate(
        first_name="New",
        last_name="User",
        email=email,
        password="s3cure-pass",
        role=role,
        tenant_id=tenant_id,
        **extra,
    )


async def _audit_entries(db_session, action: AuditAction):
    result = await db_session.execute(select(AuditLog).where(AuditLog.action == action))
    return result.scalars().all()


# ==================== createAccountWithRole ====================


@pytest.mark.asyncio
async def test_create_account_success(db_session, admin, tenant):
    service = RoleManagementService(db_session)

    account = await service.create_account_with_role(admin.id, _new_account(Role.TEACHER))

    assert account.tenant_id == tenant.id
    assert account.created_by_id == admin.id
    assert account.role == Role.TEACHER
    assert account.role_level == 1
    assert account.role_scope == RoleScope.TENANT
    assert account.permissions == DEFAULT_PERMISSION_TABLE.defaults_for(Role.TEACHER)
    assert account.managed_tenants == []
    assert account.password_hash != "s3cure-pass"
    assert verify_password("s3cure-pass", account.password_hash)

    entries = await _audit_entries(db_session, AuditAction.CREATE_USER)
    assert len(entries) == 1
    assert entries[0].actor_id == admin.id
    assert entries[0].target_id == account.id
    assert entries[0].resource == AuditResource.USER
    assert entries[0].severity == AuditSeverity.MEDIUM
    assert entries[0].details == {"new_role": "teacher", "tenant": tenant.id}


@pytest.mark.asyncio
async def test_create_sensitive_role_is_high_severity(db_session, super_admin, tenant):
    service = RoleManagementService(db_session)

    account = await service.create_account_with_role(
        super_admin.id, _new_account(Role.MANAGER, tenant_id=tenant.id, managed_tenants=["A", "B"])
    )

    assert account.role_scope == RoleScope.LIMITED
    assert account.managed_tenants == ["A", "B"]
    entries = await _audit_entries(db_session, AuditAction.CREATE_USER)
    assert [e.severity for e in entries] == [AuditSeverity.HIGH]


@pytest.mark.asyncio
async def test_create_with_unknown_actor(db_session):
    service = RoleManagementService(db_session)
    with pytest.raises(NotFoundError, match="Creator user not found"):
        await service.create_account_with_role("01HZZZZZZZZZZZZZZZZZZZZZZZ", _new_account(Role.STUDENT))


@pytest.mark.asyncio
async def test_create_role_not_assignable(db_session, admin):
    service = RoleManagementService(db_session)
    with pytest.raises(ForbiddenError, match="admin cannot create admin"):
        await service.create_account_with_role(admin.id, _new_account(Role.ADMIN))


@pytest.mark.asyncio
async def test_super_admin_must_name_tenant(db_session, super_admin):
    service = RoleManagementService(db_session)
    with pytest.raises(BadRequestError):
        await service.create_account_with_role(super_admin.id, _new_account(Role.MANAGER))


@pytest.mark.asyncio
async def test_tenant_scope_cannot_create_elsewhere(db_session, tenant_admin, other_tenant):
    service = RoleManagementService(db_session)
    with pytest.raises(ForbiddenError):
        await service.create_account_with_role(
            tenant_admin.id, _new_account(Role.TEACHER, tenant_id=other_tenant.id)
        )


@pytest.mark.asyncio
async def test_manager_limited_to_managed_tenants(db_session, make_user, tenant, super_admin):
    manager = await make_user(
        Role.MANAGER, tenant.id, email="regional@greenfield.edu",
        created_by=super_admin, managed_tenants=["A", "B"],
    )
    service = RoleManagementService(db_session)

    with pytest.raises(ForbiddenError):
        await service.create_account_with_role(manager.id, _new_account(Role.ADMIN, tenant_id="C"))

    account = await service.create_account_with_role(manager.id, _new_account(Role.ADMIN, tenant_id="B"))
    assert account.tenant_id == "B"


@pytest.mark.asyncio
async def test_duplicate_email_in_tenant(db_session, admin, student):
    service = RoleManagementService(db_session)
    with pytest.raises(ConflictError):
        await service.create_account_with_role(admin.id, _new_account(Role.STUDENT, email=student.email))


@pytest.mark.asyncio
async def test_same_email_in_other_tenant(db_session, super_admin, student, other_tenant):
    service = RoleManagementService(db_session)
    account = await service.create_account_with_role(
        super_admin.id, _new_account(Role.STUDENT, tenant_id=other_tenant.id, email=student.email)
    )
    assert account.tenant_id == other_tenant.id


@pytest.mark.asyncio
async def test_audit_failure_does_not_abort_creation(db_session, admin):
    sink = FailingSink()
    recorder = AuditRecorder(sink)
    service = RoleManagementService(db_session, audit=recorder)

    account = await service.create_account_with_role(admin.id, _new_account(Role.PARENT))

    assert account.id is not None
    assert await service.get_account(account.id) is account
    assert sink.calls == 1
    assert await _audit_entries(db_session, AuditAction.CREATE_USER) == []


# ==================== updateAccountRole ====================


@pytest.mark.asyncio
async def test_tenant_admin_promotes_teacher_to_admin(db_session, tenant_admin, teacher):
    service = RoleManagementService(db_session)

    updated = await service.update_account_role(tenant_admin.id, teacher.id, Role.ADMIN)

    assert updated.role == Role.ADMIN
    assert updated.role_level == 2
    assert updated.role_scope == RoleScope.TENANT
    entries = await _audit_entries(db_session, AuditAction.UPDATE_ROLE)
    assert len(entries) == 1
    assert entries[0].severity == AuditSeverity.HIGH
    assert entries[0].resource == AuditResource.ROLE
    assert entries[0].details == {"old_role": "teacher", "new_role": "admin"}


@pytest.mark.asyncio
async def test_role_change_discards_custom_grants(db_session, super_admin, teacher):
    teacher.permissions = [{"resource": "system", "actions": ["manage"], "scope": "global", "conditions": None}]
    await db_session.commit()
    service = RoleManagementService(db_session)

    updated = await service.update_account_role(super_admin.id, teacher.id, Role.STUDENT)

    assert updated.permissions == DEFAULT_PERMISSION_TABLE.defaults_for(Role.STUDENT)


@pytest.mark.asyncio
async def test_promotion_to_manager_is_critical(db_session, super_admin, admin):
    service = RoleManagementService(db_session)

    updated = await service.update_account_role(super_admin.id, admin.id, Role.MANAGER)

    assert updated.role_scope == RoleScope.LIMITED
    entries = await _audit_entries(db_session, AuditAction.UPDATE_ROLE)
    assert entries[0].severity == AuditSeverity.CRITICAL


@pytest.mark.asyncio
async def test_update_missing_target(db_session, admin):
    service = RoleManagementService(db_session)
    with pytest.raises(NotFoundError):
        await service.update_account_role(admin.id, "missing", Role.TEACHER)


@pytest.mark.asyncio
async def test_update_role_not_assignable(db_session, admin, teacher):
    service = RoleManagementService(db_session)
    with pytest.raises(ForbiddenError):
        await service.update_account_role(admin.id, teacher.id, Role.TENANT_ADMIN)


@pytest.mark.asyncio
async def test_update_across_tenants(db_session, other_admin, teacher):
    service = RoleManagementService(db_session)
    with pytest.raises(ForbiddenError):
        await service.update_account_role(other_admin.id, teacher.id, Role.STUDENT)


@pytest.mark.asyncio
async def test_audit_failure_does_not_abort_role_change(db_session, tenant_admin, teacher):
    sink = FailingSink()
    service = RoleManagementService(db_session, audit=AuditRecorder(sink))

    updated = await service.update_account_role(tenant_admin.id, teacher.id, Role.ADMIN)

    assert updated.role == Role.ADMIN
    assert sink.calls == 1


@pytest.mark.asyncio
async def test_demoted_root_account_gets_a_creator(db_session, make_user, super_admin, tenant):
    other_root = await make_user(Role.SUPER_ADMIN, tenant.id, email="root2@greenfield.edu")
    assert other_root.created_by_id is None
    service = RoleManagementService(db_session)

    updated = await service.update_account_role(super_admin.id, other_root.id, Role.TEACHER)

    assert updated.role == Role.TEACHER
    assert updated.created_by_id == super_admin.id


@pytest.mark.asyncio
async def test_role_change_keeps_existing_creator(db_session, tenant_admin, admin, teacher):
    service = RoleManagementService(db_session)

    updated = await service.update_account_role(tenant_admin.id, teacher.id, Role.STUDENT)

    assert updated.created_by_id == admin.id


@pytest.mark.asyncio
async def test_store_error_on_lookup_is_internal_error():
    class BrokenSession:
        async def execute(self, statement):
            raise OperationalError("SELECT users", {}, Exception("database is unavailable"))

    service = RoleManagementService(BrokenSession(), audit=AuditRecorder(FailingSink()))

    with pytest.raises(InternalError, match="Failed to load user"):
        await service.update_account_role("actor", "target", Role.TEACHER)


# ==================== availableRoles / listCreatedBy ====================


@pytest.mark.asyncio
async def test_available_roles(db_session, admin, teacher, super_admin):
    service = RoleManagementService(db_session)
    assert await service.available_roles(admin.id) == {Role.TEACHER, Role.STUDENT, Role.PARENT}
    assert await service.available_roles(teacher.id) == frozenset()
    assert await service.available_roles(super_admin.id) == set(Role)


@pytest.mark.asyncio
async def test_available_roles_unknown_actor(db_session):
    with pytest.raises(NotFoundError):
        await RoleManagementService(db_session).available_roles("missing")


@pytest.mark.asyncio
async def test_list_created_by_newest_first(db_session, make_user, admin, tenant, teacher):
    older = await make_user(Role.STUDENT, tenant.id, created_by=admin)
    newer = await make_user(Role.PARENT, tenant.id, created_by=admin)
    base = datetime(2024, 9, 1, 8, 0, 0)
    teacher.created_at = base
    older.created_at = base + timedelta(days=1)
    newer.created_at = base + timedelta(days=2)
    await db_session.commit()

    accounts = await RoleManagementService(db_session).list_created_by(admin.id)

    assert [a.id for a in accounts] == [newer.id, older.id, teacher.id]


@pytest.mark.asyncio
async def test_list_created_by_nobody(db_session, student):
    assert await RoleManagementService(db_session).list_created_by(student.id) == []
