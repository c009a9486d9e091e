"""
Permission Tests

Default grant sets, grant matching and tenant scope resolution.
"""

import pytest

from app.core.errors import ForbiddenError
from app.features.permissions.defaults import DEFAULT_PERMISSION_TABLE, DEFAULT_PERMISSIONS
from app.features.permissions.dependencies import grant_allows, has_permission, resolve_tenant, visible_tenants
from app.features.roles.hierarchy import Role, RoleScope
from app.features.users.models import User


def _account(role: Role, scope: RoleScope, tenant_id: str = "A", managed=None) -> User:
    return User(
        id=f"{role.value}-id",
        tenant_id=tenant_id,
        role=role,
        role_scope=scope,
        managed_tenants=managed or [],
        permissions=DEFAULT_PERMISSION_TABLE.defaults_for(role),
    )


# ==================== Defaults ====================


def test_every_role_has_defaults():
    assert set(DEFAULT_PERMISSIONS) == set(Role)
    for role in Role:
        assert DEFAULT_PERMISSION_TABLE.defaults_for(role)


def test_defaults_are_fresh_copies():
    first = DEFAULT_PERMISSION_TABLE.defaults_for(Role.TEACHER)
    first[0]["actions"].append("delete")
    first.append({"resource": "system", "actions": ["manage"]})

    second = DEFAULT_PERMISSION_TABLE.defaults_for(Role.TEACHER)
    assert "delete" not in second[0]["actions"]
    assert all(g["resource"] != "system" for g in second)


def test_grant_shape():
    grant = DEFAULT_PERMISSION_TABLE.defaults_for(Role.STUDENT)[0]
    assert set(grant) == {"resource", "actions", "scope", "conditions"}
    assert grant["scope"] == "own"
    assert grant["actions"] == sorted(grant["actions"])


# ==================== Grant Matching ====================


def test_grant_allows_exact_action():
    grant = {"resource": "class", "actions": ["read"]}
    assert grant_allows(grant, "class", "read")
    assert not grant_allows(grant, "class", "delete")
    assert not grant_allows(grant, "grade", "read")


def test_manage_implies_every_action():
    grant = {"resource": "grade", "actions": ["manage"]}
    assert grant_allows(grant, "grade", "delete")
    assert not grant_allows(grant, "class", "delete")


def test_system_manage_covers_everything():
    grant = {"resource": "system", "actions": ["manage"]}
    assert grant_allows(grant, "audit", "read")
    assert grant_allows(grant, "anything", "whatever")


def test_has_permission_by_role():
    assert has_permission(_account(Role.SUPER_ADMIN, RoleScope.GLOBAL), "class", "delete")
    assert has_permission(_account(Role.ADMIN, RoleScope.TENANT), "class", "create")
    assert not has_permission(_account(Role.ADMIN, RoleScope.TENANT), "audit", "read")
    assert has_permission(_account(Role.TEACHER, RoleScope.TENANT), "grade", "update")
    assert not has_permission(_account(Role.TEACHER, RoleScope.TENANT), "grade", "delete")
    assert not has_permission(_account(Role.STUDENT, RoleScope.TENANT), "class", "read")


# ==================== Tenant Scope ====================


def test_resolve_tenant_defaults_to_own():
    user = _account(Role.ADMIN, RoleScope.TENANT)
    assert resolve_tenant(user) == "A"
    assert resolve_tenant(user, "A") == "A"


def test_tenant_scope_cannot_leave_own_tenant():
    with pytest.raises(ForbiddenError):
        resolve_tenant(_account(Role.ADMIN, RoleScope.TENANT), "B")


def test_limited_scope_reaches_managed_tenants():
    user = _account(Role.MANAGER, RoleScope.LIMITED, managed=["B"])
    assert resolve_tenant(user, "B") == "B"
    with pytest.raises(ForbiddenError):
        resolve_tenant(user, "C")


def test_global_scope_reaches_any_tenant():
    assert resolve_tenant(_account(Role.SUPER_ADMIN, RoleScope.GLOBAL), "Z") == "Z"


def test_visible_tenants():
    assert visible_tenants(_account(Role.SUPER_ADMIN, RoleScope.GLOBAL)) is None
    assert list(visible_tenants(_account(Role.MANAGER, RoleScope.LIMITED, managed=["B", "C"]))) == ["A", "B", "C"]
    assert list(visible_tenants(_account(Role.TEACHER, RoleScope.TENANT))) == ["A"]
