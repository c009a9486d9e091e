"""
Default permission grants per role.

Accounts receive the full default set for their role whenever the role is set
or changed; there are no partial or custom grants.
"""
import enum
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping, Optional

from app.features.roles.hierarchy import Role


class GrantScope(str, enum.Enum):
    GLOBAL = "global"
    TENANT = "tenant"
    OWN = "own"


@dataclass(frozen=True)
class PermissionGrant:
    """One (resource, actions, scope) grant."""
    name: str
    resource: str
    actions: frozenset[str]
    scope: GrantScope
    conditions: Optional[Mapping[str, Any]] = None
    
    def to_dict(self) -> dict[str, Any]:
        """Shape stored on the account row."""
        return {
            "resource": self.resource,
            "actions": sorted(self.actions),
            "scope": self.scope.value,
            "conditions": dict(self.conditions) if self.conditions is not None else None,
        }


def _grant(name: str, resource: str, actions: list[str], scope: GrantScope) -> PermissionGrant:
    return PermissionGrant(name=name, resource=resource, actions=frozenset(actions), scope=scope)


G, T, O = GrantScope.GLOBAL, GrantScope.TENANT, GrantScope.OWN

DEFAULT_PERMISSIONS: Mapping[Role, tuple[PermissionGrant, ...]] = MappingProxyType({
    Role.SUPER_ADMIN: (
        _grant("manage_all", "system", ["create", "read", "update", "delete", "manage"], G),
        _grant("manage_users", "user", ["create", "read", "update", "delete"], G),
        _grant("manage_tenants", "tenant", ["create", "read", "update", "delete"], G),
        _grant("view_audit_logs", "audit", ["read", "export"], G),
    ),
    Role.MANAGER: (
        _grant("manage_assigned_tenants", "tenant", ["read", "update"], T),
        _grant("manage_tenant_users", "user", ["create", "read", "update", "delete"], T),
        _grant("view_tenant_reports", "report", ["read", "export"], T),
        _grant("view_tenant_audit", "audit", ["read"], T),
    ),
    Role.ADMIN: (
        _grant("manage_tenant_users", "user", ["create", "read", "update"], T),
        _grant("manage_students", "student", ["create", "read", "update", "delete"], T),
        _grant("manage_teachers", "teacher", ["create", "read", "update"], T),
        _grant("manage_classes", "class", ["create", "read", "update", "delete"], T),
        _grant("view_reports", "report", ["read", "export"], T),
    ),
    Role.TENANT_ADMIN: (
        _grant("manage_tenant_admins", "user", ["create", "read", "update"], T),
        _grant("manage_students", "student", ["create", "read", "update", "delete"], T),
        _grant("manage_teachers", "teacher", ["create", "read", "update", "delete"], T),
        _grant("manage_classes", "class", ["create", "read", "update", "delete"], T),
        _grant("manage_grades", "grade", ["create", "read", "update", "delete"], T),
        _grant("view_tenant_audit", "audit", ["read"], T),
        _grant("view_all_reports", "report", ["read", "export"], T),
        _grant("manage_fees", "fee", ["create", "read", "update", "delete"], T),
    ),
    Role.TEACHER: (
        _grant("view_assigned_classes", "class", ["read"], O),
        _grant("manage_attendance", "attendance", ["create", "read", "update"], O),
        _grant("manage_grades", "grade", ["create", "read", "update"], O),
        _grant("view_students", "student", ["read"], O),
        _grant("manage_exams", "exam", ["create", "read", "update"], O),
    ),
    Role.STUDENT: (
        _grant("view_own_profile", "user", ["read", "update"], O),
        _grant("view_own_grades", "grade", ["read"], O),
        _grant("view_own_attendance", "attendance", ["read"], O),
        _grant("view_timetable", "timetable", ["read"], O),
        _grant("view_own_fees", "fee", ["read"], O),
    ),
    Role.PARENT: (
        _grant("view_child_profile", "student", ["read"], O),
        _grant("view_child_grades", "grade", ["read"], O),
        _grant("view_child_attendance", "attendance", ["read"], O),
        _grant("view_child_fees", "fee", ["read"], O),
    ),
})


@dataclass(frozen=True)
class PermissionTable:
    """Lookup of the default grant set for a role."""
    grants: Mapping[Role, tuple[PermissionGrant, ...]]
    
    def defaults_for(self, role: Role) -> list[dict[str, Any]]:
        """Fresh, serializable copies of the role's default grants."""
        return [grant.to_dict() for grant in self.grants.get(Role(role), ())]


DEFAULT_PERMISSION_TABLE = PermissionTable(grants=DEFAULT_PERMISSIONS)
