"""
Role levels, scopes and the assignment allow-list.

The tables here are plain immutable values. RoleManagementService receives a
RoleHierarchy instance instead of reading module globals, so tests can build
their own.
"""
import enum
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


class Role(str, enum.Enum):
    """Account roles, ordered by ROLE_LEVELS."""
    SUPER_ADMIN = "super_admin"
    MANAGER = "manager"
    ADMIN = "admin"
    TENANT_ADMIN = "tenant_admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


class RoleScope(str, enum.Enum):
    """Breadth of a role's authority."""
    GLOBAL = "global"      # every tenant
    TENANT = "tenant"      # own tenant only
    LIMITED = "limited"    # own tenant plus managed_tenants


ROLE_LEVELS: Mapping[Role, int] = MappingProxyType({
    Role.STUDENT: 0,
    Role.PARENT: 0,
    Role.TEACHER: 1,
    Role.ADMIN: 2,
    Role.TENANT_ADMIN: 3,
    Role.MANAGER: 4,
    Role.SUPER_ADMIN: 5,
})

ROLE_SCOPES: Mapping[Role, RoleScope] = MappingProxyType({
    Role.SUPER_ADMIN: RoleScope.GLOBAL,
    Role.MANAGER: RoleScope.LIMITED,
    Role.ADMIN: RoleScope.TENANT,
    Role.TENANT_ADMIN: RoleScope.TENANT,
    Role.TEACHER: RoleScope.TENANT,
    Role.STUDENT: RoleScope.TENANT,
    Role.PARENT: RoleScope.TENANT,
})

# Literal allow-list, not derived from levels: tenant_admin may assign admin,
# manager may not assign manager.
ASSIGNABLE_ROLES: Mapping[Role, frozenset[Role]] = MappingProxyType({
    Role.SUPER_ADMIN: frozenset(Role),
    Role.MANAGER: frozenset({
        Role.ADMIN, Role.TENANT_ADMIN, Role.TEACHER, Role.STUDENT, Role.PARENT,
    }),
    Role.TENANT_ADMIN: frozenset({Role.ADMIN, Role.TEACHER, Role.STUDENT, Role.PARENT}),
    Role.ADMIN: frozenset({Role.TEACHER, Role.STUDENT, Role.PARENT}),
    Role.TEACHER: frozenset(),
    Role.STUDENT: frozenset(),
    Role.PARENT: frozenset(),
})

ROLE_DISPLAY_NAMES: Mapping[Role, str] = MappingProxyType({
    Role.SUPER_ADMIN: "Super Administrator",
    Role.MANAGER: "Manager",
    Role.ADMIN: "Administrator",
    Role.TENANT_ADMIN: "School Administrator",
    Role.TEACHER: "Teacher",
    Role.STUDENT: "Student",
    Role.PARENT: "Parent",
})


@dataclass(frozen=True)
class RoleHierarchy:
    """
    Immutable role policy tables.
    
    Every Role must appear in each table; a missing entry is a configuration
    error and fails at construction time.
    """
    levels: Mapping[Role, int] = field(default_factory=lambda: ROLE_LEVELS)
    scopes: Mapping[Role, RoleScope] = field(default_factory=lambda: ROLE_SCOPES)
    assignable: Mapping[Role, frozenset[Role]] = field(default_factory=lambda: ASSIGNABLE_ROLES)
    
    def __post_init__(self):
        for name in ("levels", "scopes", "assignable"):
            missing = set(Role) - set(getattr(self, name))
            if missing:
                raise ValueError(f"Role table {name!r} is missing {sorted(r.value for r in missing)}")
    
    def level(self, role: Role) -> int:
        return self.levels[Role(role)]
    
    def resolve_scope(self, role: Role) -> RoleScope:
        """Scope an account receives when it is given `role`."""
        return self.scopes[Role(role)]
    
    def can_assign(self, actor_role: Role, target_role: Role) -> bool:
        """
        Whether an account holding `actor_role` may create an account with,
        or move an account to, `target_role`.
        """
        return Role(target_role) in self.assignable[Role(actor_role)]
    
    def assignable_roles(self, actor_role: Role) -> frozenset[Role]:
        return self.assignable[Role(actor_role)]


DEFAULT_HIERARCHY = RoleHierarchy()
