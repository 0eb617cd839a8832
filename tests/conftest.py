import os
from collections import Counter
from typing import Dict, List, Optional, Set, Tuple

import pytest

# Set test environment before importing the app
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test_authz.db"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only-32chars!"  # nosec - test-only secret  # noqa: S105
os.environ["PERMISSION_CACHE_TTL"] = "300"

from tenant_authz.features.authorization.cache import PermissionSetCache
from tenant_authz.features.authorization.context import AuthorizationContext
from tenant_authz.features.authorization.exceptions import LookupFailure
from tenant_authz.features.authorization.stores import (
    DepartmentRecord,
    MembershipRecord,
    OrgAssignmentRecord,
    PermissionRecord,
)
from tenant_authz.features.custom_roles.schemas import CustomRolePolicy, parse_permission_map
from tenant_authz.features.permissions.catalog import Scope
from tenant_authz.features.tenants.models import MembershipRole


TENANT = "T1"


class FakeAuthorizationStore:
    """In-memory AuthorizationStore. Lookups named in `failing` raise LookupFailure."""

    def __init__(self):
        self.memberships: Dict[Tuple[str, str], MembershipRecord] = {}
        self.custom_roles: Dict[str, Tuple[str, object, bool]] = {}
        self.role_grants: Dict[Tuple[str, MembershipRole], List[str]] = {}
        self.catalog: List[PermissionRecord] = []
        self.org_assignments: Dict[Tuple[str, str], str] = {}
        self.departments: Dict[str, Optional[str]] = {}
        self.failing: Set[str] = set()
        self.calls: Counter = Counter()

    # -- seeding helpers ----------------------------------------------------

    def add_member(self, user_id, tenant_id=TENANT, role=MembershipRole.MEMBER, custom_role_id=None, active=True):
        self.memberships[(user_id, tenant_id)] = MembershipRecord(
            user_id=user_id,
            tenant_id=tenant_id,
            role=MembershipRole(role),
            custom_role_id=custom_role_id,
            active=active,
        )

    def add_custom_role(self, role_id, permissions, tenant_id=TENANT, active=True):
        self.custom_roles[role_id] = (tenant_id, permissions, active)

    def grant(self, role, *names, tenant_id=TENANT):
        self.role_grants.setdefault((tenant_id, MembershipRole(role)), []).extend(names)

    def add_catalog(self, *names):
        for name in names:
            module = name.rsplit(".", 1)[0]
            self.catalog.append(PermissionRecord(id=f"p-{name}", name=name, module=module))

    def place(self, user_id, department_id, branch_id=None, tenant_id=TENANT):
        self.org_assignments[(user_id, tenant_id)] = department_id
        self.departments.setdefault(department_id, branch_id)

    def _call(self, lookup):
        self.calls[lookup] += 1
        if lookup in self.failing:
            raise LookupFailure(f"{lookup} failed")

    # -- AuthorizationStore -------------------------------------------------

    async def get_membership(self, user_id, tenant_id):
        self._call("get_membership")
        return self.memberships.get((user_id, tenant_id))

    async def get_custom_role(self, custom_role_id):
        self._call("get_custom_role")
        if custom_role_id not in self.custom_roles:
            return None
        tenant_id, raw, active = self.custom_roles[custom_role_id]
        modules = parse_permission_map(raw, role_id=custom_role_id)
        return CustomRolePolicy(id=custom_role_id, tenant_id=tenant_id, active=active, modules=modules)

    async def list_role_permissions(self, tenant_id, role):
        self._call("list_role_permissions")
        names = self.role_grants.get((tenant_id, MembershipRole(role)), [])
        return [PermissionRecord(id=f"p-{n}", name=n, module=n.rsplit(".", 1)[0]) for n in names]

    async def list_all_permissions(self):
        self._call("list_all_permissions")
        return list(self.catalog)

    async def get_org_assignment(self, user_id, tenant_id):
        self._call("get_org_assignment")
        department_id = self.org_assignments.get((user_id, tenant_id))
        if department_id is None:
            return None
        return OrgAssignmentRecord(user_id=user_id, tenant_id=tenant_id, department_id=department_id)

    async def get_department(self, department_id):
        self._call("get_department")
        if department_id not in self.departments:
            return None
        return DepartmentRecord(id=department_id, branch_id=self.departments[department_id])


class FakeAssignmentAuthority:
    """AssignmentAuthority with fixed answers and a call log."""

    def __init__(self):
        self.scopes: Dict[Tuple[str, str, str], Scope] = {}
        self.allowed: Set[Tuple[str, str, str, str]] = set()
        self.failing = False
        self.calls: List[tuple] = []

    async def get_assignment_scope(self, user_id, tenant_id, entity_type):
        self.calls.append(("get_assignment_scope", user_id, tenant_id, entity_type))
        if self.failing:
            raise LookupFailure("authority unavailable")
        return self.scopes.get((user_id, tenant_id, entity_type), Scope.OWN)

    async def can_assign(self, assigner_id, target_user_id, tenant_id, entity_type):
        self.calls.append(("can_assign", assigner_id, target_user_id, tenant_id, entity_type))
        if self.failing:
            raise LookupFailure("authority unavailable")
        return (assigner_id, target_user_id, tenant_id, entity_type) in self.allowed


@pytest.fixture
def store() -> FakeAuthorizationStore:
    return FakeAuthorizationStore()


@pytest.fixture
def authority() -> FakeAssignmentAuthority:
    return FakeAssignmentAuthority()


@pytest.fixture
def cache() -> PermissionSetCache:
    return PermissionSetCache(ttl=300)


@pytest.fixture
def build_context(store, authority):
    """Factory building an AuthorizationContext over the fake collaborators."""

    async def _build(user_id, tenant_id=TENANT, cache=None):
        return await AuthorizationContext.build(user_id, tenant_id, store, authority, cache=cache)

    return _build
