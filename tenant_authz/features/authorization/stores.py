"""
Read-only lookups the resolvers decide over.

`AuthorizationStore` is the collaborator interface; `SqlAlchemyAuthorizationStore`
implements it on the tenant database. Every lookup opens its own short-lived
session so independent lookups can be awaited concurrently.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tenant_authz.features.authorization.exceptions import LookupFailure
from tenant_authz.features.custom_roles.models import CustomRole
from tenant_authz.features.custom_roles.schemas import CustomRolePolicy, parse_permission_map
from tenant_authz.features.organization.models import Department, UserDepartmentAssignment
from tenant_authz.features.permissions.models import Permission, RolePermission
from tenant_authz.features.tenants.models import MembershipRole, TenantMembership
from tenant_authz.utils import get_logger


log = get_logger(__name__)


# ============================================================================
# Snapshots
# ============================================================================

@dataclass(frozen=True)
class MembershipRecord:
    user_id: str
    tenant_id: str
    role: MembershipRole
    custom_role_id: Optional[str] = None
    active: bool = True

    @property
    def is_admin(self) -> bool:
        return MembershipRole(self.role).is_admin


@dataclass(frozen=True)
class PermissionRecord:
    id: str
    name: str
    module: str
    description: Optional[str] = None


@dataclass(frozen=True)
class OrgAssignmentRecord:
    user_id: str
    tenant_id: str
    department_id: str


@dataclass(frozen=True)
class DepartmentRecord:
    id: str
    branch_id: Optional[str] = None


# ============================================================================
# Collaborator interface
# ============================================================================

class AuthorizationStore(Protocol):
    """Lookups consumed by the resolvers. Implementations raise LookupFailure on I/O errors."""

    async def get_membership(self, user_id: str, tenant_id: str) -> Optional[MembershipRecord]: ...

    async def get_custom_role(self, custom_role_id: str) -> Optional[CustomRolePolicy]: ...

    async def list_role_permissions(self, tenant_id: str, role: MembershipRole) -> List[PermissionRecord]: ...

    async def list_all_permissions(self) -> List[PermissionRecord]: ...

    async def get_org_assignment(self, user_id: str, tenant_id: str) -> Optional[OrgAssignmentRecord]: ...

    async def get_department(self, department_id: str) -> Optional[DepartmentRecord]: ...


# ============================================================================
# SQLAlchemy implementation
# ============================================================================

class SqlAlchemyAuthorizationStore:
    """
    AuthorizationStore backed by the tenant database.
    
    Usage:
        store = SqlAlchemyAuthorizationStore(AsyncSessionLocal)
        membership = await store.get_membership(user_id, tenant_id)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, lookup: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError, asyncio.TimeoutError, LookupError, ValueError) as e:
            log.warning("Authorization lookup %s failed: %s", lookup, e)
            raise LookupFailure(f"{lookup} failed") from e

    async def get_membership(self, user_id: str, tenant_id: str) -> Optional[MembershipRecord]:
        async with self._session("get_membership") as session:
            result = await session.execute(
                select(TenantMembership).where(
                    TenantMembership.user_id == user_id,
                    TenantMembership.tenant_id == tenant_id,
                )
            )
            membership = result.scalar_one_or_none()
        if membership is None:
            return None
        return MembershipRecord(
            user_id=membership.user_id,
            tenant_id=membership.tenant_id,
            role=membership.role,
            custom_role_id=membership.custom_role_id,
            active=membership.active,
        )

    async def get_custom_role(self, custom_role_id: str) -> Optional[CustomRolePolicy]:
        async with self._session("get_custom_role") as session:
            result = await session.execute(select(CustomRole).where(CustomRole.id == custom_role_id))
            role = result.scalar_one_or_none()
        if role is None:
            return None
        # Raises Malformed; callers degrade
        modules = parse_permission_map(role.permissions, role_id=role.id)
        return CustomRolePolicy(id=role.id, tenant_id=role.tenant_id, active=role.active, modules=modules)

    async def list_role_permissions(self, tenant_id: str, role: MembershipRole) -> List[PermissionRecord]:
        async with self._session("list_role_permissions") as session:
            result = await session.execute(
                select(Permission)
                .join(RolePermission, RolePermission.permission_id == Permission.id)
                .where(RolePermission.tenant_id == tenant_id, RolePermission.role == MembershipRole(role))
            )
            permissions = result.scalars().all()
        return [_permission_record(p) for p in permissions]

    async def list_all_permissions(self) -> List[PermissionRecord]:
        async with self._session("list_all_permissions") as session:
            result = await session.execute(select(Permission).order_by(Permission.module, Permission.name))
            permissions = result.scalars().all()
        return [_permission_record(p) for p in permissions]

    async def get_org_assignment(self, user_id: str, tenant_id: str) -> Optional[OrgAssignmentRecord]:
        async with self._session("get_org_assignment") as session:
            result = await session.execute(
                select(UserDepartmentAssignment)
                .where(
                    UserDepartmentAssignment.user_id == user_id,
                    UserDepartmentAssignment.tenant_id == tenant_id,
                )
                .order_by(UserDepartmentAssignment.created_at, UserDepartmentAssignment.id)
                .limit(1)
            )
            assignment = result.scalar_one_or_none()
        if assignment is None:
            return None
        return OrgAssignmentRecord(
            user_id=assignment.user_id,
            tenant_id=assignment.tenant_id,
            department_id=assignment.department_id,
        )

    async def get_department(self, department_id: str) -> Optional[DepartmentRecord]:
        async with self._session("get_department") as session:
            result = await session.execute(select(Department).where(Department.id == department_id))
            department = result.scalar_one_or_none()
        if department is None:
            return None
        return DepartmentRecord(id=department.id, branch_id=department.branch_id)


def _permission_record(permission: Permission) -> PermissionRecord:
    return PermissionRecord(
        id=permission.id,
        name=permission.name,
        module=permission.module,
        description=permission.description,
    )
