"""
External assignment authority.

Owns the default-role assignment rules that a custom role does not override.
The engine only talks to the `AssignmentAuthority` interface; the SQL
implementation below encodes the organization's current default policy.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Protocol, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from tenant_authz.features.authorization.exceptions import LookupFailure
from tenant_authz.features.authorization.stores import AuthorizationStore
from tenant_authz.features.organization.models import (
    Department,
    UserAssignmentPermission,
    UserDepartmentAssignment,
)
from tenant_authz.features.permissions.catalog import Scope
from tenant_authz.utils import get_logger


log = get_logger(__name__)


class AssignmentAuthority(Protocol):
    """Policy fallback for assignment scopes not resolvable from custom-role data."""

    async def get_assignment_scope(self, user_id: str, tenant_id: str, entity_type: str) -> Scope: ...

    async def can_assign(self, assigner_id: str, target_user_id: str, tenant_id: str, entity_type: str) -> bool: ...


class SqlAssignmentAuthority:
    """
    Default assignment policy backed by `user_assignment_permissions`.
    
    - scope: the user's row for the entity type, `own` when there is none
    - self-assignment and tenant admins: always allowed
    - all: anyone; selected_users: the row's `selected_user_ids`
    - department: the users share any department of the tenant
    - branch: any department of one user sits in the same branch as any
      department of the other
    - own: nobody else
    
    A stored value that does not decode (unknown scope, bad JSON) is reported
    as LookupFailure like any other failed read.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], store: AuthorizationStore):
        self._session_factory = session_factory
        self.store = store

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError, asyncio.TimeoutError, LookupError, ValueError, TypeError) as e:
            log.warning("Assignment policy lookup failed: %s", e)
            raise LookupFailure("assignment policy lookup failed") from e

    async def _policy(self, user_id: str, tenant_id: str, entity_type: str) -> Tuple[Scope, List[str]]:
        async with self._session() as session:
            result = await session.execute(
                select(UserAssignmentPermission).where(
                    UserAssignmentPermission.user_id == user_id,
                    UserAssignmentPermission.tenant_id == tenant_id,
                    UserAssignmentPermission.entity_type == entity_type,
                )
            )
            row = result.scalar_one_or_none()
            if row is None:
                return Scope.OWN, []
            return Scope(row.assignment_scope), [str(u) for u in (row.selected_user_ids or [])]

    async def _exists(self, query) -> bool:
        async with self._session() as session:
            result = await session.execute(select(query.exists()))
            return bool(result.scalar())

    async def _share_department(self, tenant_id: str, user_id: str, other_user_id: str) -> bool:
        mine = aliased(UserDepartmentAssignment)
        theirs = aliased(UserDepartmentAssignment)
        return await self._exists(
            select(mine.id)
            .join(theirs, theirs.department_id == mine.department_id)
            .where(
                mine.user_id == user_id,
                mine.tenant_id == tenant_id,
                theirs.user_id == other_user_id,
                theirs.tenant_id == tenant_id,
            )
        )

    async def _share_branch(self, tenant_id: str, user_id: str, other_user_id: str) -> bool:
        mine = aliased(UserDepartmentAssignment)
        theirs = aliased(UserDepartmentAssignment)
        my_department = aliased(Department)
        their_department = aliased(Department)
        return await self._exists(
            select(mine.id)
            .join(my_department, my_department.id == mine.department_id)
            .join(their_department, their_department.branch_id == my_department.branch_id)
            .join(theirs, theirs.department_id == their_department.id)
            .where(
                mine.user_id == user_id,
                mine.tenant_id == tenant_id,
                theirs.user_id == other_user_id,
                theirs.tenant_id == tenant_id,
                my_department.branch_id.is_not(None),
            )
        )

    async def get_assignment_scope(self, user_id: str, tenant_id: str, entity_type: str) -> Scope:
        scope, _ = await self._policy(user_id, tenant_id, entity_type)
        return scope

    async def can_assign(self, assigner_id: str, target_user_id: str, tenant_id: str, entity_type: str) -> bool:
        if assigner_id == target_user_id:
            return True

        membership = await self.store.get_membership(assigner_id, tenant_id)
        if membership is None or not membership.active:
            return False
        if membership.is_admin:
            return True

        scope, selected_user_ids = await self._policy(assigner_id, tenant_id, entity_type)

        if scope == Scope.ALL:
            return True
        if scope == Scope.SELECTED_USERS:
            return target_user_id in selected_user_ids
        if scope == Scope.DEPARTMENT:
            return await self._share_department(tenant_id, assigner_id, target_user_id)
        if scope == Scope.BRANCH:
            return await self._share_branch(tenant_id, assigner_id, target_user_id)
        return False
