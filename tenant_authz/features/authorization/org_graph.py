"""
Org position comparisons used by the department and branch scopes.

Both parties' positions are independent lookups and are awaited together.
Errors propagate as LookupFailure; callers decide how to degrade.
"""
import asyncio
from typing import Optional

from tenant_authz.features.authorization.stores import AuthorizationStore


async def department_of(store: AuthorizationStore, user_id: str, tenant_id: str) -> Optional[str]:
    assignment = await store.get_org_assignment(user_id, tenant_id)
    return assignment.department_id if assignment else None


async def branch_of(store: AuthorizationStore, user_id: str, tenant_id: str) -> Optional[str]:
    department_id = await department_of(store, user_id, tenant_id)
    if department_id is None:
        return None
    department = await store.get_department(department_id)
    return department.branch_id if department else None


async def same_department(store: AuthorizationStore, tenant_id: str, user_id: str, other_user_id: str) -> bool:
    mine, theirs = await asyncio.gather(
        department_of(store, user_id, tenant_id),
        department_of(store, other_user_id, tenant_id),
    )
    return mine is not None and mine == theirs


async def same_branch(store: AuthorizationStore, tenant_id: str, user_id: str, other_user_id: str) -> bool:
    mine, theirs = await asyncio.gather(
        branch_of(store, user_id, tenant_id),
        branch_of(store, other_user_id, tenant_id),
    )
    return mine is not None and mine == theirs
