"""
Visibility: which records of an entity type a user may see.
"""
from typing import Iterable, Optional

from tenant_authz.features.authorization.exceptions import LookupFailure
from tenant_authz.features.authorization.org_graph import same_branch, same_department
from tenant_authz.features.authorization.role_resolver import PermissionSet, RoleResolution, RoleResolver
from tenant_authz.features.authorization.schemas import EntityOwnership
from tenant_authz.features.authorization.stores import AuthorizationStore
from tenant_authz.features.permissions.catalog import (
    BROAD_ENTITY_TYPES,
    INHERITABLE_SCOPES,
    SCOPE_PRECEDENCE,
    TODOS_ENTITY_TYPE,
    Scope,
    broadest,
    permission_prefixes,
    visibility_permission,
)
from tenant_authz.utils import get_logger


log = get_logger(__name__)


def probe_visibility(
    permissions: PermissionSet,
    entity_type: str,
    scopes: Iterable[Scope] = SCOPE_PRECEDENCE,
) -> Optional[Scope]:
    """First visibility scope granted for the entity type, broadest first."""
    prefixes = permission_prefixes(entity_type)
    for scope in scopes:
        for prefix in prefixes:
            if visibility_permission(prefix, scope) in permissions:
                return scope
    return None


class VisibilityResolver:
    """
    Resolves visibility scopes and per-record view decisions.
    
    The `*_for` methods decide over an already resolved RoleResolution; the
    plain methods resolve the caller first.
    """

    def __init__(self, store: AuthorizationStore, role_resolver: RoleResolver):
        self.store = store
        self.role_resolver = role_resolver

    async def get_visibility_level(self, user_id: str, tenant_id: str, entity_type: str) -> Scope:
        resolution = await self.role_resolver.resolve_detail(user_id, tenant_id)
        return self.visibility_level_for(resolution, entity_type)

    async def can_view(self, user_id: str, tenant_id: str, entity_type: str, ownership: EntityOwnership) -> bool:
        resolution = await self.role_resolver.resolve_detail(user_id, tenant_id)
        return await self.can_view_for(resolution, entity_type, ownership)

    def visibility_level_for(self, resolution: RoleResolution, entity_type: str) -> Scope:
        if resolution.is_admin:
            return Scope.ALL

        # A direct setting on the custom role wins over permission names
        if resolution.custom_role is not None:
            module_policy = resolution.custom_role.module(entity_type)
            if module_policy is not None and module_policy.visibility is not None:
                return module_policy.visibility

        scope = probe_visibility(resolution.permissions, entity_type)
        if scope is not None:
            return scope

        if entity_type == TODOS_ENTITY_TYPE:
            # Selected-user lists belong to their own module and do not carry over
            candidates = [s for s in SCOPE_PRECEDENCE if s in INHERITABLE_SCOPES]
            inherited = broadest(
                s for s in (probe_visibility(resolution.permissions, t, candidates) for t in BROAD_ENTITY_TYPES)
                if s is not None
            )
            if inherited is not None:
                return inherited

        return Scope.OWN

    async def can_view_for(self, resolution: RoleResolution, entity_type: str, ownership: EntityOwnership) -> bool:
        if resolution.is_admin:
            return True

        scope = self.visibility_level_for(resolution, entity_type)
        user_id, tenant_id = resolution.user_id, resolution.tenant_id

        if scope == Scope.ALL:
            return True
        if scope == Scope.OWN:
            return ownership.owner_user_id == user_id
        if scope == Scope.SELECTED_USERS:
            return self._selected_for_visibility(resolution, entity_type, ownership.owner_user_id)
        if scope in (Scope.DEPARTMENT, Scope.BRANCH):
            try:
                if scope == Scope.DEPARTMENT:
                    return await same_department(self.store, tenant_id, user_id, ownership.owner_user_id)
                return await same_branch(self.store, tenant_id, user_id, ownership.owner_user_id)
            except LookupFailure:
                log.warning(
                    "Org lookup failed deciding %s visibility of %s for user %s in tenant %s; denying",
                    scope.value, entity_type, user_id, tenant_id,
                )
                return False

        return False

    @staticmethod
    def _selected_for_visibility(resolution: RoleResolution, entity_type: str, owner_user_id: str) -> bool:
        if resolution.custom_role is None:
            return False
        module_policy = resolution.custom_role.module(entity_type)
        if module_policy is None or module_policy.visibility_selected_users is None:
            return False
        return owner_user_id in module_policy.visibility_selected_users
