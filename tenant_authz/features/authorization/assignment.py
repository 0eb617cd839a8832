"""
Assignment: to whom a user may hand work items of an entity type.
"""
from tenant_authz.features.authorization.assignment_authority import AssignmentAuthority
from tenant_authz.features.authorization.exceptions import LookupFailure
from tenant_authz.features.authorization.role_resolver import RoleResolution, RoleResolver
from tenant_authz.features.permissions.catalog import Scope
from tenant_authz.utils import get_logger


log = get_logger(__name__)


class AssignmentResolver:
    """
    Mirrors VisibilityResolver for assignment decisions.
    
    A custom role's own assignment scope is authoritative. Everything else is
    delegated to the injected AssignmentAuthority.
    """

    def __init__(self, role_resolver: RoleResolver, authority: AssignmentAuthority):
        self.role_resolver = role_resolver
        self.authority = authority

    async def get_assignment_scope(self, user_id: str, tenant_id: str, entity_type: str) -> Scope:
        resolution = await self.role_resolver.resolve_detail(user_id, tenant_id)
        return await self.assignment_scope_for(resolution, entity_type)

    async def can_assign_to(self, user_id: str, tenant_id: str, entity_type: str, target_user_id: str) -> bool:
        resolution = await self.role_resolver.resolve_detail(user_id, tenant_id)
        return await self.can_assign_to_for(resolution, entity_type, target_user_id)

    async def assignment_scope_for(self, resolution: RoleResolution, entity_type: str) -> Scope:
        if resolution.is_admin:
            return Scope.ALL
        if not resolution.has_access or resolution.degraded:
            return Scope.OWN

        if resolution.custom_role is not None:
            module_policy = resolution.custom_role.module(entity_type)
            if module_policy is not None and module_policy.assignment_scope is not None:
                return module_policy.assignment_scope

        try:
            return await self.authority.get_assignment_scope(resolution.user_id, resolution.tenant_id, entity_type)
        except LookupFailure:
            log.warning(
                "Assignment scope lookup failed for user %s in tenant %s (%s); using own",
                resolution.user_id, resolution.tenant_id, entity_type,
            )
            return Scope.OWN

    async def can_assign_to_for(self, resolution: RoleResolution, entity_type: str, target_user_id: str) -> bool:
        if resolution.is_admin:
            return True
        # A user may always assign to themselves
        if target_user_id == resolution.user_id:
            return True
        if not resolution.has_access or resolution.degraded:
            return False

        scope = await self.assignment_scope_for(resolution, entity_type)

        if scope == Scope.ALL:
            return True
        if scope == Scope.SELECTED_USERS:
            if resolution.custom_role is None:
                return False
            module_policy = resolution.custom_role.module(entity_type)
            if module_policy is None or module_policy.assignment_selected_users is None:
                return False
            return target_user_id in module_policy.assignment_selected_users

        try:
            return await self.authority.can_assign(
                resolution.user_id, target_user_id, resolution.tenant_id, entity_type
            )
        except LookupFailure:
            log.warning(
                "Assignment check failed for user %s -> %s in tenant %s (%s); denying",
                resolution.user_id, target_user_id, resolution.tenant_id, entity_type,
            )
            return False
