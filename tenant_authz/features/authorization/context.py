"""
Per-request authorization context.

Built once per request (or per tenant session) and passed explicitly to
whatever needs a decision. Rebuild it when the tenant or membership changes.
"""
import asyncio
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

from tenant_authz.features.authorization.assignment import AssignmentResolver
from tenant_authz.features.authorization.assignment_authority import AssignmentAuthority
from tenant_authz.features.authorization.cache import PermissionSetCache
from tenant_authz.features.authorization.role_resolver import PermissionSet, RoleResolution, RoleResolver
from tenant_authz.features.authorization.schemas import EntityOwnership
from tenant_authz.features.authorization.stores import AuthorizationStore
from tenant_authz.features.authorization.visibility import VisibilityResolver
from tenant_authz.features.permissions.catalog import Scope, legacy_names


T = TypeVar("T")


@dataclass(frozen=True)
class AuthorizationContext:
    """
    Decision API for one user inside one tenant.
    
    Usage:
        ctx = await AuthorizationContext.build(user_id, tenant_id, store, authority, cache)
        if ctx.has_permission("crm.deals.view"):
            deals = await ctx.filter_visible("deals", deals, lambda d: EntityOwnership(owner_user_id=d.owner_id))
    """
    resolution: RoleResolution
    visibility: VisibilityResolver
    assignment: AssignmentResolver

    @classmethod
    async def build(
        cls,
        user_id: str,
        tenant_id: str,
        store: AuthorizationStore,
        authority: AssignmentAuthority,
        cache: Optional[PermissionSetCache] = None,
    ) -> "AuthorizationContext":
        role_resolver = RoleResolver(store, cache=cache)
        resolution = await role_resolver.resolve_detail(user_id, tenant_id)
        return cls(
            resolution=resolution,
            visibility=VisibilityResolver(store, role_resolver),
            assignment=AssignmentResolver(role_resolver, authority),
        )

    @property
    def user_id(self) -> str:
        return self.resolution.user_id

    @property
    def tenant_id(self) -> str:
        return self.resolution.tenant_id

    @property
    def is_admin(self) -> bool:
        return self.resolution.is_admin

    @property
    def permissions(self) -> PermissionSet:
        return self.resolution.permissions

    def has_permission(self, name: str) -> bool:
        return self.is_admin or name in self.resolution.permissions

    def has_any_permission(self, names: Iterable[str]) -> bool:
        return self.is_admin or any(name in self.resolution.permissions for name in names)

    def has_all_permissions(self, names: Iterable[str]) -> bool:
        return self.is_admin or all(name in self.resolution.permissions for name in names)

    async def get_visibility_level(self, entity_type: str) -> Scope:
        return self.visibility.visibility_level_for(self.resolution, entity_type)

    async def can_view(self, entity_type: str, ownership: EntityOwnership) -> bool:
        return await self.visibility.can_view_for(self.resolution, entity_type, ownership)

    async def get_assignment_scope(self, entity_type: str) -> Scope:
        return await self.assignment.assignment_scope_for(self.resolution, entity_type)

    async def can_assign_to(self, entity_type: str, target_user_id: str) -> bool:
        return await self.assignment.can_assign_to_for(self.resolution, entity_type, target_user_id)

    async def filter_visible(
        self,
        entity_type: str,
        items: Sequence[T],
        ownership_of: Callable[[T], EntityOwnership],
    ) -> List[T]:
        """Keep the items the user may see, preserving order."""
        if self.is_admin:
            return list(items)
        decisions = await asyncio.gather(
            *(self.can_view(entity_type, ownership_of(item)) for item in items)
        )
        return [item for item, visible in zip(items, decisions) if visible]

    def legacy_permission_names(self) -> List[str]:
        """Underscore-format names for consumers that predate the dotted catalog."""
        return sorted(set(legacy_names(self.resolution.permissions)))
