"""
Effective permission set of a user inside a tenant.

Resolution order:
1. No membership, or an inactive one: no permissions.
2. admin / super_admin: the whole catalog.
3. An active custom role attached to the membership: its module policies
   translated into canonical permission names.
4. Otherwise the tenant's static grants for the base role.

Any lookup failure or malformed custom role while resolving yields an empty
set. Degraded results are never cached.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional

from tenant_authz.features.authorization.cache import PermissionSetCache
from tenant_authz.features.authorization.exceptions import LookupFailure, Malformed, NotFound
from tenant_authz.features.authorization.stores import AuthorizationStore, MembershipRecord
from tenant_authz.features.custom_roles.schemas import CustomRolePolicy
from tenant_authz.features.permissions.catalog import (
    action_permission,
    assignment_permission,
    module_for,
    visibility_permission,
)
from tenant_authz.utils import get_logger


log = get_logger(__name__)

PermissionSet = FrozenSet[str]

EMPTY: PermissionSet = frozenset()


@dataclass(frozen=True)
class RoleResolution:
    """Everything the visibility and assignment resolvers need about the caller."""
    user_id: str
    tenant_id: str
    permissions: PermissionSet = EMPTY
    is_admin: bool = False
    membership: Optional[MembershipRecord] = None
    custom_role: Optional[CustomRolePolicy] = None
    degraded: bool = False

    @property
    def has_access(self) -> bool:
        return self.membership is not None and self.membership.active

    @property
    def custom_role_id(self) -> Optional[str]:
        """
        Custom role the membership points at, applied or not.
        
        An inactive, foreign or missing role still keys invalidation, so
        activating it later drops this resolution.
        """
        if self.membership is not None and self.membership.custom_role_id:
            return self.membership.custom_role_id
        return self.custom_role.id if self.custom_role else None


def custom_role_permissions(policy: CustomRolePolicy) -> PermissionSet:
    """
    Translate a custom role's module policies into canonical permission names.
    
    `{"deals": {"visibility": "branch", "assignment_scope": "own", "read": true}}`
    becomes `crm.deals.visibility.branch`, `crm.deals.assignment.own` and
    `crm.deals.view`. Modules missing from the module map are skipped.
    """
    names = set()
    for module, module_policy in policy.modules.items():
        catalog_module = module_for(module)
        if catalog_module is None:
            log.debug("Custom role %s: module %r has no catalog mapping", policy.id, module)
            continue
        if module_policy.visibility is not None:
            names.add(visibility_permission(catalog_module, module_policy.visibility))
        if module_policy.assignment_scope is not None:
            names.add(assignment_permission(catalog_module, module_policy.assignment_scope))
        for action in module_policy.granted_actions():
            names.add(action_permission(catalog_module, action))
    return frozenset(names)


class RoleResolver:
    """
    Computes RoleResolution / PermissionSet for (user, tenant) pairs.
    
    Usage:
        resolver = RoleResolver(store, cache=PermissionSetCache(ttl=300))
        permissions = await resolver.resolve(user_id, tenant_id)
    """

    def __init__(self, store: AuthorizationStore, cache: Optional[PermissionSetCache] = None):
        self.store = store
        self.cache = cache

    async def resolve(self, user_id: str, tenant_id: str) -> PermissionSet:
        resolution = await self.resolve_detail(user_id, tenant_id)
        return resolution.permissions

    async def is_admin(self, user_id: str, tenant_id: str) -> bool:
        resolution = await self.resolve_detail(user_id, tenant_id)
        return resolution.is_admin

    async def resolve_detail(self, user_id: str, tenant_id: str) -> RoleResolution:
        if self.cache is not None:
            cached = self.cache.get(user_id, tenant_id)
            if cached is not None:
                return cached

        generation = self.cache.generation if self.cache is not None else None
        resolution = await self._resolve(user_id, tenant_id)

        if self.cache is not None and not resolution.degraded:
            # Skipped when an invalidation ran while resolving
            self.cache.set(resolution, generation=generation)
        return resolution

    async def _resolve(self, user_id: str, tenant_id: str) -> RoleResolution:
        try:
            membership = await self.store.get_membership(user_id, tenant_id)
        except LookupFailure:
            log.warning("Membership lookup failed for user %s in tenant %s; denying", user_id, tenant_id)
            return RoleResolution(user_id, tenant_id, degraded=True)

        if membership is None or not membership.active:
            log.debug("User %s has no active membership in tenant %s", user_id, tenant_id)
            return RoleResolution(user_id, tenant_id, membership=None)

        if membership.is_admin:
            # Admin status is already decided; a failing catalog read only empties the listing
            try:
                catalog = await self.store.list_all_permissions()
            except LookupFailure:
                log.warning("Catalog lookup failed for admin %s in tenant %s", user_id, tenant_id)
                return RoleResolution(user_id, tenant_id, is_admin=True, membership=membership, degraded=True)
            return RoleResolution(
                user_id,
                tenant_id,
                permissions=frozenset(p.name for p in catalog),
                is_admin=True,
                membership=membership,
            )

        try:
            custom_role = await self._load_custom_role(membership)
        except NotFound as e:
            log.warning("%s; using static grants for user %s", e, user_id)
            custom_role = None
        except (LookupFailure, Malformed) as e:
            return _denied(membership, e)

        if custom_role is not None:
            return RoleResolution(
                user_id,
                tenant_id,
                permissions=custom_role_permissions(custom_role),
                membership=membership,
                custom_role=custom_role,
            )

        try:
            grants = await self.store.list_role_permissions(tenant_id, membership.role)
        except LookupFailure as e:
            return _denied(membership, e)

        return RoleResolution(
            user_id,
            tenant_id,
            permissions=frozenset(p.name for p in grants),
            membership=membership,
        )

    async def _load_custom_role(self, membership: MembershipRecord) -> Optional[CustomRolePolicy]:
        if not membership.custom_role_id:
            return None
        custom_role = await self.store.get_custom_role(membership.custom_role_id)
        if custom_role is None:
            raise NotFound(f"Custom role {membership.custom_role_id} does not exist")
        if not custom_role.active:
            return None
        if custom_role.tenant_id != membership.tenant_id:
            log.warning(
                "Custom role %s belongs to tenant %s, not %s; ignoring",
                custom_role.id, custom_role.tenant_id, membership.tenant_id,
            )
            return None
        return custom_role


def _denied(membership: MembershipRecord, error: Exception) -> RoleResolution:
    log.warning(
        "Permission resolution failed for user %s in tenant %s (%s); denying",
        membership.user_id, membership.tenant_id, error,
    )
    return RoleResolution(membership.user_id, membership.tenant_id, membership=membership, degraded=True)
