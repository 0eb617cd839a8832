"""
In-process cache of resolved permission sets.

Entries are keyed by (user_id, tenant_id) and expire after a TTL. Any insert,
update or delete of a TenantMembership or CustomRole row drops the affected
entries from every live cache, so a role change never leaves a stale window
in this process.
"""
import time
import weakref
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from sqlalchemy import event

from tenant_authz.features.custom_roles.models import CustomRole
from tenant_authz.features.tenants.models import TenantMembership
from tenant_authz.utils import get_logger

if TYPE_CHECKING:
    from tenant_authz.features.authorization.role_resolver import RoleResolution


log = get_logger(__name__)

CacheKey = Tuple[str, str]

_live_caches: "weakref.WeakSet[PermissionSetCache]" = weakref.WeakSet()


class PermissionSetCache:
    """
    TTL cache of RoleResolution results.
    
    A ttl of 0 disables caching: `get` always misses and `set` is a no-op.
    
    `generation` increases on every invalidation. A resolver reads it before
    resolving and passes it back to `set`; a result computed across an
    invalidation is then dropped instead of stored.
    """

    def __init__(self, ttl: float = 300, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[float, "RoleResolution"]] = {}
        self._next_sweep = clock() + ttl
        self.generation = 0
        _live_caches.add(self)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, user_id: str, tenant_id: str) -> Optional["RoleResolution"]:
        key = (user_id, tenant_id)
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, resolution = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return resolution

    def set(self, resolution: "RoleResolution", generation: Optional[int] = None) -> None:
        if self.ttl <= 0:
            return
        if generation is not None and generation != self.generation:
            log.debug(
                "Dropping permission set of user %s in tenant %s resolved across an invalidation",
                resolution.user_id, resolution.tenant_id,
            )
            return
        now = self._clock()
        if now >= self._next_sweep:
            self._sweep(now)
        key = (resolution.user_id, resolution.tenant_id)
        self._entries[key] = (now + self.ttl, resolution)

    def _sweep(self, now: float) -> None:
        for key in [k for k, (expires_at, _) in self._entries.items() if now >= expires_at]:
            del self._entries[key]
        self._next_sweep = now + self.ttl

    def invalidate(self, user_id: str, tenant_id: str) -> None:
        """Drop the cached permission set of one user in one tenant."""
        self.generation += 1
        if self._entries.pop((user_id, tenant_id), None) is not None:
            log.debug("Invalidated permission cache for user %s in tenant %s", user_id, tenant_id)

    def invalidate_tenant(self, tenant_id: str) -> None:
        self.generation += 1
        for key in [k for k in self._entries if k[1] == tenant_id]:
            del self._entries[key]

    def invalidate_custom_role(self, custom_role_id: str) -> None:
        """Drop every entry whose membership points at the given custom role."""
        self.generation += 1
        stale = [
            key for key, (_, resolution) in self._entries.items()
            if resolution.custom_role_id == custom_role_id
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            log.debug("Invalidated %d permission cache entries for custom role %s", len(stale), custom_role_id)

    def clear(self) -> None:
        self.generation += 1
        self._entries.clear()


# ============================================================================
# ORM change hooks
# ============================================================================

@event.listens_for(TenantMembership, "after_insert")
@event.listens_for(TenantMembership, "after_update")
@event.listens_for(TenantMembership, "after_delete")
def _membership_changed(_mapper, _connection, target: TenantMembership) -> None:
    for cache in list(_live_caches):
        cache.invalidate(target.user_id, target.tenant_id)


@event.listens_for(CustomRole, "after_insert")
@event.listens_for(CustomRole, "after_update")
@event.listens_for(CustomRole, "after_delete")
def _custom_role_changed(_mapper, _connection, target: CustomRole) -> None:
    for cache in list(_live_caches):
        cache.invalidate_custom_role(target.id)
