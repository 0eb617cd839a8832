"""
FastAPI dependencies wiring the authorization engine into request handling.

Usage:
    @router.get("/deals")
    async def list_deals(ctx: AuthorizationContext = Depends(require_permission("crm.deals.view"))):
        ...
"""
from typing import Annotated, List, Optional
from fastapi import Depends, Header, HTTPException, Request, status

from tenant_authz.core.database.engine import AsyncSessionLocal
from tenant_authz.features.authorization.assignment_authority import AssignmentAuthority, SqlAssignmentAuthority
from tenant_authz.features.authorization.cache import PermissionSetCache
from tenant_authz.features.authorization.context import AuthorizationContext
from tenant_authz.features.authorization.stores import AuthorizationStore, SqlAlchemyAuthorizationStore
from tenant_authz.features.users.dependencies import get_current_user
from tenant_authz.features.users.models import User
from tenant_authz.utils import get_logger


log = get_logger(__name__)


def get_authorization_store() -> AuthorizationStore:
    return SqlAlchemyAuthorizationStore(AsyncSessionLocal)


def get_assignment_authority(
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)]
) -> AssignmentAuthority:
    return SqlAssignmentAuthority(AsyncSessionLocal, store)


def get_permission_cache(request: Request) -> Optional[PermissionSetCache]:
    """Process-wide permission cache created at startup, if any."""
    return getattr(request.app.state, "permission_cache", None)


async def get_tenant_id(
    x_tenant_id: Annotated[Optional[str], Header()] = None
) -> str:
    """Tenant the request acts in, from the X-Tenant-ID header."""
    if not x_tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID header is required"
        )
    return x_tenant_id


async def get_authorization_context(
    user: Annotated[User, Depends(get_current_user)],
    tenant_id: Annotated[str, Depends(get_tenant_id)],
    store: Annotated[AuthorizationStore, Depends(get_authorization_store)],
    authority: Annotated[AssignmentAuthority, Depends(get_assignment_authority)],
    cache: Annotated[Optional[PermissionSetCache], Depends(get_permission_cache)],
) -> AuthorizationContext:
    """Build the caller's AuthorizationContext for the requested tenant."""
    return await AuthorizationContext.build(user.id, tenant_id, store, authority, cache=cache)


def require_permission(name: str):
    """
    FastAPI dependency to require a specific permission.
    
    Returns:
        Dependency function that returns the AuthorizationContext if allowed
    
    Raises:
        HTTPException: 403 if the permission is not held
    """
    async def permission_dependency(
        ctx: Annotated[AuthorizationContext, Depends(get_authorization_context)]
    ) -> AuthorizationContext:
        if not ctx.has_permission(name):
            log.debug("User %s denied %s in tenant %s", ctx.user_id, name, ctx.tenant_id)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {name}"
            )
        return ctx
    
    return permission_dependency


def require_any_permission(names: List[str]):
    """FastAPI dependency to require ANY of the given permissions."""
    async def permission_dependency(
        ctx: Annotated[AuthorizationContext, Depends(get_authorization_context)]
    ) -> AuthorizationContext:
        if not ctx.has_any_permission(names):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: requires one of {names}"
            )
        return ctx
    
    return permission_dependency
