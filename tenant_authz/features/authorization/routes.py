"""
Authorization decision API routes.

Read-only endpoints UI list filters, detail guards and assignment pickers
call to ask the engine for a decision.
"""
from fastapi import APIRouter, Depends

from tenant_authz.features.authorization.context import AuthorizationContext
from tenant_authz.features.authorization.dependencies import get_authorization_context
from tenant_authz.features.authorization.schemas import (
    AssignmentCheckRequest,
    AuthorizationSummaryResponse,
    DecisionResponse,
    EntityOwnership,
    PermissionCheckRequest,
    ScopeResponse,
)
from tenant_authz.utils import get_logger


log = get_logger(__name__)
router = APIRouter()


@router.get("/me", response_model=AuthorizationSummaryResponse)
async def get_my_permissions(
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Resolved permission set of the caller in the current tenant."""
    return AuthorizationSummaryResponse(
        user_id=ctx.user_id,
        tenant_id=ctx.tenant_id,
        is_admin=ctx.is_admin,
        permissions=sorted(ctx.permissions),
    )


@router.post("/check", response_model=DecisionResponse)
async def check_permissions(
    body: PermissionCheckRequest,
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Check whether the caller holds any / all of the given permissions."""
    if body.mode == "all":
        allowed = ctx.has_all_permissions(body.permissions)
    else:
        allowed = ctx.has_any_permission(body.permissions)
    return DecisionResponse(allowed=allowed)


@router.get("/visibility/{entity_type}", response_model=ScopeResponse)
async def get_visibility_level(
    entity_type: str,
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Visibility scope of the caller for an entity type."""
    scope = await ctx.get_visibility_level(entity_type)
    return ScopeResponse(entity_type=entity_type, scope=scope)


@router.post("/visibility/{entity_type}/check", response_model=DecisionResponse)
async def check_visibility(
    entity_type: str,
    ownership: EntityOwnership,
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Whether the caller may see a record with the given ownership."""
    allowed = await ctx.can_view(entity_type, ownership)
    log.debug(
        "Visibility check user=%s tenant=%s entity=%s owner=%s allowed=%s",
        ctx.user_id, ctx.tenant_id, entity_type, ownership.owner_user_id, allowed,
    )
    return DecisionResponse(allowed=allowed)


@router.get("/assignment/{entity_type}", response_model=ScopeResponse)
async def get_assignment_scope(
    entity_type: str,
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Assignment scope of the caller for an entity type."""
    scope = await ctx.get_assignment_scope(entity_type)
    return ScopeResponse(entity_type=entity_type, scope=scope)


@router.post("/assignment/{entity_type}/check", response_model=DecisionResponse)
async def check_assignment(
    entity_type: str,
    body: AssignmentCheckRequest,
    ctx: AuthorizationContext = Depends(get_authorization_context)
):
    """Whether the caller may assign a work item of this type to the target user."""
    allowed = await ctx.can_assign_to(entity_type, body.target_user_id)
    return DecisionResponse(allowed=allowed)
