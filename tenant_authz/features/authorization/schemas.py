"""
Pydantic schemas for the authorization decision API.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict

from tenant_authz.features.permissions.catalog import Scope


class EntityOwnership(BaseModel):
    """Ownership of a checked record, supplied by the caller."""
    owner_user_id: str = Field(..., description="User that owns the record")
    owner_department_id: Optional[str] = Field(None, description="Owner's department, informational")
    owner_branch_id: Optional[str] = Field(None, description="Owner's branch, informational")

    model_config = ConfigDict(frozen=True)


class AuthorizationSummaryResponse(BaseModel):
    """Resolved permission set of the caller in the current tenant."""
    user_id: str
    tenant_id: str
    is_admin: bool
    permissions: List[str] = []


class PermissionCheckRequest(BaseModel):
    """Check one or more permission names."""
    permissions: List[str] = Field(..., min_length=1, description="Permission names")
    mode: Literal["any", "all"] = Field("any", description="Require any or all of the names")


class DecisionResponse(BaseModel):
    allowed: bool


class ScopeResponse(BaseModel):
    entity_type: str
    scope: Scope


class AssignmentCheckRequest(BaseModel):
    target_user_id: str = Field(..., description="User that would receive the work item")
