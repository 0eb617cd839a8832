"""
Custom role model.

The `permissions` column holds the raw per-module policy map exactly as the
tenant administration UI saved it, for example:

    {
        "deals": {"visibility": "branch", "assignment_scope": "own", "read": true, "edit": true},
        "todos": {"visibility": "selected_users", "visibility_selected_users": ["01J..."]}
    }

It is validated by `custom_roles.schemas.parse_permission_map` whenever it is
read for a decision.
"""
from typing import Any, Dict
from sqlalchemy import String, ForeignKey, Text, Boolean, JSON, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from tenant_authz.core.database.base import Base, TimestampMixin, generate_ulid


class CustomRole(Base, TimestampMixin):
    """Named per-tenant role carrying a per-module policy map."""
    __tablename__ = "custom_roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_custom_roles_tenant_name"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    permissions: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    def __repr__(self) -> str:
        return f"<CustomRole(id={self.id}, name={self.name!r}, tenant_id={self.tenant_id}, active={self.active})>"
