"""
Permission catalog and static role grant models.
"""
from sqlalchemy import String, ForeignKey, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_authz.core.database.base import Base, TimestampMixin, generate_ulid
from tenant_authz.features.tenants.models import MembershipRole


class Permission(Base, TimestampMixin):
    """
    Catalog entry.
    
    Names are globally unique and namespaced, e.g. `crm.deals.view`,
    `crm.deals.visibility.branch` or `deals.assignment.own`.
    """
    __tablename__ = "permissions"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(150), unique=True, nullable=False, index=True)
    module: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    
    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, name={self.name!r}, module={self.module})>"


class RolePermission(Base, TimestampMixin):
    """Default grant of a catalog permission to a base role inside one tenant."""
    __tablename__ = "role_permissions"
    __table_args__ = (
        UniqueConstraint("tenant_id", "role", "permission_id", name="uq_role_permissions_grant"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[MembershipRole] = mapped_column(
        SQLEnum(MembershipRole, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True
    )
    permission_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False
    )
    
    permission: Mapped["Permission"] = relationship("Permission", lazy="selectin")
    
    def __repr__(self) -> str:
        return f"<RolePermission(tenant_id={self.tenant_id}, role={self.role}, permission_id={self.permission_id})>"
