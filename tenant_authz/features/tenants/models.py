"""
Tenant and membership models.

A tenant is an isolated customer organization. A user reaches a tenant only
through a TenantMembership row, which carries the base role and an optional
custom role override.
"""
import enum
from sqlalchemy import String, ForeignKey, Boolean, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_authz.core.database.base import Base, TimestampMixin, generate_ulid


class MembershipRole(str, enum.Enum):
    """Base role of a user inside a tenant."""
    OWNER = "owner"
    MEMBER = "member"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def is_admin(self) -> bool:
        return self in ADMIN_ROLES


ADMIN_ROLES = frozenset({MembershipRole.ADMIN, MembershipRole.SUPER_ADMIN})


class Tenant(Base, TimestampMixin):
    """Customer organization."""
    __tablename__ = "tenants"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    memberships: Mapped[list["TenantMembership"]] = relationship(
        "TenantMembership",
        back_populates="tenant",
        cascade="all, delete-orphan",
        lazy="selectin"
    )
    
    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name!r})>"


class TenantMembership(Base, TimestampMixin):
    """
    One row per (user, tenant).
    
    Inactive memberships are invisible to authorization: the user has no
    access to the tenant at all.
    """
    __tablename__ = "tenant_memberships"
    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", name="uq_tenant_memberships_user_tenant"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    
    role: Mapped[MembershipRole] = mapped_column(
        SQLEnum(MembershipRole, values_callable=lambda e: [m.value for m in e]),
        default=MembershipRole.MEMBER,
        nullable=False
    )
    custom_role_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("custom_roles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="memberships", lazy="selectin")
    
    def __repr__(self) -> str:
        return (
            f"<TenantMembership(user_id={self.user_id}, tenant_id={self.tenant_id}, "
            f"role={self.role}, custom_role_id={self.custom_role_id})>"
        )
