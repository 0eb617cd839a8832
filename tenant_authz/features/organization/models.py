"""
Organization graph models.

users -> user_department_assignments -> departments -> branches

Visibility and assignment checks for the `department` and `branch` scopes walk
this chain for both parties and compare the ends.
"""
from typing import List
from sqlalchemy import String, ForeignKey, Boolean, JSON, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tenant_authz.core.database.base import Base, TimestampMixin, generate_ulid
from tenant_authz.features.permissions.catalog import Scope


class Branch(Base, TimestampMixin):
    """Physical or regional branch of a tenant."""
    __tablename__ = "branches"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    departments: Mapped[list["Department"]] = relationship(
        "Department", back_populates="branch", lazy="selectin"
    )
    
    def __repr__(self) -> str:
        return f"<Branch(id={self.id}, name={self.name!r})>"


class Department(Base, TimestampMixin):
    """Department, optionally attached to a branch."""
    __tablename__ = "departments"
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    branch_id: Mapped[str | None] = mapped_column(
        String(26), ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    
    branch: Mapped["Branch"] = relationship("Branch", back_populates="departments", lazy="selectin")
    
    def __repr__(self) -> str:
        return f"<Department(id={self.id}, name={self.name!r}, branch_id={self.branch_id})>"


class UserDepartmentAssignment(Base, TimestampMixin):
    """Places a user in a department of a tenant."""
    __tablename__ = "user_department_assignments"
    __table_args__ = (
        UniqueConstraint("user_id", "department_id", "tenant_id", name="uq_user_department_assignment"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    department_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("departments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    
    def __repr__(self) -> str:
        return f"<UserDepartmentAssignment(user_id={self.user_id}, department_id={self.department_id})>"


class UserAssignmentPermission(Base, TimestampMixin):
    """
    Default assignment policy of one user for one entity type.
    
    Read by the SQL assignment authority when a user's custom role does not
    carry an assignment scope of its own. Missing row means `own`.
    """
    __tablename__ = "user_assignment_permissions"
    __table_args__ = (
        UniqueConstraint("user_id", "tenant_id", "entity_type", name="uq_user_assignment_permission"),
    )
    
    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=generate_ulid)
    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    assignment_scope: Mapped[Scope] = mapped_column(
        SQLEnum(Scope, values_callable=lambda e: [m.value for m in e]),
        default=Scope.OWN,
        nullable=False
    )
    selected_user_ids: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    
    def __repr__(self) -> str:
        return (
            f"<UserAssignmentPermission(user_id={self.user_id}, entity_type={self.entity_type}, "
            f"scope={self.assignment_scope})>"
        )
