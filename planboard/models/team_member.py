import uuid
from datetime import datetime, UTC
from enum import Enum

from sqlalchemy import (
    DateTime,
    Index,
    ForeignKey,
    UniqueConstraint,
    Uuid,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from planboard.db.base import Base


class TeamRole(str, Enum):
    """Roles within a specific project team"""

    MEMBER = "member"
    MANAGER = "manager"
    ADMIN = "admin"
    OWNER = "owner"


class TeamMember(Base):
    """
    Project team membership. Membership is the basis for project-level access,
    and task assignment implies membership.
    """

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        comment="Project ID",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="User ID",
    )

    role: Mapped[TeamRole] = mapped_column(
        SQLAlchemyEnum(TeamRole, name="teamrole", native_enum=False),
        default=TeamRole.MEMBER,
        nullable=False,
        comment="Role within this project",
    )

    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="When user was added to project",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="unique_team_member"),
        Index("idx_team_members_project", "project_id", "role"),
        Index("idx_team_members_user", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<TeamMember(project_id={self.project_id}, user_id={self.user_id}, role={self.role})>"
