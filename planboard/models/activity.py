import uuid
from typing import Optional
from enum import Enum

from sqlalchemy import String, Text, Index, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from planboard.db.base import Base


class ActivityAction(str, Enum):
    """Known activity actions"""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    STATUS_CHANGED = "status_changed"
    REORDERED = "reordered"
    MOVED = "moved"
    ASSIGNED = "assigned"


class ActivityEntity(str, Enum):
    """Entity types recorded in the activity log"""

    TASK = "task"
    PROJECT = "project"
    PROJECT_STATUS = "project_status"


class Activity(Base):
    """
    Append-only audit record written alongside every mutation.
    """

    # Stored as plain strings so new actions need no migration
    action: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="What happened"
    )

    entity_type: Mapped[str] = mapped_column(
        String(50), nullable=False, comment="Kind of entity affected"
    )

    # Not a foreign key: the trail outlives the entity
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, comment="Affected entity ID"
    )

    description: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Human readable description"
    )

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Acting user",
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        comment="Project the activity belongs to",
    )

    task_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True, comment="Related task, if any"
    )

    __table_args__ = (
        Index("idx_activity_project", "project_id", "created_at"),
        Index("idx_activity_task", "task_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Activity(action={self.action}, entity={self.entity_type}:{self.entity_id})>"
