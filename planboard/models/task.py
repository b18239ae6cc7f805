import uuid
from datetime import datetime, UTC
from typing import Optional, List
from enum import Enum

from sqlalchemy import (
    String,
    Boolean,
    DateTime,
    Text,
    Integer,
    Float,
    Index,
    CheckConstraint,
    ForeignKey,
    UniqueConstraint,
    Uuid,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planboard.db.base import Base


class TaskPriority(str, Enum):
    """Task priority levels"""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(Base):
    """
    Task model for project management.
    Tasks form a tree through parent_id and sit in a kanban column through status_id;
    `order` positions a task among its siblings.
    """

    title: Mapped[str] = mapped_column(
        String(500), nullable=False, comment="Task title"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Detailed task description"
    )

    priority: Mapped[TaskPriority] = mapped_column(
        SQLAlchemyEnum(TaskPriority, name="taskpriority", native_enum=False),
        default=TaskPriority.MEDIUM,
        nullable=False,
        index=True,
        comment="Task priority level",
    )

    # Dates and time tracking
    start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When work starts"
    )

    end_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="When work ends"
    )

    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, comment="Task due date"
    )

    estimated_time: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, comment="Estimated hours"
    )

    time_spent: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, comment="Hours spent"
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Project this task belongs to",
    )

    status_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("project_statuses.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Kanban column",
    )

    # Task hierarchy
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
        comment="Parent task for subtasks",
    )

    order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Position among siblings"
    )

    completed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, comment="Completion flag"
    )

    # Read-only view; rows are written through TaskAssignee directly
    assignees: Mapped[List["TaskAssignee"]] = relationship(
        "TaskAssignee",
        viewonly=True,
        order_by="TaskAssignee.assigned_at",
    )

    __table_args__ = (
        Index("idx_task_tree_scope", "project_id", "parent_id", "order"),
        Index("idx_task_board_scope", "project_id", "parent_id", "status_id", "order"),
        CheckConstraint(
            "estimated_time IS NULL OR estimated_time >= 0",
            name="positive_estimated_time",
        ),
        CheckConstraint(
            "time_spent IS NULL OR time_spent >= 0", name="positive_time_spent"
        ),
        CheckConstraint("parent_id IS NULL OR parent_id != id", name="not_own_parent"),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title[:30]}, order={self.order})>"


class TaskAssignee(Base):
    """
    Junction table for task assignments (many-to-many relationship).
    Assignment is independent of project role but implies team membership.
    """

    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=False,
        comment="Task ID",
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Assigned user ID",
    )

    assigned_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="User who made this assignment",
    )

    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
        comment="When user was assigned",
    )

    __table_args__ = (
        UniqueConstraint("task_id", "user_id", name="unique_task_assignee"),
        Index("idx_task_assignee_task", "task_id"),
        Index("idx_task_assignee_user", "user_id"),
    )
