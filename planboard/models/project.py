import uuid
from typing import Optional

from sqlalchemy import String, Text, ForeignKey, Index, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from planboard.db.base import Base


class Project(Base):
    """
    Project owning tasks, kanban statuses and team members.
    """

    name: Mapped[str] = mapped_column(
        String(200), nullable=False, comment="Project name"
    )

    description: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Project description"
    )

    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
        comment="Project creator, treated as the owner",
    )

    __table_args__ = (Index("idx_project_name", "name"),)

    def is_owned_by(self, user_id: uuid.UUID) -> bool:
        """Check if the given user created this project"""
        return self.created_by_id is not None and self.created_by_id == user_id

    def __repr__(self) -> str:
        return f"<Project(id={self.id}, name={self.name})>"
