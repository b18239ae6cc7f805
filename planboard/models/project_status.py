import uuid

from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Index,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from planboard.db.base import Base


class ProjectStatus(Base):
    """
    A kanban column scoped to exactly one project.
    """

    name: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Column name"
    )

    color: Mapped[str] = mapped_column(
        String(20), nullable=False, default="#E4E4E7", comment="Display color"
    )

    order: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Column position on the board"
    )

    is_default: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        comment="Column new tasks land in when no status is given",
    )

    project_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="Project this column belongs to",
    )

    __table_args__ = (
        UniqueConstraint("project_id", "name", name="unique_status_name_per_project"),
        Index("idx_status_project_order", "project_id", "order"),
        CheckConstraint('"order" >= 0', name="non_negative_status_order"),
    )

    def __repr__(self) -> str:
        return f"<ProjectStatus(id={self.id}, name={self.name}, order={self.order})>"
