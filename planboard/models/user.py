from enum import Enum

from sqlalchemy import (
    String,
    Boolean,
    Index,
    Enum as SQLAlchemyEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from planboard.db.base import Base


class SystemRole(str, Enum):
    """System-wide roles supplied by the authentication provider"""

    ADMIN = "admin"
    MANAGER = "manager"
    USER = "user"
    GUEST = "guest"


class User(Base):
    """
    Application user. Only the fields the task engine relies on are kept here;
    credentials and sessions live with the authentication provider.
    """

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        comment="User's email address",
    )

    name: Mapped[str] = mapped_column(
        String(200), nullable=False, comment="Display name"
    )

    role: Mapped[SystemRole] = mapped_column(
        SQLAlchemyEnum(SystemRole, name="systemrole", native_enum=False),
        default=SystemRole.USER,
        nullable=False,
        comment="System role used by the permission resolver",
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
        comment="Inactive users cannot authenticate",
    )

    __table_args__ = (Index("idx_user_role", "role"),)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
