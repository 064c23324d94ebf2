"""SpaceUser model for memberships."""

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class SpaceUser(SqlalchemyBase):
    """Membership of a user in a space, carrying the handle used for @mentions."""

    __tablename__ = "space_users"
    __table_args__ = (
        Index("idx_space_users_space_user", "space_id", "user_id", unique=True),
        Index("idx_space_users_space_handle", "space_id", "handle"),
    )

    space_id: Mapped[str] = mapped_column(String, ForeignKey("spaces.id"), nullable=False)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id"), nullable=False)
    handle: Mapped[str] = mapped_column(String, nullable=False)

    def __repr__(self) -> str:
        """String representation."""
        return f"<SpaceUser(id={self.id}, space_id={self.space_id}, handle={self.handle})>"
