"""Post model for top-level messages."""

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Post(SqlalchemyBase):
    """A top-level message in a space."""

    __tablename__ = "posts"
    __table_args__ = (Index("idx_posts_space_id", "space_id"),)

    space_id: Mapped[str] = mapped_column(String, ForeignKey("spaces.id"), nullable=False)
    space_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("space_users.id"), nullable=False
    )  # author
    body: Mapped[str] = mapped_column(Text, nullable=False)
