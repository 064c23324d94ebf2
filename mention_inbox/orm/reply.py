"""Reply model for messages posted under a post."""

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Reply(SqlalchemyBase):
    """A reply within a post."""

    __tablename__ = "replies"
    __table_args__ = (Index("idx_replies_post_id", "post_id"),)

    space_id: Mapped[str] = mapped_column(String, ForeignKey("spaces.id"), nullable=False)
    post_id: Mapped[str] = mapped_column(String, ForeignKey("posts.id"), nullable=False)
    space_user_id: Mapped[str] = mapped_column(
        String, ForeignKey("space_users.id"), nullable=False
    )  # author
    body: Mapped[str] = mapped_column(Text, nullable=False)
