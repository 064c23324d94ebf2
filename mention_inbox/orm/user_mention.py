"""UserMention model, one row per handle mentioned in a post or reply."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class UserMention(SqlalchemyBase):
    """A mention event.

    Rows are append-only. The only column that ever changes after insert is
    ``dismissed_at``, and only from NULL to a timestamp.
    """

    __tablename__ = "user_mentions"
    __table_args__ = (
        Index("idx_user_mentions_mentioned_post", "mentioned_id", "post_id"),
        Index("idx_user_mentions_dismissed_at", "dismissed_at"),
    )

    space_id: Mapped[str] = mapped_column(String, ForeignKey("spaces.id"), nullable=False)
    post_id: Mapped[str] = mapped_column(String, ForeignKey("posts.id"), nullable=False)
    reply_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("replies.id"), nullable=True
    )  # NULL when the mention is in the post body
    mentioner_id: Mapped[str] = mapped_column(
        String, ForeignKey("space_users.id"), nullable=False
    )
    mentioned_id: Mapped[str] = mapped_column(
        String, ForeignKey("space_users.id"), nullable=False
    )
    occurred_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    dismissed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<UserMention(id={self.id}, post_id={self.post_id}, reply_id={self.reply_id}, "
            f"mentioned_id={self.mentioned_id}, dismissed={self.dismissed_at is not None})>"
        )
