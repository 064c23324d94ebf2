"""ORM models for database persistence."""

from .base import Base, SqlalchemyBase
from .post import Post
from .reply import Reply
from .space import Space
from .space_user import SpaceUser
from .user import User
from .user_mention import UserMention

__all__ = [
    "Base",
    "SqlalchemyBase",
    "Post",
    "Reply",
    "Space",
    "SpaceUser",
    "User",
    "UserMention",
]
