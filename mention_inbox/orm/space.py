"""Space model, the tenant that scopes handles."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class Space(SqlalchemyBase):
    """A workspace that members, posts and mentions belong to."""

    __tablename__ = "spaces"

    name: Mapped[str] = mapped_column(String, nullable=False)
