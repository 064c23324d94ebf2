"""Access layer for the user_mentions event log.

Writes are limited to appending new rows and stamping ``dismissed_at`` on
active rows. Reads are built from ``base_query`` (one row per mention) and
``grouped_base_query`` (one row per mentioned member and post).
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import Select, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.expression import FunctionElement

from ..orm.space_user import SpaceUser
from ..orm.user_mention import UserMention


class aggregate_ids(FunctionElement):
    """Distinct non-null values of a column, collected per group."""

    name = "aggregate_ids"
    inherit_cache = True


@compiles(aggregate_ids)
def _compile_aggregate_ids(element, compiler, **kw):
    column = compiler.process(element.clauses, **kw)
    return f"array_remove(array_agg(DISTINCT {column}), NULL)"


@compiles(aggregate_ids, "sqlite")
def _compile_aggregate_ids_sqlite(element, compiler, **kw):
    # NULLs come back as JSON null
    return f"json_group_array(DISTINCT {compiler.process(element.clauses, **kw)})"


def _load_ids(value: Any) -> frozenset[str]:
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = json.loads(value)
    return frozenset(str(item) for item in value if item is not None)


@dataclass(frozen=True)
class ByMember:
    """Grouped mentions addressed to one space user."""

    space_user_id: str


@dataclass(frozen=True)
class ByAccount:
    """Grouped mentions addressed to an account's space users, optionally in one space."""

    user_id: str
    space_id: Optional[str] = None


@dataclass(frozen=True)
class GroupedMention:
    """Active mentions of one space user in one post, aggregated."""

    post_id: str
    mentioned_id: str
    reply_ids: frozenset[str]
    mentioner_ids: frozenset[str]
    last_occurred_at: datetime

    @property
    def id(self) -> str:
        return self.post_id

    @classmethod
    def from_row(cls, row) -> "GroupedMention":
        return cls(
            post_id=row.post_id,
            mentioned_id=row.mentioned_id,
            reply_ids=_load_ids(row.reply_ids),
            mentioner_ids=_load_ids(row.mentioner_ids),
            last_occurred_at=row.last_occurred_at,
        )


def base_query(space_user_id: str) -> Select:
    """Active mention events addressed to a space user."""
    return select(UserMention).where(
        UserMention.mentioned_id == space_user_id,
        UserMention.dismissed_at.is_(None),
    )


def grouped_base_query(scope: ByMember | ByAccount) -> Select:
    """Active mention events grouped by (mentioned_id, post_id) for a scope."""
    last_occurred_at = func.max(UserMention.occurred_at).label("last_occurred_at")
    query = (
        select(
            UserMention.post_id,
            UserMention.mentioned_id,
            aggregate_ids(UserMention.reply_id).label("reply_ids"),
            aggregate_ids(UserMention.mentioner_id).label("mentioner_ids"),
            last_occurred_at,
        )
        .where(UserMention.dismissed_at.is_(None))
        .group_by(UserMention.mentioned_id, UserMention.post_id)
        .order_by(last_occurred_at.desc())
    )

    if isinstance(scope, ByMember):
        return query.where(UserMention.mentioned_id == scope.space_user_id)
    if isinstance(scope, ByAccount):
        query = query.join(SpaceUser, SpaceUser.id == UserMention.mentioned_id).where(
            SpaceUser.user_id == scope.user_id
        )
        if scope.space_id is not None:
            query = query.where(SpaceUser.space_id == scope.space_id)
        return query
    raise TypeError(f"Unsupported mention scope: {scope!r}")


class MentionLog:
    """Append and dismiss operations on user_mentions. Rows are never otherwise updated."""

    async def insert_many(self, session: AsyncSession, rows: Iterable[dict]) -> int:
        """Insert mention rows in one statement and return how many were written."""
        rows = list(rows)
        if rows:
            await session.execute(insert(UserMention), rows)
        return len(rows)

    async def dismiss(
        self, session: AsyncSession, mentioned_id: str, post_id: str, at: datetime
    ) -> int:
        """Stamp ``dismissed_at`` on active mentions of a member in a post."""
        result = await session.execute(
            update(UserMention)
            .where(
                UserMention.mentioned_id == mentioned_id,
                UserMention.post_id == post_id,
                UserMention.dismissed_at.is_(None),
            )
            .values(dismissed_at=at)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
