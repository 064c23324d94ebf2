"""Service for recording, reading and dismissing @mentions."""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from ..errors import AuthenticationRequired, InvalidLoaderQuery
from ..handles import find_handles, normalize_handles
from ..loader import BatchLoader
from ..orm.post import Post
from ..orm.reply import Reply
from ..orm.space_user import SpaceUser
from ..orm.user import User
from ..orm.user_mention import UserMention
from ..pubsub import MENTIONS_DISMISSED, Pubsub
from .database import get_db_service
from .directory import MembershipDirectory
from .mention_log import (
    ByAccount,
    ByMember,
    GroupedMention,
    MentionLog,
    base_query,
    grouped_base_query,
)

logger = logging.getLogger(__name__)

LOADER_SOURCE = "mentions"


def _naive_now() -> datetime:
    """Current UTC time without tzinfo, as stored in user_mentions."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def scope_for(target: Any) -> ByMember | ByAccount:
    """Build a grouped-mention scope from a SpaceUser, a User, or an existing scope."""
    if isinstance(target, (ByMember, ByAccount)):
        return target
    if isinstance(target, SpaceUser):
        return ByMember(target.id)
    if isinstance(target, User):
        return ByAccount(target.id)
    raise TypeError(f"Cannot scope mentions by {type(target).__name__}")


class MentionService:
    """Service for recording, reading and dismissing @mentions."""

    def __init__(
        self,
        publisher: Pubsub,
        directory: Optional[MembershipDirectory] = None,
        log: Optional[MentionLog] = None,
    ):
        self.publisher = publisher
        self.directory = directory or MembershipDirectory()
        self.log = log or MentionLog()

    async def record(self, post: Post, reply: Optional[Reply] = None) -> list[str]:
        """
        Record mentions from the body of a post, or of a reply when given.

        Returns:
            Ids of the space users that were mentioned. Empty when the body
            mentions nobody who is a member of the post's space.
        """
        if reply is None:
            return await self._record(post.body, post, None, post.space_user_id)
        return await self._record(reply.body, post, reply.id, reply.space_user_id)

    async def _record(
        self, body: str, post: Post, reply_id: Optional[str], author_id: str
    ) -> list[str]:
        handles = normalize_handles(find_handles(body))
        if not handles:
            return []

        mentioned_ids = await self.directory.find_members(post.space_id, handles)
        if not mentioned_ids:
            logger.debug("No members matched %s in space %s", handles, post.space_id)
            return []

        now = _naive_now()
        rows = [
            {
                "space_id": post.space_id,
                "post_id": post.id,
                "reply_id": reply_id,
                "mentioner_id": author_id,
                "mentioned_id": mentioned_id,
                "occurred_at": now,
            }
            for mentioned_id in mentioned_ids
        ]

        db = get_db_service()
        async with db.session() as session:
            await self.log.insert_many(session, rows)

        logger.info(
            "Recorded %d mentions in post %s (reply %s)", len(rows), post.id, reply_id
        )
        return mentioned_ids

    async def flat_mentions_for(self, space_user: SpaceUser) -> list[UserMention]:
        """Active mention events addressed to a space user, newest first."""
        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(
                base_query(space_user.id).order_by(UserMention.occurred_at.desc())
            )
            return list(result.scalars().all())

    async def grouped_mentions_for(
        self, target: Any, post_ids: Optional[Iterable[str]] = None
    ) -> list[GroupedMention]:
        """
        Active mentions aggregated per post, most recently mentioned first.

        Args:
            target: A SpaceUser or ByMember scope, or a User or ByAccount scope.
            post_ids: Restrict the result to these posts.
        """
        query = grouped_base_query(scope_for(target))
        if post_ids is not None:
            query = query.where(UserMention.post_id.in_(list(post_ids)))

        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(query)
            return [GroupedMention.from_row(row) for row in result.all()]

    @staticmethod
    def mentioner_ids(grouped_mention: GroupedMention) -> list[str]:
        """Ids of everyone who mentioned the member in a grouped mention, sorted."""
        return sorted(mid for mid in grouped_mention.mentioner_ids if mid)

    async def dismiss_all(self, space_user: SpaceUser, post: Post) -> None:
        """Dismiss every active mention of a space user in a post and notify subscribers."""
        db = get_db_service()
        async with db.session() as session:
            dismissed = await self.log.dismiss(session, space_user.id, post.id, _naive_now())

        logger.info("Dismissed %d mentions of %s in post %s", dismissed, space_user.id, post.id)
        await self.publisher.publish(MENTIONS_DISMISSED, post.id, post)

    def loader_source(self, params: dict) -> "GroupedMentionSource":
        """Build a batch loader source for the current user in ``params``."""
        current_user = params.get("current_user")
        if current_user is None:
            raise AuthenticationRequired()
        return GroupedMentionSource(self, current_user)

    def build_loader(self, params: dict, max_batch_size: Optional[int] = None) -> BatchLoader:
        """Batch loader with this service registered as the ``LOADER_SOURCE`` source."""
        loader = BatchLoader(max_batch_size=max_batch_size)
        loader.register(LOADER_SOURCE, self.loader_source(params))
        return loader


class GroupedMentionSource:
    """Loads the current user's grouped mentions for many posts in one query."""

    def __init__(self, service: MentionService, current_user: User):
        self.service = service
        self.current_user = current_user

    async def fetch(self, kind: Any, keys: list) -> dict[str, GroupedMention]:
        if kind is not GroupedMention:
            raise InvalidLoaderQuery(kind)

        groups = await self.service.grouped_mentions_for(
            ByAccount(self.current_user.id), post_ids=keys
        )
        return {group.post_id: group for group in groups}
