"""Shared fixtures for mention inbox tests."""

from typing import Optional
from uuid import uuid4

import pytest
import pytest_asyncio

from mention_inbox.orm import Post, Reply, Space, SpaceUser, User
from mention_inbox.services import close_db_service, init_db_service


class RecordingPublisher:
    """Publisher that remembers what it was asked to publish."""

    def __init__(self):
        self.published = []

    async def publish(self, topic, key, payload=None):
        self.published.append((topic, key, payload))
        return 1


class Factory:
    """Creates rows in the test database."""

    def __init__(self, db):
        self.db = db

    async def _add(self, obj):
        async with self.db.session() as session:
            session.add(obj)
        return obj

    async def space(self, name: str = "Acme") -> Space:
        return await self._add(Space(name=name))

    async def user(self, handle: str) -> User:
        email = f"{handle}-{uuid4().hex[:8]}@example.com"
        return await self._add(User(email=email, handle=handle))

    async def member(self, space: Space, handle: str, user: Optional[User] = None) -> SpaceUser:
        user = user or await self.user(handle)
        return await self._add(SpaceUser(space_id=space.id, user_id=user.id, handle=handle))

    async def post(self, author: SpaceUser, body: str) -> Post:
        return await self._add(Post(space_id=author.space_id, space_user_id=author.id, body=body))

    async def reply(self, post: Post, author: SpaceUser, body: str) -> Reply:
        return await self._add(
            Reply(space_id=post.space_id, post_id=post.id, space_user_id=author.id, body=body)
        )


@pytest_asyncio.fixture
async def db(tmp_path):
    service = await init_db_service(tmp_path / "mentions.db")
    yield service
    await close_db_service()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def publisher():
    return RecordingPublisher()
