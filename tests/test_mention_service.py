"""Tests for MentionService."""

import asyncio
from datetime import datetime
from types import SimpleNamespace

import pytest
from sqlalchemy import select

from mention_inbox.orm import SpaceUser, UserMention
from mention_inbox.pubsub import MENTIONS_DISMISSED
from mention_inbox.services import ByAccount, ByMember, MentionLog, MentionService


async def all_mentions(db):
    async with db.session() as session:
        result = await session.execute(select(UserMention))
        return list(result.scalars().all())


@pytest.fixture
async def ctx(db, factory, publisher):
    """A space with an author, two repliers, a mention target and one post."""
    space = await factory.space()
    author = await factory.member(space, "author")
    ann = await factory.member(space, "ann")
    ben = await factory.member(space, "Ben")
    target = await factory.member(space, "target")
    post = await factory.post(author, "discussion")
    return SimpleNamespace(
        db=db,
        factory=factory,
        publisher=publisher,
        service=MentionService(publisher),
        space=space,
        author=author,
        ann=ann,
        ben=ben,
        target=target,
        post=post,
        reply_1=await factory.reply(post, ann, "@target 1"),
        reply_2=await factory.reply(post, ben, "@target 2"),
    )


async def insert(ctx, **overrides):
    row = {
        "space_id": ctx.space.id,
        "post_id": ctx.post.id,
        "reply_id": None,
        "mentioner_id": ctx.author.id,
        "mentioned_id": ctx.target.id,
        "occurred_at": datetime(2024, 1, 1, 12, 0, 0),
    }
    row.update(overrides)
    async with ctx.db.session() as session:
        await MentionLog().insert_many(session, [row])


async def insert_three(ctx):
    """Three mentions of target from two repliers, reply_1 twice."""
    await insert(
        ctx,
        reply_id=ctx.reply_1.id,
        mentioner_id=ctx.ann.id,
        occurred_at=datetime(2024, 1, 1, 9, 0, 0),
    )
    await insert(
        ctx,
        reply_id=ctx.reply_2.id,
        mentioner_id=ctx.ben.id,
        occurred_at=datetime(2024, 1, 1, 11, 30, 0),
    )
    await insert(
        ctx,
        reply_id=ctx.reply_1.id,
        mentioner_id=ctx.ann.id,
        occurred_at=datetime(2024, 1, 1, 10, 0, 0),
    )


class TestRecord:
    """Test recording mentions from posts and replies."""

    async def test_record_post_with_two_handles(self, ctx):
        """Test that each resolved handle gets one event with a shared timestamp."""
        post = await ctx.factory.post(ctx.author, "hey @ann and @ben, take a look")

        mentioned = await ctx.service.record(post)

        assert set(mentioned) == {ctx.ann.id, ctx.ben.id}
        rows = await all_mentions(ctx.db)
        assert len(rows) == 2
        assert {row.mentioned_id for row in rows} == {ctx.ann.id, ctx.ben.id}
        assert all(row.reply_id is None for row in rows)
        assert all(row.mentioner_id == ctx.author.id for row in rows)
        assert all(row.post_id == post.id for row in rows)
        assert all(row.space_id == ctx.space.id for row in rows)
        assert all(row.dismissed_at is None for row in rows)
        assert rows[0].occurred_at == rows[1].occurred_at

    async def test_record_reply(self, ctx):
        """Test that reply mentions carry the reply id and reply author."""
        reply = await ctx.factory.reply(ctx.post, ctx.ann, "@TARGET what do you think?")

        mentioned = await ctx.service.record(ctx.post, reply)

        assert mentioned == [ctx.target.id]
        [row] = await all_mentions(ctx.db)
        assert row.reply_id == reply.id
        assert row.mentioner_id == ctx.ann.id
        assert row.post_id == ctx.post.id

    async def test_record_unknown_handle(self, ctx):
        """Test that a handle with no member records nothing."""
        post = await ctx.factory.post(ctx.author, "hello @nobody")

        assert await ctx.service.record(post) == []
        assert await all_mentions(ctx.db) == []

    async def test_record_no_handles(self, ctx):
        """Test that a body without mentions records nothing."""
        post = await ctx.factory.post(ctx.author, "plain text, email ann@example.com")

        assert await ctx.service.record(post) == []
        assert await all_mentions(ctx.db) == []

    async def test_record_ignores_other_spaces(self, ctx):
        """Test that handles only resolve within the post's space."""
        other = await ctx.factory.space("Other")
        await ctx.factory.member(other, "carol")
        post = await ctx.factory.post(ctx.author, "@carol @ann")

        assert await ctx.service.record(post) == [ctx.ann.id]

    async def test_record_same_handle_spellings(self, ctx):
        """Test that several spellings of a handle record one event."""
        post = await ctx.factory.post(ctx.author, "@Ben @ben @BEN")

        assert await ctx.service.record(post) == [ctx.ben.id]
        assert len(await all_mentions(ctx.db)) == 1


class TestQueries:
    """Test flat and grouped mention views."""

    async def test_grouped_aggregates_events(self, ctx):
        """Test that three events from two repliers form one group."""
        await insert_three(ctx)

        [group] = await ctx.service.grouped_mentions_for(ctx.target)

        assert group.id == ctx.post.id
        assert group.post_id == ctx.post.id
        assert group.mentioned_id == ctx.target.id
        assert group.reply_ids == {ctx.reply_1.id, ctx.reply_2.id}
        assert group.mentioner_ids == {ctx.ann.id, ctx.ben.id}
        assert group.last_occurred_at == datetime(2024, 1, 1, 11, 30, 0)

    async def test_grouped_excludes_root_reply_null(self, ctx):
        """Test that a mention in the post body adds no reply id."""
        await insert(ctx)
        await insert(ctx, reply_id=ctx.reply_1.id, mentioner_id=ctx.ann.id)

        [group] = await ctx.service.grouped_mentions_for(ByMember(ctx.target.id))

        assert group.reply_ids == {ctx.reply_1.id}
        assert group.mentioner_ids == {ctx.author.id, ctx.ann.id}

    async def test_grouped_ids_containing_commas(self, ctx):
        """Test that aggregated ids come back whole even when they contain commas."""
        user = await ctx.factory.user("lead")
        async with ctx.db.session() as session:
            session.add(
                SpaceUser(id="team,lead", space_id=ctx.space.id, user_id=user.id, handle="lead")
            )
        await insert(ctx, mentioner_id="team,lead", reply_id=ctx.reply_1.id)

        [group] = await ctx.service.grouped_mentions_for(ctx.target)

        assert group.mentioner_ids == {"team,lead"}
        assert group.reply_ids == {ctx.reply_1.id}

    async def test_grouped_root_only(self, ctx):
        """Test a group made only of a post body mention."""
        await insert(ctx)

        [group] = await ctx.service.grouped_mentions_for(ctx.target)

        assert group.reply_ids == frozenset()
        assert group.mentioner_ids == {ctx.author.id}

    async def test_grouped_one_group_per_post(self, ctx):
        """Test that mentions in different posts form separate groups, newest first."""
        other_post = await ctx.factory.post(ctx.author, "another")
        await insert(ctx, occurred_at=datetime(2024, 1, 1, 8, 0, 0))
        await insert(ctx, post_id=other_post.id, occurred_at=datetime(2024, 1, 2, 8, 0, 0))

        groups = await ctx.service.grouped_mentions_for(ctx.target)

        assert [group.post_id for group in groups] == [other_post.id, ctx.post.id]

    async def test_grouped_by_account(self, ctx):
        """Test that scoping by account matches scoping by member."""
        await insert_three(ctx)

        by_account = await ctx.service.grouped_mentions_for(ByAccount(ctx.target.user_id))
        by_member = await ctx.service.grouped_mentions_for(ByMember(ctx.target.id))

        assert len(by_account) == 1
        assert by_account == by_member

    async def test_grouped_by_account_in_space(self, ctx):
        """Test that an account scope can be narrowed to one space."""
        await insert(ctx)
        other_space = await ctx.factory.space("Other")

        elsewhere = await ctx.service.grouped_mentions_for(
            ByAccount(ctx.target.user_id, other_space.id)
        )
        here = await ctx.service.grouped_mentions_for(ByAccount(ctx.target.user_id, ctx.space.id))

        assert elsewhere == []
        assert len(here) == 1

    async def test_grouped_filtered_by_post(self, ctx):
        """Test restricting grouped mentions to given posts."""
        other_post = await ctx.factory.post(ctx.author, "another")
        await insert(ctx)
        await insert(ctx, post_id=other_post.id)

        groups = await ctx.service.grouped_mentions_for(ctx.target, post_ids=[other_post.id])

        assert [group.post_id for group in groups] == [other_post.id]

    async def test_grouped_ignores_other_members(self, ctx):
        """Test that mentions of someone else are not included."""
        await insert(ctx, mentioned_id=ctx.ann.id)

        assert await ctx.service.grouped_mentions_for(ctx.target) == []

    async def test_flat_view(self, ctx):
        """Test that the flat view returns one row per event, newest first."""
        await insert_three(ctx)

        rows = await ctx.service.flat_mentions_for(ctx.target)

        assert [row.occurred_at.hour for row in rows] == [11, 10, 9]

    async def test_mentioner_ids(self, ctx):
        """Test the sorted mentioner id helper."""
        await insert_three(ctx)

        [group] = await ctx.service.grouped_mentions_for(ctx.target)

        assert ctx.service.mentioner_ids(group) == sorted([ctx.ann.id, ctx.ben.id])

    async def test_unsupported_scope(self, ctx):
        """Test that scoping by an unrelated object fails loudly."""
        with pytest.raises(TypeError):
            await ctx.service.grouped_mentions_for("not-a-scope")


class TestDismissAll:
    """Test dismissing mentions."""

    @pytest.fixture
    async def mentioned(self, ctx):
        """Two mentions of target in ctx.post and one in another post."""
        other_post = await ctx.factory.post(ctx.author, "@target and this")
        await ctx.service.record(await ctx.factory.post(ctx.author, "unrelated"))
        await ctx.service.record(ctx.post, ctx.reply_1)
        await ctx.service.record(ctx.post, ctx.reply_2)
        await ctx.service.record(other_post)
        return other_post

    async def test_dismiss_all(self, ctx, mentioned):
        """Test that dismissed mentions leave both views."""
        await ctx.service.dismiss_all(ctx.target, ctx.post)

        flat = await ctx.service.flat_mentions_for(ctx.target)
        grouped = await ctx.service.grouped_mentions_for(ctx.target)
        assert {row.post_id for row in flat} == {mentioned.id}
        assert [group.post_id for group in grouped] == [mentioned.id]
        assert ctx.publisher.published == [(MENTIONS_DISMISSED, ctx.post.id, ctx.post)]

    async def test_dismiss_all_stamps_rows(self, ctx, mentioned):
        """Test that matching rows get a dismissed_at and others do not."""
        await ctx.service.dismiss_all(ctx.target, ctx.post)

        rows = await all_mentions(ctx.db)
        dismissed = [row for row in rows if row.dismissed_at is not None]
        assert len(rows) == 3
        assert len(dismissed) == 2
        assert {row.post_id for row in dismissed} == {ctx.post.id}

    async def test_dismiss_all_twice(self, ctx, mentioned):
        """Test that a second dismissal is a no-op that still notifies."""
        await ctx.service.dismiss_all(ctx.target, ctx.post)
        first = {row.id: row.dismissed_at for row in await all_mentions(ctx.db)}

        await ctx.service.dismiss_all(ctx.target, ctx.post)
        second = {row.id: row.dismissed_at for row in await all_mentions(ctx.db)}

        assert first == second
        assert len(ctx.publisher.published) == 2

    async def test_dismiss_all_nothing_to_dismiss(self, ctx, mentioned):
        """Test that dismissing a member with no mentions succeeds."""
        await ctx.service.dismiss_all(ctx.author, ctx.post)

        assert len(await ctx.service.flat_mentions_for(ctx.target)) == 3
        assert ctx.publisher.published == [(MENTIONS_DISMISSED, ctx.post.id, ctx.post)]

    async def test_dismiss_all_concurrently(self, ctx, mentioned):
        """Test that concurrent dismissals of the same pair both succeed."""
        await asyncio.gather(
            ctx.service.dismiss_all(ctx.target, ctx.post),
            ctx.service.dismiss_all(ctx.target, ctx.post),
        )

        rows = await all_mentions(ctx.db)
        assert all((row.dismissed_at is not None) == (row.post_id == ctx.post.id) for row in rows)
        assert len(ctx.publisher.published) == 2
