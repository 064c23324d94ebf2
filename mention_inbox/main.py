"""Command line entry point for the mention inbox."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from .config import Config, load_config
from .orm import Post, User
from .pubsub import Pubsub
from .services import (
    LOADER_SOURCE,
    ByAccount,
    GroupedMention,
    MentionService,
    close_db_service,
    get_db_service,
    init_db_service,
)

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mention-inbox", description="@mention inbox tools")
    parser.add_argument("-c", "--config", default=None, help="Path to config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("init-db", help="Create database tables")

    inbox = commands.add_parser("inbox", help="List grouped mentions for an account")
    inbox.add_argument("--user", required=True, help="Account (user) id")
    only = inbox.add_mutually_exclusive_group()
    only.add_argument("--space", default=None, help="Only mentions in this space")
    only.add_argument(
        "--post", action="append", dest="posts", default=None, help="Only this post (repeatable)"
    )

    dismiss = commands.add_parser("dismiss", help="Dismiss an account's mentions in a post")
    dismiss.add_argument("--space", required=True, help="Space id")
    dismiss.add_argument("--user", required=True, help="Account (user) id")
    dismiss.add_argument("--post", required=True, help="Post id")
    return parser


async def run_inbox(
    service: MentionService,
    user_id: str,
    space_id: Optional[str],
    post_ids: Optional[list[str]] = None,
    max_batch_size: Optional[int] = None,
) -> int:
    db = get_db_service()
    async with db.session() as session:
        user = await session.get(User, user_id)
    if user is None:
        logger.error("Unknown user %s", user_id)
        return 1

    if post_ids:
        loader = service.build_loader({"current_user": user}, max_batch_size=max_batch_size)
        loaded = await loader.load_many(LOADER_SOURCE, GroupedMention, post_ids)
        groups = [group for group in loaded if group is not None]
    else:
        groups = await service.grouped_mentions_for(ByAccount(user_id, space_id))

    for group in groups:
        print(
            f"{group.post_id}\t{group.last_occurred_at.isoformat()}\t"
            f"replies={len(group.reply_ids)}\t"
            f"from={','.join(service.mentioner_ids(group))}"
        )
    logger.info("%d posts with active mentions", len(groups))
    return 0


async def run_dismiss(service: MentionService, space_id: str, user_id: str, post_id: str) -> int:
    space_user = await service.directory.find_member_by_account(space_id, user_id)
    if space_user is None:
        logger.error("User %s is not a member of space %s", user_id, space_id)
        return 1

    db = get_db_service()
    async with db.session() as session:
        post = await session.get(Post, post_id)
    if post is None:
        logger.error("Unknown post %s", post_id)
        return 1

    await service.dismiss_all(space_user, post)
    return 0


async def run(args: argparse.Namespace, config: Config) -> int:
    await init_db_service(config.database.path, url=config.database.url, echo=config.database.echo)
    try:
        if args.command == "init-db":
            return 0

        service = MentionService(Pubsub(queue_size=config.pubsub.queue_size))
        if args.command == "inbox":
            return await run_inbox(
                service,
                args.user,
                args.space,
                post_ids=args.posts,
                max_batch_size=config.loader.max_batch_size,
            )
        return await run_dismiss(service, args.space, args.user, args.post)
    finally:
        await close_db_service()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(args.config) if args.config else Config()
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
