"""Membership directory lookups."""

from typing import Iterable, Optional

from sqlalchemy import func, select

from ..orm.space_user import SpaceUser
from .database import get_db_service


class MembershipDirectory:
    """Resolves handles and accounts to space users within one space."""

    async def find_members(self, space_id: str, handles: Iterable[str]) -> list[str]:
        """Return ids of space users in ``space_id`` whose handle matches any of ``handles``.

        Matching is case-insensitive. Handles without a member are dropped.
        """
        lower_handles = {handle.lower() for handle in handles}
        if not lower_handles:
            return []

        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(
                select(SpaceUser.id).where(
                    SpaceUser.space_id == space_id,
                    func.lower(SpaceUser.handle).in_(lower_handles),
                )
            )
            return list(result.scalars().all())

    async def find_member_by_account(self, space_id: str, user_id: str) -> Optional[SpaceUser]:
        """Return the space user for an account in a space, if the account is a member."""
        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(
                select(SpaceUser).where(
                    SpaceUser.space_id == space_id,
                    SpaceUser.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()
