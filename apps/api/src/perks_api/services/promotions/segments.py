"""Resolve declarative campaign targets into a set of member ids."""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Sequence
from uuid import UUID

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.models.user import User, UserPass
from perks_api.schemas.promotions import (
    AllTarget,
    DistributionTarget,
    NewTarget,
    PassTarget,
    RoleTarget,
    SpecificTarget,
)


class SegmentResolver:
    """Union of every target's member ids; ``all`` makes the rest redundant."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def resolve(self, targets: Sequence[DistributionTarget]) -> set[UUID]:
        if any(isinstance(target, AllTarget) for target in targets):
            user_ids = await self._all_users()
            logger.info("Resolved campaign segment", rule="all", count=len(user_ids))
            return user_ids

        user_ids: set[UUID] = set()
        for target in targets:
            if isinstance(target, NewTarget):
                user_ids |= await self._new_users()
            elif isinstance(target, RoleTarget):
                user_ids |= await self._users_with_roles(target.ids)
            elif isinstance(target, SpecificTarget):
                user_ids |= await self._known_users(target.ids)
            elif isinstance(target, PassTarget):
                user_ids |= await self._pass_holders(target.ids)
            else:
                raise ValueError(f"Unsupported distribution target: {target!r}")

        logger.info(
            "Resolved campaign segment",
            rules=sorted({target.type for target in targets}),
            count=len(user_ids),
        )
        return user_ids

    async def _all_users(self) -> set[UUID]:
        return set((await self._db.execute(select(User.id))).scalars().all())

    async def _new_users(self) -> set[UUID]:
        cutoff = utcnow() - timedelta(days=settings.new_user_window_days)
        stmt = select(User.id).where(User.created_at >= cutoff)
        return set((await self._db.execute(stmt)).scalars().all())

    async def _users_with_roles(self, roles: Iterable[str]) -> set[UUID]:
        role_values = list(roles)
        if not role_values:
            return set()
        stmt = select(User.id).where(User.role.in_(role_values))
        return set((await self._db.execute(stmt)).scalars().all())

    async def _known_users(self, candidate_ids: Iterable[UUID]) -> set[UUID]:
        candidates = set(candidate_ids)
        if not candidates:
            return set()
        stmt = select(User.id).where(User.id.in_(list(candidates)))
        known = set((await self._db.execute(stmt)).scalars().all())
        unknown = candidates - known
        if unknown:
            logger.warning(
                "Dropped unknown members from campaign segment",
                dropped=len(unknown),
                sample=sorted(str(user_id) for user_id in unknown)[:5],
            )
        return known

    async def _pass_holders(self, pass_ids: Iterable[str]) -> set[UUID]:
        values = list(pass_ids)
        if not values:
            return set()
        stmt = select(UserPass.user_id).where(
            UserPass.pass_id.in_(values),
            UserPass.expires_at > utcnow(),
        )
        return set((await self._db.execute(stmt)).scalars().all())


__all__ = ["SegmentResolver"]
