"""Seed development users, promotion templates, and reward items."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from decimal import Decimal
import os
from typing import TypedDict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.db.base import Base
from perks_api.models import (
    CouponScope,
    CouponTemplate,
    DiscountKind,
    GiftCardTemplate,
    RedemptionItem,
    RewardKind,
    User,
)


class SeedUser(TypedDict):
    email: str
    display_name: str
    role: str
    loyalty_points: int | None


DEV_USERS: list[SeedUser] = [
    {
        "email": os.getenv("DEV_SHORTCUT_CLIENT_EMAIL", "client@perks.dev").lower(),
        "display_name": "Client QA",
        "role": "client",
        "loyalty_points": 500,
    },
    {
        "email": os.getenv("DEV_SHORTCUT_DESIGNER_EMAIL", "designer@perks.dev").lower(),
        "display_name": "Designer QA",
        "role": "designer",
        "loyalty_points": None,
    },
    {
        "email": os.getenv("DEV_SHORTCUT_ADMIN_EMAIL", "admin@perks.dev").lower(),
        "display_name": "Admin QA",
        "role": "admin",
        "loyalty_points": None,
    },
]


async def seed_users(session: AsyncSession) -> None:
    for user in DEV_USERS:
        existing = await session.execute(select(User).where(User.email == user["email"]))
        record = existing.scalar_one_or_none()
        if record:
            record.display_name = user["display_name"]
            record.role = user["role"]
            continue
        session.add(
            User(
                email=user["email"],
                display_name=user["display_name"],
                role=user["role"],
                loyalty_points=user["loyalty_points"],
            )
        )


async def seed_promotions(session: AsyncSession) -> None:
    now = utcnow()
    welcome = (
        await session.execute(select(CouponTemplate).where(CouponTemplate.code == "WELCOME10"))
    ).scalar_one_or_none()
    if welcome is None:
        welcome = CouponTemplate(
            code="WELCOME10",
            title="Welcome 10% off",
            details="10% off your first booking",
            discount_kind=DiscountKind.PERCENTAGE,
            value=Decimal("10"),
            min_spend=Decimal("0"),
            scope=CouponScope.ALL,
            scope_ids=[],
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=365),
            usage_limit=100,
            usage_count=0,
        )
        session.add(welcome)

    gift_card = (
        await session.execute(select(GiftCardTemplate).where(GiftCardTemplate.name == "Free Manicure"))
    ).scalar_one_or_none()
    if gift_card is None:
        gift_card = GiftCardTemplate(name="Free Manicure", description="One complimentary manicure")
        session.add(gift_card)

    await session.flush()

    existing_titles = set((await session.execute(select(RedemptionItem.title))).scalars().all())
    rewards = [
        RedemptionItem(
            title="10% Off Coupon",
            points=200,
            color_theme="orange",
            kind=RewardKind.COUPON,
            linked_coupon_id=welcome.id,
        ),
        RedemptionItem(
            title="Free Manicure",
            points=800,
            color_theme="pink",
            kind=RewardKind.GIFTCARD,
            linked_gift_card_id=gift_card.id,
        ),
    ]
    for reward in rewards:
        if reward.title not in existing_titles:
            session.add(reward)


async def main() -> None:
    engine = create_async_engine(settings.database_url, future=True)
    session_factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        if settings.database_url.startswith("sqlite"):
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        async with session_factory() as session:
            await seed_users(session)
            await seed_promotions(session)
            await session.commit()
        print("Development promotions ready")
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
