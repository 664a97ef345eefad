import sys
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from perks_api.app import create_app  # noqa: E402
from perks_api.core.timeutils import utcnow  # noqa: E402
from perks_api.db.base import Base  # noqa: E402
from perks_api.db.session import get_session, get_session_factory  # noqa: E402
from perks_api.models import (  # noqa: E402
    CouponScope,
    CouponTemplate,
    DiscountKind,
    GiftCardTemplate,
    RedemptionItem,
    RewardKind,
    User,
    UserPass,
)
from perks_api.observability.promotions import get_promotion_store  # noqa: E402


async def _build_factory(url: str, *, enforce_foreign_keys: bool = False):
    engine = create_async_engine(url, future=True)
    if enforce_foreign_keys:

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine, async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def session_factory():
    engine, factory = await _build_factory("sqlite+aiosqlite:///:memory:")
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Factory backed by a file so concurrent sessions get separate connections."""

    engine, factory = await _build_factory(f"sqlite+aiosqlite:///{tmp_path / 'perks.db'}")
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def fk_session_factory(tmp_path):
    """File-backed factory with SQLite foreign key enforcement switched on."""

    engine, factory = await _build_factory(
        f"sqlite+aiosqlite:///{tmp_path / 'perks-fk.db'}", enforce_foreign_keys=True
    )
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture(autouse=True)
def reset_promotion_store():
    store = get_promotion_store()
    store.reset()
    yield store
    store.reset()


class Seeder:
    """Writes fixture rows through a session factory and returns them detached."""

    def __init__(self, session_factory) -> None:
        self._session_factory = session_factory

    async def _save(self, *records):
        async with self._session_factory() as session:
            session.add_all(records)
            await session.commit()
        return records[0] if len(records) == 1 else records

    async def user(
        self,
        *,
        role: str = "client",
        points: int | None = None,
        created_at: datetime | None = None,
        push_token: str | None = None,
        email: str | None = None,
    ) -> User:
        user_id = uuid4()
        return await self._save(
            User(
                id=user_id,
                email=email or f"{user_id.hex[:12]}@example.com",
                role=role,
                loyalty_points=points,
                push_token=push_token,
                created_at=created_at or utcnow(),
                updated_at=utcnow(),
            )
        )

    async def users(self, count: int, *, role: str = "client") -> list[UUID]:
        now = utcnow()
        records = [
            User(id=uuid4(), email=f"bulk-{index}@example.com", role=role, created_at=now, updated_at=now)
            for index in range(count)
        ]
        async with self._session_factory() as session:
            session.add_all(records)
            await session.commit()
        return [record.id for record in records]

    async def user_pass(self, user_id: UUID, pass_id: str, *, expires_at: datetime | None = None) -> UserPass:
        return await self._save(
            UserPass(
                user_id=user_id,
                pass_id=pass_id,
                pass_name=pass_id.title(),
                expires_at=expires_at or utcnow() + timedelta(days=30),
                created_at=utcnow(),
            )
        )

    async def coupon_template(
        self,
        *,
        code: str | None = None,
        usage_limit: int = -1,
        usage_count: int = 0,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        is_active: bool = True,
        is_claimable: bool = True,
        user_claim_limit: int | None = None,
    ) -> CouponTemplate:
        now = utcnow()
        return await self._save(
            CouponTemplate(
                code=code or f"PROMO{uuid4().hex[:6].upper()}",
                title="Ten percent off",
                details="Any service",
                discount_kind=DiscountKind.PERCENTAGE,
                value=Decimal("10"),
                min_spend=Decimal("50"),
                scope=CouponScope.ALL,
                scope_ids=[],
                valid_from=valid_from or now - timedelta(days=1),
                valid_until=valid_until or now + timedelta(days=30),
                usage_limit=usage_limit,
                usage_count=usage_count,
                user_claim_limit=user_claim_limit,
                is_active=is_active,
                is_claimable=is_claimable,
                created_at=now,
            )
        )

    async def gift_card_template(self, *, name: str = "Free Manicure") -> GiftCardTemplate:
        return await self._save(
            GiftCardTemplate(name=name, description="One complimentary service", created_at=utcnow())
        )

    async def reward(
        self,
        *,
        points: int,
        kind: RewardKind = RewardKind.COUPON,
        template_id: UUID | None = None,
        title: str = "Reward",
        is_active: bool = True,
    ) -> RedemptionItem:
        return await self._save(
            RedemptionItem(
                title=title,
                points=points,
                kind=kind,
                is_active=is_active,
                linked_coupon_id=template_id if kind == RewardKind.COUPON else None,
                linked_gift_card_id=template_id if kind == RewardKind.GIFTCARD else None,
                created_at=utcnow(),
            )
        )


@pytest.fixture
def seed(session_factory) -> Seeder:
    return Seeder(session_factory)


@pytest.fixture
def file_seed(file_session_factory) -> Seeder:
    return Seeder(file_session_factory)


@pytest.fixture
def fk_seed(fk_session_factory) -> Seeder:
    return Seeder(fk_session_factory)


@pytest_asyncio.fixture
async def app_with_db(session_factory):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
