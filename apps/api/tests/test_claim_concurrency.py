import asyncio

import pytest
from sqlalchemy import func, select

from perks_api.core.context import RequestContext
from perks_api.core.errors import UsageLimitReached
from perks_api.core.settings import settings
from perks_api.models import CouponInstance, CouponTemplate, RewardKind, User
from perks_api.services.promotions import RedemptionEngine


@pytest.fixture(autouse=True)
def _generous_retries(monkeypatch):
    monkeypatch.setattr(settings, "transaction_max_attempts", 25)
    monkeypatch.setattr(settings, "transaction_retry_backoff_seconds", 0.005)


@pytest.mark.asyncio
async def test_concurrent_claims_never_exceed_usage_limit(file_session_factory, file_seed) -> None:
    limit = 3
    claimers = [await file_seed.user() for _ in range(8)]
    template = await file_seed.coupon_template(code="FLASH", usage_limit=limit)
    engine = RedemptionEngine(file_session_factory)

    outcomes = await asyncio.gather(
        *(engine.claim_by_code(RequestContext(user_id=user.id), "FLASH") for user in claimers),
        return_exceptions=True,
    )

    issued = [outcome for outcome in outcomes if isinstance(outcome, CouponInstance)]
    rejected = [outcome for outcome in outcomes if isinstance(outcome, UsageLimitReached)]
    assert len(issued) == min(limit, len(claimers))
    assert len(rejected) == len(claimers) - limit

    async with file_session_factory() as session:
        stored = await session.get(CouponTemplate, template.id)
        instances = (await session.execute(select(func.count()).select_from(CouponInstance))).scalar_one()
    assert stored.usage_count == limit
    assert instances == limit


@pytest.mark.asyncio
async def test_concurrent_claims_below_limit_all_succeed(file_session_factory, file_seed) -> None:
    claimers = [await file_seed.user() for _ in range(4)]
    template = await file_seed.coupon_template(code="PLENTY", usage_limit=10)
    engine = RedemptionEngine(file_session_factory)

    outcomes = await asyncio.gather(
        *(engine.claim_by_code(RequestContext(user_id=user.id), "PLENTY") for user in claimers),
    )

    assert len(outcomes) == 4
    async with file_session_factory() as session:
        assert (await session.get(CouponTemplate, template.id)).usage_count == 4


@pytest.mark.asyncio
async def test_concurrent_reward_redemptions_cannot_double_spend(file_session_factory, file_seed) -> None:
    user = await file_seed.user(points=300)
    template = await file_seed.coupon_template(code="TREAT")
    reward = await file_seed.reward(points=200, kind=RewardKind.COUPON, template_id=template.id)
    engine = RedemptionEngine(file_session_factory)
    ctx = RequestContext(user_id=user.id)

    outcomes = await asyncio.gather(
        *(engine.redeem_reward(ctx, reward.id) for _ in range(3)),
        return_exceptions=True,
    )

    succeeded = [outcome for outcome in outcomes if not isinstance(outcome, Exception)]
    assert len(succeeded) == 1
    async with file_session_factory() as session:
        assert (await session.get(User, user.id)).loyalty_points == 100
