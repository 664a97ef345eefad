from datetime import timedelta

import pytest
from sqlalchemy import select

from perks_api.core.context import RequestContext
from perks_api.core.errors import CouponExpired
from perks_api.core.timeutils import utcnow
from perks_api.jobs.promotions import expire_coupon_instances
from perks_api.models import CouponInstance, CouponStatus
from perks_api.services.promotions import RedemptionEngine
from perks_api.workers import CouponExpiryWorker


async def _claim_with_validity(session_factory, seed, user, code, valid_until):
    await seed.coupon_template(code=code)
    instance = await RedemptionEngine(session_factory).claim_by_code(RequestContext(user_id=user.id), code)
    async with session_factory() as session:
        stored = await session.get(CouponInstance, instance.id)
        stored.valid_until = valid_until
        await session.commit()
    return instance


@pytest.mark.asyncio
async def test_sweep_expires_only_lapsed_active_coupons(session_factory, seed) -> None:
    user = await seed.user()
    now = utcnow()
    lapsed = await _claim_with_validity(session_factory, seed, user, "LAPSED", now - timedelta(hours=1))
    current = await _claim_with_validity(session_factory, seed, user, "CURRENT", now + timedelta(days=3))
    used = await _claim_with_validity(session_factory, seed, user, "USED", now + timedelta(days=3))
    await RedemptionEngine(session_factory).use_coupon(RequestContext(user_id=user.id), used.id)
    async with session_factory() as session:
        stored = await session.get(CouponInstance, used.id)
        stored.valid_until = now - timedelta(hours=2)
        await session.commit()

    summary = await expire_coupon_instances(session_factory=session_factory)

    assert summary == {"candidates": 1, "expired": 1}
    async with session_factory() as session:
        statuses = dict((await session.execute(select(CouponInstance.id, CouponInstance.status))).all())
    assert statuses[lapsed.id] == CouponStatus.EXPIRED
    assert statuses[current.id] == CouponStatus.ACTIVE
    assert statuses[used.id] == CouponStatus.USED

    assert await expire_coupon_instances(session_factory=session_factory) == {"candidates": 0, "expired": 0}


@pytest.mark.asyncio
async def test_sweep_respects_batch_limit(session_factory, seed) -> None:
    user = await seed.user()
    past = utcnow() - timedelta(days=1)
    for index in range(3):
        await _claim_with_validity(session_factory, seed, user, f"BATCH{index}", past)

    first = await expire_coupon_instances(session_factory=session_factory, limit=2)
    second = await expire_coupon_instances(session_factory=session_factory, limit=2)

    assert first["expired"] == 2
    assert second["expired"] == 1


@pytest.mark.asyncio
async def test_expired_coupon_cannot_be_used(session_factory, seed) -> None:
    user = await seed.user()
    lapsed = await _claim_with_validity(session_factory, seed, user, "GONE", utcnow() - timedelta(minutes=5))
    await expire_coupon_instances(session_factory=session_factory)

    with pytest.raises(CouponExpired):
        await RedemptionEngine(session_factory).use_coupon(RequestContext(user_id=user.id), lapsed.id)


@pytest.mark.asyncio
async def test_sweep_bumps_row_version(session_factory, seed) -> None:
    user = await seed.user()
    lapsed = await _claim_with_validity(session_factory, seed, user, "RACE", utcnow() - timedelta(minutes=5))
    async with session_factory() as session:
        before = (await session.get(CouponInstance, lapsed.id)).version

    await expire_coupon_instances(session_factory=session_factory)

    async with session_factory() as session:
        after = await session.get(CouponInstance, lapsed.id)
    assert after.version == before + 1


@pytest.mark.asyncio
async def test_worker_run_once_and_lifecycle(session_factory, seed) -> None:
    user = await seed.user()
    await _claim_with_validity(session_factory, seed, user, "WORKER", utcnow() - timedelta(minutes=1))
    worker = CouponExpiryWorker(session_factory, interval_seconds=3600, batch_size=10)

    summary = await worker.run_once()
    assert summary["expired"] == 1

    worker.start()
    assert worker.is_running
    await worker.stop()
    assert worker.is_running is False
