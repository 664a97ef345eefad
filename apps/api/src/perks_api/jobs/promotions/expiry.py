"""Sweep member coupons whose validity window has closed."""

# meta: job: coupon-expiry

from __future__ import annotations

from datetime import datetime
from typing import Dict

from loguru import logger
from sqlalchemy import select, update

from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.db.transactions import SessionFactory
from perks_api.models.promotions import CouponInstance, CouponStatus


async def expire_coupon_instances(
    *,
    session_factory: SessionFactory,
    now: datetime | None = None,
    limit: int | None = None,
) -> Dict[str, int]:
    """Mark up to ``limit`` lapsed active coupons as expired.

    The UPDATE re-checks the status and bumps the row version, so a coupon
    used concurrently is either skipped here or forces the other writer to
    retry against the expired row.
    """

    reference = now or utcnow()
    batch_size = limit or settings.coupon_expiry_batch_size

    async with session_factory() as session:
        stmt = (
            select(CouponInstance.id)
            .where(
                CouponInstance.status == CouponStatus.ACTIVE,
                CouponInstance.valid_until < reference,
            )
            .order_by(CouponInstance.valid_until.asc())
            .limit(batch_size)
        )
        candidate_ids = list((await session.execute(stmt)).scalars().all())
        if not candidate_ids:
            summary = {"candidates": 0, "expired": 0}
            logger.debug("Coupon expiry sweep found nothing to expire")
            return summary

        result = await session.execute(
            update(CouponInstance)
            .where(
                CouponInstance.id.in_(candidate_ids),
                CouponInstance.status == CouponStatus.ACTIVE,
            )
            .values(status=CouponStatus.EXPIRED, version=CouponInstance.version + 1)
            .execution_options(synchronize_session=False)
        )
        await session.commit()

    summary = {"candidates": len(candidate_ids), "expired": int(result.rowcount or 0)}
    logger.bind(summary=summary).info("Coupon expiry sweep completed")
    return summary
