"""Read access to promotion templates and the reward catalog."""

from __future__ import annotations

from typing import Union
from uuid import UUID

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from perks_api.core.errors import CodeNotFound, TemplateNotFound, UsageLimitReached
from perks_api.db.transactions import Transaction
from perks_api.models.promotions import (
    CouponInstance,
    CouponTemplate,
    GiftCardTemplate,
    RedemptionItem,
    RewardKind,
)

Template = Union[CouponTemplate, GiftCardTemplate]

_TEMPLATE_MODELS: dict[RewardKind, type] = {
    RewardKind.COUPON: CouponTemplate,
    RewardKind.GIFTCARD: GiftCardTemplate,
}


def template_model(kind: RewardKind) -> type:
    return _TEMPLATE_MODELS[RewardKind(kind)]


class TemplateStore:
    """Lookups against coupon/gift card templates outside any transaction."""

    def __init__(self, db_session: AsyncSession) -> None:
        self._db = db_session

    async def get_coupon_template_by_code(self, code: str) -> CouponTemplate:
        stmt = select(CouponTemplate).where(CouponTemplate.code == code.strip())
        template = (await self._db.execute(stmt)).scalar_one_or_none()
        if template is None:
            raise CodeNotFound(code=code)
        return template

    async def get_template(self, kind: RewardKind, template_id: UUID) -> Template:
        template = await self._db.get(template_model(kind), template_id)
        if template is None:
            raise TemplateNotFound(kind=RewardKind(kind).value, template_id=str(template_id))
        return template

    async def count_user_instances(self, user_id: UUID, template_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(CouponInstance)
            .where(CouponInstance.user_id == user_id, CouponInstance.coupon_id == template_id)
        )
        return int((await self._db.execute(stmt)).scalar_one())

    async def list_active_rewards(self) -> list[RedemptionItem]:
        stmt = (
            select(RedemptionItem)
            .where(RedemptionItem.is_active.is_(True))
            .order_by(RedemptionItem.points.asc(), RedemptionItem.created_at.asc())
        )
        rewards = list((await self._db.execute(stmt)).scalars().all())
        logger.debug("Fetched redemption items", count=len(rewards))
        return rewards


async def reload_template(tx: Transaction, kind: RewardKind, template_id: UUID) -> Template | None:
    """Re-read a template through the transaction so its version is tracked."""

    return await tx.get(template_model(kind), template_id)


def increment_usage(tx: Transaction, template: CouponTemplate, by: int = 1) -> None:
    """Bump ``usage_count`` as part of ``tx``; only the claim flow may call this."""

    if template not in tx.session:
        raise RuntimeError("Template usage must be incremented inside the transaction that read it")
    new_count = int(template.usage_count or 0) + by
    if template.has_usage_cap and new_count > template.usage_limit:
        raise UsageLimitReached(template_id=str(template.id))
    template.usage_count = new_count
