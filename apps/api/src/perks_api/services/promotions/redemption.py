"""Single-member promotion operations run as optimistic transactions."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from loguru import logger
from sqlalchemy import select

from perks_api.core.context import RequestContext
from perks_api.core.errors import (
    AlreadyRedeemed,
    CodeNotFound,
    CouponExpired,
    CouponInactive,
    CouponNotYetValid,
    Forbidden,
    InstanceNotFound,
    InsufficientPoints,
    PerUserLimitReached,
    PromotionError,
    RewardUnavailable,
    TemplateNotFound,
    UsageLimitReached,
    UserNotFound,
)
from perks_api.core.settings import settings
from perks_api.core.timeutils import ensure_aware, utcnow
from perks_api.db.transactions import SessionFactory, Transaction, run_transaction
from perks_api.models.ledger import PointTransaction, PointTransactionKind
from perks_api.models.promotions import (
    CouponInstance,
    CouponStatus,
    GiftCardInstance,
    GiftCardStatus,
    Provenance,
    RedemptionItem,
    RewardKind,
)
from perks_api.models.user import User
from perks_api.observability.promotions import get_promotion_store
from perks_api.services.notifications import StaffNotifier

from .issuer import issue_coupon, issue_gift_card
from .ledger import apply_points, current_balance
from .template_store import TemplateStore, increment_usage, reload_template


@dataclass
class RewardRedemption:
    reward_id: UUID
    points_spent: int
    points_balance: int
    transaction: PointTransaction | None
    coupon: CouponInstance | None = None
    gift_card: GiftCardInstance | None = None


class RedemptionEngine:
    """Claim coupons by code, spend points on rewards, and redeem owned instances."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        notifier: StaffNotifier | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._store = get_promotion_store()

    async def claim_by_code(self, context: RequestContext, code: str) -> CouponInstance:
        try:
            instance = await self._claim_by_code(context, code)
        except PromotionError as error:
            self._store.record_claim(error.code)
            logger.info("Coupon claim rejected", user_id=str(context.user_id), code=code, reason=error.code)
            raise
        self._store.record_claim("issued")
        logger.info(
            "Coupon claimed by code",
            user_id=str(context.user_id),
            coupon_id=str(instance.coupon_id),
            user_coupon_id=str(instance.id),
        )
        return instance

    async def _claim_by_code(self, context: RequestContext, code: str) -> CouponInstance:
        async with self._session_factory() as session:
            store = TemplateStore(session)
            template = await store.get_coupon_template_by_code(code)
            template_id = template.id
            # Per-user caps are policy-optional and checked before the
            # transaction, so concurrent claims by one member can overshoot.
            if template.user_claim_limit is not None:
                claimed = await store.count_user_instances(context.user_id, template_id)
                if claimed >= template.user_claim_limit:
                    raise PerUserLimitReached(limit=template.user_claim_limit)

        async def work(tx: Transaction) -> CouponInstance:
            current = await reload_template(tx, RewardKind.COUPON, template_id)
            if current is None:
                raise CodeNotFound(code=code)
            now = utcnow()
            if not current.is_active or not current.is_claimable:
                raise CouponInactive()
            if now < ensure_aware(current.valid_from):
                raise CouponNotYetValid()
            if now > ensure_aware(current.valid_until):
                raise CouponExpired()
            if current.has_usage_cap and current.usage_count >= current.usage_limit:
                raise UsageLimitReached()

            instance = issue_coupon(context.user_id, current, source=Provenance.CODE_CLAIM.value, now=now)
            tx.add(instance)
            increment_usage(tx, current)
            return instance

        return await run_transaction(self._session_factory, work, label="coupon.claim")

    async def redeem_reward(self, context: RequestContext, reward_id: UUID) -> RewardRedemption:
        """Spend points on a catalog reward and issue its linked instance atomically.

        Reward-linked coupons leave the template's ``usage_count`` untouched;
        only code claims count against the usage cap. Free rewards issue their
        instance without a ledger record.
        """

        async def work(tx: Transaction) -> RewardRedemption:
            user = await tx.get(User, context.user_id)
            if user is None:
                raise UserNotFound(user_id=str(context.user_id))
            reward = await tx.get(RedemptionItem, reward_id)
            if reward is None or not reward.is_active:
                raise RewardUnavailable(reward_id=str(reward_id))

            balance = current_balance(user)
            if balance < reward.points:
                raise InsufficientPoints(balance=balance, required=reward.points)

            now = utcnow()
            coupon: CouponInstance | None = None
            gift_card: GiftCardInstance | None = None
            template = None
            if reward.linked_template_id is not None:
                template = await reload_template(tx, reward.kind, reward.linked_template_id)
                if template is None:
                    raise TemplateNotFound(reward_id=str(reward.id))

            if reward.kind == RewardKind.COUPON and template is not None:
                coupon = issue_coupon(
                    user.id,
                    template,
                    source=reward.title,
                    valid_until=now + timedelta(days=settings.reward_coupon_validity_days),
                    now=now,
                )
                tx.add(coupon)
            elif reward.kind == RewardKind.GIFTCARD and template is not None:
                gift_card = issue_gift_card(user.id, template, source=reward.title, now=now)
                tx.add(gift_card)

            record: PointTransaction | None = None
            if reward.points > 0:
                record = apply_points(
                    tx,
                    user,
                    -reward.points,
                    kind=PointTransactionKind.REDEMPTION,
                    reason=f"Redeemed: {reward.title}",
                    reference=str(reward.id),
                    now=now,
                )
            return RewardRedemption(
                reward_id=reward.id,
                points_spent=reward.points,
                points_balance=current_balance(user),
                transaction=record,
                coupon=coupon,
                gift_card=gift_card,
            )

        try:
            result = await run_transaction(self._session_factory, work, label="reward.redeem")
        except PromotionError as error:
            self._store.record_redemption("reward", error.code)
            raise
        self._store.record_redemption("reward", "fulfilled")
        logger.info(
            "Redeemed loyalty reward",
            user_id=str(context.user_id),
            reward_id=str(reward_id),
            points=result.points_spent,
            balance=result.points_balance,
        )
        return result

    async def redeem_gift_card_in_store(self, context: RequestContext, instance_id: UUID) -> GiftCardInstance:
        async def work(tx: Transaction) -> GiftCardInstance:
            instance = await tx.get(GiftCardInstance, instance_id)
            if instance is None:
                raise InstanceNotFound(instance_id=str(instance_id))
            if instance.user_id != context.user_id:
                raise Forbidden()
            if instance.status != GiftCardStatus.ACTIVE:
                raise AlreadyRedeemed()
            instance.status = GiftCardStatus.REDEEMED
            instance.redeemed_at = utcnow()
            return instance

        try:
            instance = await run_transaction(self._session_factory, work, label="giftcard.redeem")
        except PromotionError as error:
            self._store.record_redemption("giftcard", error.code)
            raise
        self._store.record_redemption("giftcard", "redeemed")
        logger.info("Gift card redeemed in store", user_id=str(context.user_id), user_gift_card_id=str(instance_id))
        await self._notify_staff(instance)
        return instance

    async def use_coupon(self, context: RequestContext, instance_id: UUID) -> CouponInstance:
        """Consume an owned coupon; a lapsed coupon is marked expired instead."""

        async def work(tx: Transaction) -> tuple[CouponInstance, bool]:
            instance = await tx.get(CouponInstance, instance_id)
            if instance is None:
                raise InstanceNotFound(instance_id=str(instance_id))
            if instance.user_id != context.user_id:
                raise Forbidden()
            if instance.status == CouponStatus.EXPIRED:
                raise CouponExpired()
            if instance.status != CouponStatus.ACTIVE:
                raise AlreadyRedeemed()
            now = utcnow()
            if now > ensure_aware(instance.valid_until):
                instance.status = CouponStatus.EXPIRED
                return instance, False
            instance.status = CouponStatus.USED
            instance.used_at = now
            return instance, True

        try:
            instance, used = await run_transaction(self._session_factory, work, label="coupon.use")
        except PromotionError as error:
            self._store.record_redemption("coupon", error.code)
            raise
        if not used:
            self._store.record_redemption("coupon", CouponExpired.code)
            raise CouponExpired()
        self._store.record_redemption("coupon", "used")
        logger.info("Coupon used", user_id=str(context.user_id), user_coupon_id=str(instance_id))
        return instance

    async def list_member_coupons(self, user_id: UUID) -> list[CouponInstance]:
        async with self._session_factory() as session:
            stmt = (
                select(CouponInstance)
                .where(CouponInstance.user_id == user_id)
                .order_by(CouponInstance.created_at.desc())
            )
            return list((await session.execute(stmt)).scalars().all())

    async def list_member_gift_cards(self, user_id: UUID) -> list[GiftCardInstance]:
        async with self._session_factory() as session:
            stmt = (
                select(GiftCardInstance)
                .where(GiftCardInstance.user_id == user_id)
                .order_by(GiftCardInstance.created_at.desc())
            )
            return list((await session.execute(stmt)).scalars().all())

    async def _notify_staff(self, instance: GiftCardInstance) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.notify_gift_card_redeemed(instance)
        except Exception as exc:
            logger.exception("Staff notification failed after gift card redemption", error=str(exc))
