"""Coupon and gift card templates, owned instances, and the reward catalog."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    func,
    true,
)
from sqlalchemy.dialects.postgresql import UUID

from perks_api.db.base import Base, VersionedMixin, enum_values


UNLIMITED_USAGE = -1


class DiscountKind(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class CouponScope(str, Enum):
    ALL = "all"
    CATEGORY = "category"
    SERVICE = "service"


class CouponStatus(str, Enum):
    ACTIVE = "active"
    USED = "used"
    EXPIRED = "expired"


class GiftCardStatus(str, Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"


class RewardKind(str, Enum):
    COUPON = "coupon"
    GIFTCARD = "giftcard"


class Provenance(str, Enum):
    """Well-known issuance sources; reward redemptions record the reward title instead."""

    CODE_CLAIM = "code_claim"
    CAMPAIGN = "campaign_distribution"


class CouponTemplate(VersionedMixin, Base):
    """Administrator-defined coupon that members draw instances from."""

    __tablename__ = "coupons"
    __table_args__ = (
        CheckConstraint("usage_limit = -1 OR usage_count <= usage_limit", name="ck_coupons_usage_within_limit"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    code = Column(String, nullable=False, unique=True, index=True)
    title = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    discount_kind = Column(SqlEnum(DiscountKind, name="coupon_discount_kind", values_callable=enum_values), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    min_spend = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    scope = Column(SqlEnum(CouponScope, name="coupon_scope", values_callable=enum_values), nullable=False, default=CouponScope.ALL)
    scope_ids = Column(JSON, nullable=False, default=list)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    usage_limit = Column(Integer, nullable=False, default=UNLIMITED_USAGE, server_default=str(UNLIMITED_USAGE))
    usage_count = Column(Integer, nullable=False, default=0, server_default="0")
    user_claim_limit = Column(Integer, nullable=True)
    is_claimable = Column(Boolean, nullable=False, default=True, server_default=true())
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def has_usage_cap(self) -> bool:
        return self.usage_limit != UNLIMITED_USAGE


class CouponInstance(VersionedMixin, Base):
    """User-owned coupon with discount terms frozen at issuance."""

    __tablename__ = "user_coupons"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    coupon_id = Column(UUID(as_uuid=True), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True, index=True)
    code = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    details = Column(Text, nullable=True)
    discount_kind = Column(SqlEnum(DiscountKind, name="coupon_discount_kind", values_callable=enum_values), nullable=False)
    value = Column(Numeric(12, 2), nullable=False)
    min_spend = Column(Numeric(12, 2), nullable=False, default=0)
    scope = Column(SqlEnum(CouponScope, name="coupon_scope", values_callable=enum_values), nullable=False)
    scope_ids = Column(JSON, nullable=False, default=list)
    valid_from = Column(DateTime(timezone=True), nullable=False)
    valid_until = Column(DateTime(timezone=True), nullable=False)
    status = Column(
        SqlEnum(CouponStatus, name="user_coupon_status", values_callable=enum_values),
        nullable=False,
        default=CouponStatus.ACTIVE,
        server_default=CouponStatus.ACTIVE.value,
    )
    source = Column(String, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class GiftCardTemplate(VersionedMixin, Base):
    __tablename__ = "gift_cards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class GiftCardInstance(VersionedMixin, Base):
    __tablename__ = "user_giftcards"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    gift_card_id = Column(UUID(as_uuid=True), ForeignKey("gift_cards.id", ondelete="SET NULL"), nullable=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    status = Column(
        SqlEnum(GiftCardStatus, name="user_giftcard_status", values_callable=enum_values),
        nullable=False,
        default=GiftCardStatus.ACTIVE,
        server_default=GiftCardStatus.ACTIVE.value,
    )
    source = Column(String, nullable=False)
    redeemed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RedemptionItem(VersionedMixin, Base):
    """Reward catalog entry that converts points into a coupon or gift card."""

    __tablename__ = "redemption_items"
    __table_args__ = (CheckConstraint("points >= 0", name="ck_redemption_items_points_non_negative"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    title = Column(String, nullable=False)
    points = Column(Integer, nullable=False)
    color_theme = Column(String(16), nullable=False, default="orange", server_default="orange")
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    kind = Column(SqlEnum(RewardKind, name="redemption_item_kind", values_callable=enum_values), nullable=False)
    linked_coupon_id = Column(UUID(as_uuid=True), ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True)
    linked_gift_card_id = Column(UUID(as_uuid=True), ForeignKey("gift_cards.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def linked_template_id(self):
        if self.kind == RewardKind.COUPON:
            return self.linked_coupon_id
        return self.linked_gift_card_id
