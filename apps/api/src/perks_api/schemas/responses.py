"""Response payloads shared by the promotion endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from perks_api.core.timeutils import ensure_aware
from perks_api.models.ledger import PointTransaction
from perks_api.models.promotions import CouponInstance, GiftCardInstance, RedemptionItem


class CouponInstanceResponse(BaseModel):
    id: UUID
    couponId: Optional[UUID]
    code: str
    title: str
    details: Optional[str]
    discountKind: str
    value: float
    minSpend: float
    scope: str
    scopeIds: List[str]
    validFrom: datetime
    validUntil: datetime
    status: str
    source: str
    usedAt: Optional[datetime]
    createdAt: datetime


class GiftCardInstanceResponse(BaseModel):
    id: UUID
    giftCardId: Optional[UUID]
    name: str
    description: Optional[str]
    imageUrl: Optional[str]
    status: str
    source: str
    redeemedAt: Optional[datetime]
    createdAt: datetime


class PointTransactionResponse(BaseModel):
    id: UUID
    kind: str
    amount: int
    reason: str
    reference: Optional[str]
    createdAt: datetime


class RedemptionItemResponse(BaseModel):
    id: UUID
    title: str
    points: int
    colorTheme: str
    kind: str
    linkedTemplateId: Optional[UUID]


def _aware(value: datetime | None) -> datetime | None:
    return ensure_aware(value) if value is not None else None


def coupon_instance_response(instance: CouponInstance) -> CouponInstanceResponse:
    return CouponInstanceResponse(
        id=instance.id,
        couponId=instance.coupon_id,
        code=instance.code,
        title=instance.title,
        details=instance.details,
        discountKind=instance.discount_kind.value,
        value=float(instance.value),
        minSpend=float(instance.min_spend or 0),
        scope=instance.scope.value,
        scopeIds=[str(item) for item in instance.scope_ids or []],
        validFrom=ensure_aware(instance.valid_from),
        validUntil=ensure_aware(instance.valid_until),
        status=instance.status.value,
        source=instance.source,
        usedAt=_aware(instance.used_at),
        createdAt=ensure_aware(instance.created_at),
    )


def gift_card_instance_response(instance: GiftCardInstance) -> GiftCardInstanceResponse:
    return GiftCardInstanceResponse(
        id=instance.id,
        giftCardId=instance.gift_card_id,
        name=instance.name,
        description=instance.description,
        imageUrl=instance.image_url,
        status=instance.status.value,
        source=instance.source,
        redeemedAt=_aware(instance.redeemed_at),
        createdAt=ensure_aware(instance.created_at),
    )


def point_transaction_response(record: PointTransaction) -> PointTransactionResponse:
    return PointTransactionResponse(
        id=record.id,
        kind=record.kind.value,
        amount=record.amount,
        reason=record.reason,
        reference=record.reference,
        createdAt=ensure_aware(record.created_at),
    )


def redemption_item_response(item: RedemptionItem) -> RedemptionItemResponse:
    return RedemptionItemResponse(
        id=item.id,
        title=item.title,
        points=item.points,
        colorTheme=item.color_theme,
        kind=item.kind.value,
        linkedTemplateId=item.linked_template_id,
    )
