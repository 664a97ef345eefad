"""Pure constructors for user-owned coupon and gift card instances.

Nothing here touches the database: callers write the returned records inside
their own transaction or batch, which lets single-user redemption and bulk
distribution share the same issuance rules.
"""

from __future__ import annotations

import secrets
import string
from datetime import datetime
from typing import MutableSet
from uuid import UUID, uuid4

from perks_api.core.settings import settings
from perks_api.core.timeutils import utcnow
from perks_api.models.promotions import (
    CouponInstance,
    CouponScope,
    CouponStatus,
    CouponTemplate,
    GiftCardInstance,
    GiftCardStatus,
    GiftCardTemplate,
)

_SUFFIX_ALPHABET = string.digits + string.ascii_uppercase


def random_suffix(length: int | None = None) -> str:
    size = length or settings.coupon_code_suffix_length
    return "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(size))


def derive_coupon_code(template_code: str, *, reserved_codes: MutableSet[str] | None = None) -> str:
    """Return ``<template code>-<suffix>``, avoiding codes already in ``reserved_codes``."""

    while True:
        candidate = f"{template_code}-{random_suffix()}"
        if reserved_codes is None:
            return candidate
        if candidate not in reserved_codes:
            reserved_codes.add(candidate)
            return candidate


def issue_coupon(
    user_id: UUID,
    template: CouponTemplate,
    *,
    source: str,
    valid_until: datetime | None = None,
    now: datetime | None = None,
    reserved_codes: MutableSet[str] | None = None,
) -> CouponInstance:
    issued_at = now or utcnow()
    return CouponInstance(
        id=uuid4(),
        user_id=user_id,
        coupon_id=template.id,
        code=derive_coupon_code(template.code, reserved_codes=reserved_codes),
        title=template.title,
        details=template.details or "",
        discount_kind=template.discount_kind,
        value=template.value,
        min_spend=template.min_spend or 0,
        scope=template.scope or CouponScope.ALL,
        scope_ids=list(template.scope_ids or []),
        valid_from=issued_at,
        valid_until=valid_until or template.valid_until,
        status=CouponStatus.ACTIVE,
        source=source,
        created_at=issued_at,
    )


def issue_gift_card(
    user_id: UUID,
    template: GiftCardTemplate,
    *,
    source: str,
    now: datetime | None = None,
) -> GiftCardInstance:
    return GiftCardInstance(
        id=uuid4(),
        user_id=user_id,
        gift_card_id=template.id,
        name=template.name,
        description=template.description or "",
        image_url=template.image_url,
        status=GiftCardStatus.ACTIVE,
        source=source,
        created_at=now or utcnow(),
    )
