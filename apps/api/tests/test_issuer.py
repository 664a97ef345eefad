import re
from datetime import timedelta
from uuid import uuid4

from perks_api.core.timeutils import utcnow
from perks_api.models import CouponStatus, GiftCardStatus, Provenance
from perks_api.models.promotions import CouponScope, CouponTemplate, DiscountKind, GiftCardTemplate
from perks_api.services.promotions.issuer import derive_coupon_code, issue_coupon, issue_gift_card


def _template(**overrides) -> CouponTemplate:
    now = utcnow()
    values = dict(
        id=uuid4(),
        code="WELCOME10",
        title="Welcome",
        details="10% off",
        discount_kind=DiscountKind.PERCENTAGE,
        value=10,
        min_spend=20,
        scope=CouponScope.CATEGORY,
        scope_ids=["nails"],
        valid_from=now - timedelta(days=5),
        valid_until=now + timedelta(days=10),
    )
    values.update(overrides)
    return CouponTemplate(**values)


def test_issue_coupon_snapshots_template_terms() -> None:
    template = _template()
    now = utcnow()
    user_id = uuid4()

    instance = issue_coupon(user_id, template, source=Provenance.CODE_CLAIM.value, now=now)

    assert re.fullmatch(r"WELCOME10-[0-9A-Z]{4}", instance.code)
    assert instance.user_id == user_id
    assert instance.coupon_id == template.id
    assert instance.valid_from == now
    assert instance.valid_until == template.valid_until
    assert instance.status == CouponStatus.ACTIVE
    assert instance.source == "code_claim"

    template.title = "Edited later"
    template.scope_ids.append("hair")
    assert instance.title == "Welcome"
    assert instance.scope_ids == ["nails"]


def test_issue_coupon_validity_override() -> None:
    template = _template()
    now = utcnow()
    override = now + timedelta(days=90)

    instance = issue_coupon(uuid4(), template, source="Reward", valid_until=override, now=now)

    assert instance.valid_until == override


def test_derived_codes_avoid_reserved_set() -> None:
    reserved: set[str] = set()
    codes = {derive_coupon_code("BULK", reserved_codes=reserved) for _ in range(200)}

    assert len(codes) == 200
    assert codes == reserved


def test_issue_gift_card_copies_display_fields() -> None:
    template = GiftCardTemplate(id=uuid4(), name="Spa Day", description="Full day", image_url="https://cdn/spa.png")

    instance = issue_gift_card(uuid4(), template, source=Provenance.CAMPAIGN.value)

    assert instance.gift_card_id == template.id
    assert instance.name == "Spa Day"
    assert instance.image_url == "https://cdn/spa.png"
    assert instance.status == GiftCardStatus.ACTIVE
    assert instance.redeemed_at is None
