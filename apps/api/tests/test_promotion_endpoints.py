from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select

from perks_api.models import CouponInstance, GiftCardInstance, RewardKind


def _client(app) -> AsyncClient:
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


def _as(user) -> dict[str, str]:
    return {"X-Session-User": str(user.id)}


@pytest.mark.asyncio
async def test_claim_use_and_list_coupons(app_with_db, seed) -> None:
    app, session_factory = app_with_db
    member = await seed.user()
    await seed.coupon_template(code="WELCOME10", usage_limit=100, usage_count=99)

    async with _client(app) as client:
        claim = await client.post("/api/v1/coupons/claim", json={"code": "WELCOME10"}, headers=_as(member))
        assert claim.status_code == 201
        coupon = claim.json()
        assert coupon["code"].startswith("WELCOME10-")
        assert coupon["status"] == "active"
        assert coupon["discountKind"] == "percentage"
        assert claim.headers["X-Request-ID"]

        exhausted = await client.post("/api/v1/coupons/claim", json={"code": "WELCOME10"}, headers=_as(member))
        assert exhausted.status_code == 409
        assert exhausted.json() == {
            "detail": "Coupon usage limit reached",
            "code": "usage_limit_reached",
            "retryable": False,
        }

        unknown = await client.post("/api/v1/coupons/claim", json={"code": "NOPE"}, headers=_as(member))
        assert unknown.status_code == 404
        assert unknown.json()["code"] == "code_not_found"

        mine = await client.get("/api/v1/coupons/mine", headers=_as(member))
        assert mine.status_code == 200
        assert [item["id"] for item in mine.json()] == [coupon["id"]]

        used = await client.post(f"/api/v1/coupons/mine/{coupon['id']}/use", headers=_as(member))
        assert used.status_code == 200
        assert used.json()["status"] == "used"

        again = await client.post(f"/api/v1/coupons/mine/{coupon['id']}/use", headers=_as(member))
        assert again.status_code == 409
        assert again.json()["code"] == "already_redeemed"


@pytest.mark.asyncio
async def test_session_header_is_required(app_with_db) -> None:
    app, _ = app_with_db

    async with _client(app) as client:
        missing = await client.get("/api/v1/coupons/mine")
        malformed = await client.get("/api/v1/coupons/mine", headers={"X-Session-User": "abc"})
        unknown = await client.get("/api/v1/coupons/mine", headers={"X-Session-User": str(uuid4())})

    assert missing.status_code == 401
    assert malformed.status_code == 400
    assert unknown.status_code == 404


@pytest.mark.asyncio
async def test_validation_errors_return_400(app_with_db, seed) -> None:
    app, _ = app_with_db
    member = await seed.user()

    async with _client(app) as client:
        blank = await client.post("/api/v1/coupons/claim", json={"code": "   "}, headers=_as(member))
        missing = await client.post("/api/v1/coupons/claim", json={}, headers=_as(member))

    assert blank.status_code == 400
    assert blank.json()["code"] == "validation_error"
    assert missing.status_code == 400


@pytest.mark.asyncio
async def test_reward_catalog_and_redemption(app_with_db, seed) -> None:
    app, _ = app_with_db
    member = await seed.user(points=250)
    coupon_template = await seed.coupon_template(code="TREAT")
    gift_template = await seed.gift_card_template()
    cheap = await seed.reward(points=200, kind=RewardKind.COUPON, template_id=coupon_template.id, title="Treat")
    await seed.reward(points=900, kind=RewardKind.GIFTCARD, template_id=gift_template.id, title="Spa")
    await seed.reward(points=5, template_id=coupon_template.id, title="Retired", is_active=False)

    async with _client(app) as client:
        catalog = await client.get("/api/v1/rewards", headers=_as(member))
        assert catalog.status_code == 200
        assert [item["title"] for item in catalog.json()] == ["Treat", "Spa"]

        redeemed = await client.post(f"/api/v1/rewards/{cheap.id}/redeem", headers=_as(member))
        assert redeemed.status_code == 201
        body = redeemed.json()
        assert body["pointsBalance"] == 50
        assert body["transaction"]["amount"] == -200
        assert body["coupon"]["source"] == "Treat"
        assert body["giftCard"] is None

        broke = await client.post(f"/api/v1/rewards/{cheap.id}/redeem", headers=_as(member))
        assert broke.status_code == 409
        assert broke.json()["code"] == "insufficient_points"

        ledger = await client.get("/api/v1/ledger", headers=_as(member))
        assert ledger.status_code == 200
        assert ledger.json()["pointsBalance"] == 50
        assert [entry["reason"] for entry in ledger.json()["transactions"]] == ["Redeemed: Treat"]


@pytest.mark.asyncio
async def test_free_reward_endpoint_returns_no_transaction(app_with_db, seed) -> None:
    app, _ = app_with_db
    member = await seed.user(points=5)
    template = await seed.gift_card_template(name="Birthday Treat")
    reward = await seed.reward(points=0, kind=RewardKind.GIFTCARD, template_id=template.id, title="Birthday")

    async with _client(app) as client:
        redeemed = await client.post(f"/api/v1/rewards/{reward.id}/redeem", headers=_as(member))

    assert redeemed.status_code == 201
    body = redeemed.json()
    assert body["pointsSpent"] == 0
    assert body["pointsBalance"] == 5
    assert body["transaction"] is None
    assert body["giftCard"]["name"] == "Birthday Treat"


@pytest.mark.asyncio
async def test_gift_card_redemption_endpoint_enforces_ownership(app_with_db, seed) -> None:
    app, _ = app_with_db
    owner = await seed.user(points=900)
    stranger = await seed.user()
    template = await seed.gift_card_template()
    reward = await seed.reward(points=900, kind=RewardKind.GIFTCARD, template_id=template.id)

    async with _client(app) as client:
        issued = (await client.post(f"/api/v1/rewards/{reward.id}/redeem", headers=_as(owner))).json()["giftCard"]

        listing = await client.get("/api/v1/gift-cards/mine", headers=_as(owner))
        assert [card["id"] for card in listing.json()] == [issued["id"]]

        forbidden = await client.post(f"/api/v1/gift-cards/mine/{issued['id']}/redeem", headers=_as(stranger))
        assert forbidden.status_code == 403

        redeemed = await client.post(f"/api/v1/gift-cards/mine/{issued['id']}/redeem", headers=_as(owner))
        assert redeemed.status_code == 200
        assert redeemed.json()["status"] == "redeemed"

        repeat = await client.post(f"/api/v1/gift-cards/mine/{issued['id']}/redeem", headers=_as(owner))
        assert repeat.status_code == 409


@pytest.mark.asyncio
async def test_admin_ledger_operations(app_with_db, seed) -> None:
    app, _ = app_with_db
    admin = await seed.user(role="admin")
    member = await seed.user()

    async with _client(app) as client:
        denied = await client.post(
            f"/api/v1/ledger/{member.id}/adjustments",
            json={"amount": 50, "reason": "Goodwill"},
            headers=_as(member),
        )
        assert denied.status_code == 403

        zero = await client.post(
            f"/api/v1/ledger/{member.id}/adjustments",
            json={"amount": 0, "reason": "Nothing"},
            headers=_as(admin),
        )
        assert zero.status_code == 400

        credit = await client.post(
            f"/api/v1/ledger/{member.id}/adjustments",
            json={"amount": 50, "reason": "Goodwill"},
            headers=_as(admin),
        )
        assert credit.status_code == 201
        assert credit.json()["pointsBalance"] == 50

        overdraw = await client.post(
            f"/api/v1/ledger/{member.id}/adjustments",
            json={"amount": -80, "reason": "Correction"},
            headers=_as(admin),
        )
        assert overdraw.status_code == 409

        earned = await client.post(
            f"/api/v1/ledger/{member.id}/booking-earnings",
            json={"bookingId": "bk12345678", "amount": 250},
            headers=_as(admin),
        )
        assert earned.status_code == 200
        assert earned.json()["pointsBalance"] == 52
        assert earned.json()["transaction"]["reason"] == "Completed booking #bk1234"

        ghost = await client.post(
            f"/api/v1/ledger/{uuid4()}/adjustments",
            json={"amount": 5, "reason": "Ghost"},
            headers=_as(admin),
        )
        assert ghost.status_code == 404


@pytest.mark.asyncio
async def test_coupon_campaign_distribution(app_with_db, seed) -> None:
    app, session_factory = app_with_db
    admin = await seed.user(role="admin")
    designer = await seed.user(role="designer")
    await seed.user(role="client")
    template = await seed.coupon_template(code="CAMPAIGN")

    async with _client(app) as client:
        denied = await client.post(
            "/api/v1/campaigns/coupons",
            json={"grantId": str(template.id), "targets": [{"type": "all"}]},
            headers=_as(designer),
        )
        assert denied.status_code == 403

        unauthenticated = await client.post(
            "/api/v1/campaigns/coupons",
            json={"grantId": str(template.id), "targets": [{"type": "all"}]},
        )
        assert unauthenticated.status_code == 401

        malformed = await client.post(
            "/api/v1/campaigns/coupons",
            json={"grantId": str(template.id), "targets": []},
            headers=_as(admin),
        )
        assert malformed.status_code == 400

        missing = await client.post(
            "/api/v1/campaigns/coupons",
            json={"grantId": str(uuid4()), "targets": [{"type": "all"}]},
            headers=_as(admin),
        )
        assert missing.status_code == 404

        response = await client.post(
            "/api/v1/campaigns/coupons",
            json={
                "grantId": str(template.id),
                "targets": [{"type": "role", "ids": ["admin", "designer"]}, {"type": "specific", "ids": [str(admin.id)]}],
            },
            headers=_as(admin),
        )

    assert response.status_code == 200
    body = response.json()
    assert body["distributedCount"] == 2
    assert body["requestedCount"] == 2
    assert body["succeeded"] is True
    assert body["failedChunks"] == []

    async with session_factory() as session:
        owners = set((await session.execute(select(CouponInstance.user_id))).scalars().all())
    assert owners == {admin.id, designer.id}


@pytest.mark.asyncio
async def test_gift_card_campaign_with_no_matches(app_with_db, seed) -> None:
    app, session_factory = app_with_db
    admin = await seed.user(role="admin")
    template = await seed.gift_card_template()

    async with _client(app) as client:
        response = await client.post(
            "/api/v1/campaigns/gift-cards",
            json={"grantId": str(template.id), "targets": [{"type": "pass", "ids": ["nobody-holds-this"]}]},
            headers=_as(admin),
        )

    assert response.status_code == 200
    assert response.json()["distributedCount"] == 0
    assert response.json()["message"] == "No users matched the selected targets"
    async with session_factory() as session:
        count = (await session.execute(select(func.count()).select_from(GiftCardInstance))).scalar_one()
    assert count == 0
