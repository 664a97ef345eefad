"""Member coupon endpoints: claim by code, list, and use at checkout."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status

from perks_api.api.dependencies.services import get_redemption_engine
from perks_api.api.dependencies.session import require_request_context
from perks_api.core.context import RequestContext
from perks_api.schemas.promotions import ClaimCouponRequest
from perks_api.schemas.responses import CouponInstanceResponse, coupon_instance_response
from perks_api.services.promotions import RedemptionEngine


router = APIRouter(prefix="/coupons", tags=["coupons"])


@router.post(
    "/claim",
    response_model=CouponInstanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Claim a coupon by promo code",
)
async def claim_coupon(
    payload: ClaimCouponRequest,
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> CouponInstanceResponse:
    instance = await engine.claim_by_code(context, payload.code)
    return coupon_instance_response(instance)


@router.get("/mine", response_model=List[CouponInstanceResponse], summary="List the caller's coupons")
async def list_my_coupons(
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> List[CouponInstanceResponse]:
    instances = await engine.list_member_coupons(context.user_id)
    return [coupon_instance_response(instance) for instance in instances]


@router.post(
    "/mine/{instance_id}/use",
    response_model=CouponInstanceResponse,
    summary="Mark an owned coupon as used",
)
async def use_coupon(
    instance_id: UUID,
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> CouponInstanceResponse:
    instance = await engine.use_coupon(context, instance_id)
    return coupon_instance_response(instance)
