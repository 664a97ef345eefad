"""Reward catalog endpoints."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from perks_api.api.dependencies.services import get_redemption_engine
from perks_api.api.dependencies.session import require_request_context
from perks_api.core.context import RequestContext
from perks_api.db.session import get_session
from perks_api.schemas.responses import (
    CouponInstanceResponse,
    GiftCardInstanceResponse,
    PointTransactionResponse,
    RedemptionItemResponse,
    coupon_instance_response,
    gift_card_instance_response,
    point_transaction_response,
    redemption_item_response,
)
from perks_api.services.promotions import RedemptionEngine, TemplateStore


router = APIRouter(prefix="/rewards", tags=["rewards"])


class RewardRedemptionResponse(BaseModel):
    rewardId: UUID
    pointsSpent: int
    pointsBalance: int
    transaction: Optional[PointTransactionResponse] = None
    coupon: Optional[CouponInstanceResponse] = None
    giftCard: Optional[GiftCardInstanceResponse] = None


@router.get("", response_model=List[RedemptionItemResponse], summary="List active rewards")
async def list_rewards(
    _: RequestContext = Depends(require_request_context),
    db: AsyncSession = Depends(get_session),
) -> List[RedemptionItemResponse]:
    rewards = await TemplateStore(db).list_active_rewards()
    return [redemption_item_response(reward) for reward in rewards]


@router.post(
    "/{reward_id}/redeem",
    response_model=RewardRedemptionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Spend points on a reward",
)
async def redeem_reward(
    reward_id: UUID,
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> RewardRedemptionResponse:
    result = await engine.redeem_reward(context, reward_id)
    return RewardRedemptionResponse(
        rewardId=result.reward_id,
        pointsSpent=result.points_spent,
        pointsBalance=result.points_balance,
        transaction=point_transaction_response(result.transaction) if result.transaction else None,
        coupon=coupon_instance_response(result.coupon) if result.coupon else None,
        giftCard=gift_card_instance_response(result.gift_card) if result.gift_card else None,
    )
