"""Member gift card endpoints."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends

from perks_api.api.dependencies.services import get_redemption_engine
from perks_api.api.dependencies.session import require_request_context
from perks_api.core.context import RequestContext
from perks_api.schemas.responses import GiftCardInstanceResponse, gift_card_instance_response
from perks_api.services.promotions import RedemptionEngine


router = APIRouter(prefix="/gift-cards", tags=["gift-cards"])


@router.get("/mine", response_model=List[GiftCardInstanceResponse], summary="List the caller's gift cards")
async def list_my_gift_cards(
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> List[GiftCardInstanceResponse]:
    instances = await engine.list_member_gift_cards(context.user_id)
    return [gift_card_instance_response(instance) for instance in instances]


@router.post(
    "/mine/{instance_id}/redeem",
    response_model=GiftCardInstanceResponse,
    summary="Redeem an owned gift card in store",
)
async def redeem_gift_card(
    instance_id: UUID,
    context: RequestContext = Depends(require_request_context),
    engine: RedemptionEngine = Depends(get_redemption_engine),
) -> GiftCardInstanceResponse:
    instance = await engine.redeem_gift_card_in_store(context, instance_id)
    return gift_card_instance_response(instance)
