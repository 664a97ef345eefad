"""Point ledger endpoints for members and administrators."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from perks_api.api.dependencies.services import get_user_ledger
from perks_api.api.dependencies.session import require_admin_context, require_request_context
from perks_api.core.context import RequestContext
from perks_api.schemas.promotions import BookingEarningRequest, PointAdjustmentRequest
from perks_api.schemas.responses import PointTransactionResponse, point_transaction_response
from perks_api.services.promotions import PointChange, UserLedger


router = APIRouter(prefix="/ledger", tags=["ledger"])


class LedgerResponse(BaseModel):
    userId: UUID
    pointsBalance: int
    accountOpened: bool
    transactions: List[PointTransactionResponse]


class PointChangeResponse(BaseModel):
    userId: UUID
    pointsBalance: int
    transaction: Optional[PointTransactionResponse]


def _change_response(user_id: UUID, change: PointChange) -> PointChangeResponse:
    return PointChangeResponse(
        userId=user_id,
        pointsBalance=change.balance,
        transaction=point_transaction_response(change.transaction) if change.transaction else None,
    )


@router.get("", response_model=LedgerResponse, summary="Caller's point balance and recent transactions")
async def get_my_ledger(
    limit: int = Query(50, ge=1, le=200),
    context: RequestContext = Depends(require_request_context),
    ledger: UserLedger = Depends(get_user_ledger),
) -> LedgerResponse:
    account = await ledger.get_account(context.user_id)
    transactions = await ledger.list_transactions(context.user_id, limit=limit)
    return LedgerResponse(
        userId=account.user_id,
        pointsBalance=account.balance,
        accountOpened=account.opened,
        transactions=[point_transaction_response(record) for record in transactions],
    )


@router.post(
    "/{user_id}/adjustments",
    response_model=PointChangeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Credit or debit a member's points",
)
async def adjust_points(
    user_id: UUID,
    payload: PointAdjustmentRequest,
    _: RequestContext = Depends(require_admin_context),
    ledger: UserLedger = Depends(get_user_ledger),
) -> PointChangeResponse:
    change = await ledger.adjust_points(user_id, payload.amount, reason=payload.reason)
    return _change_response(user_id, change)


@router.post(
    "/{user_id}/booking-earnings",
    response_model=PointChangeResponse,
    summary="Credit points earned by a completed booking",
)
async def record_booking_earning(
    user_id: UUID,
    payload: BookingEarningRequest,
    _: RequestContext = Depends(require_admin_context),
    ledger: UserLedger = Depends(get_user_ledger),
) -> PointChangeResponse:
    change = await ledger.earn_for_booking(user_id, payload.booking_id, payload.amount)
    return _change_response(user_id, change)
