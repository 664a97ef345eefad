"""Administrative campaign endpoints that fan a grant out to a member segment."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from perks_api.api.dependencies.services import get_batch_distributor
from perks_api.api.dependencies.session import require_admin_context
from perks_api.core.context import RequestContext
from perks_api.db.session import get_session
from perks_api.models.promotions import RewardKind
from perks_api.schemas.promotions import DistributionRequest
from perks_api.services.promotions import BatchDistributor, DistributionResult, SegmentResolver


router = APIRouter(prefix="/campaigns", tags=["campaigns"])


class FailedChunkResponse(BaseModel):
    index: int
    size: int
    reason: Optional[str]


class DistributionResponse(BaseModel):
    distributedCount: int
    requestedCount: int
    succeeded: bool
    failedChunks: List[FailedChunkResponse]
    message: str


def _distribution_response(result: DistributionResult) -> DistributionResponse:
    noun = "coupon" if result.kind == RewardKind.COUPON else "gift card"
    if result.requested_count == 0:
        message = "No users matched the selected targets"
    elif result.succeeded:
        message = f"Distributed {noun} to {result.distributed_count} users"
    else:
        message = (
            f"Distributed {noun} to {result.distributed_count} of {result.requested_count} users; "
            f"{len(result.failed_chunks)} batch(es) failed"
        )
    return DistributionResponse(
        distributedCount=result.distributed_count,
        requestedCount=result.requested_count,
        succeeded=result.succeeded,
        failedChunks=[
            FailedChunkResponse(index=chunk.index, size=chunk.size, reason=chunk.reason)
            for chunk in result.failed_chunks
        ],
        message=message,
    )


async def _run_campaign(
    kind: RewardKind,
    payload: DistributionRequest,
    context: RequestContext,
    db: AsyncSession,
    distributor: BatchDistributor,
) -> DistributionResponse:
    user_ids = await SegmentResolver(db).resolve(payload.targets)
    result = await distributor.distribute(payload.grant_id, kind, user_ids)
    logger.info(
        "Campaign distribution requested",
        admin_id=str(context.user_id),
        grant_id=str(payload.grant_id),
        kind=kind.value,
        distributed=result.distributed_count,
        requested=result.requested_count,
    )
    return _distribution_response(result)


@router.post("/coupons", response_model=DistributionResponse, summary="Distribute a coupon to a segment")
async def distribute_coupon(
    payload: DistributionRequest,
    context: RequestContext = Depends(require_admin_context),
    db: AsyncSession = Depends(get_session),
    distributor: BatchDistributor = Depends(get_batch_distributor),
) -> DistributionResponse:
    return await _run_campaign(RewardKind.COUPON, payload, context, db, distributor)


@router.post("/gift-cards", response_model=DistributionResponse, summary="Distribute a gift card to a segment")
async def distribute_gift_card(
    payload: DistributionRequest,
    context: RequestContext = Depends(require_admin_context),
    db: AsyncSession = Depends(get_session),
    distributor: BatchDistributor = Depends(get_batch_distributor),
) -> DistributionResponse:
    return await _run_campaign(RewardKind.GIFTCARD, payload, context, db, distributor)
