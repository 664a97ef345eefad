from fastapi import APIRouter

from .endpoints import (
    campaigns,
    coupons,
    gift_cards,
    ledger,
    observability,
    rewards,
)

router = APIRouter()
router.include_router(coupons.router)
router.include_router(rewards.router)
router.include_router(gift_cards.router)
router.include_router(ledger.router)
router.include_router(campaigns.router)
router.include_router(observability.router)
