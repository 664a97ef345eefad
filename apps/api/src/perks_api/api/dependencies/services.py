"""Service factories wired to the shared session factory."""

from __future__ import annotations

from fastapi import Depends

from perks_api.db.session import get_session_factory
from perks_api.db.transactions import SessionFactory
from perks_api.services.notifications import StaffNotifier
from perks_api.services.promotions import BatchDistributor, RedemptionEngine, UserLedger


def get_redemption_engine(
    session_factory: SessionFactory = Depends(get_session_factory),
) -> RedemptionEngine:
    return RedemptionEngine(session_factory, notifier=StaffNotifier(session_factory))


def get_user_ledger(session_factory: SessionFactory = Depends(get_session_factory)) -> UserLedger:
    return UserLedger(session_factory)


def get_batch_distributor(session_factory: SessionFactory = Depends(get_session_factory)) -> BatchDistributor:
    return BatchDistributor(session_factory)
