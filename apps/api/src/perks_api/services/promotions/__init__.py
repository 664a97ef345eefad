"""Promotion services: issuance, redemption, ledger, and campaign distribution."""

from .distribution import BatchDistributor, ChunkResult, DistributionResult
from .issuer import issue_coupon, issue_gift_card
from .ledger import LedgerAccount, LedgerAudit, PointChange, UserLedger
from .redemption import RedemptionEngine, RewardRedemption
from .segments import SegmentResolver
from .template_store import TemplateStore

__all__ = [
    "BatchDistributor",
    "ChunkResult",
    "DistributionResult",
    "LedgerAccount",
    "LedgerAudit",
    "PointChange",
    "RedemptionEngine",
    "RewardRedemption",
    "SegmentResolver",
    "TemplateStore",
    "UserLedger",
    "issue_coupon",
    "issue_gift_card",
]
