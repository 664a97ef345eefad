"""SQLAlchemy models package."""

from .ledger import PointTransaction, PointTransactionKind  # noqa: F401
from .promotions import (  # noqa: F401
    UNLIMITED_USAGE,
    CouponInstance,
    CouponScope,
    CouponStatus,
    CouponTemplate,
    DiscountKind,
    GiftCardInstance,
    GiftCardStatus,
    GiftCardTemplate,
    Provenance,
    RedemptionItem,
    RewardKind,
)
from .user import User, UserPass, UserRoleEnum  # noqa: F401
