"""Error taxonomy for promotion and ledger operations.

Business-rule errors are the definitive outcome of an operation and are never
retried. ``TransientConflictError`` is raised only after the optimistic
transaction runner has exhausted its retry budget, and callers may try again.
"""

from __future__ import annotations

from typing import Any


class PromotionError(Exception):
    """Base class for errors surfaced verbatim to API callers."""

    code = "promotion_error"
    status_code = 400
    retryable = False
    default_message = "Promotion operation failed"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def as_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "code": self.code, "retryable": self.retryable}


class BusinessRuleError(PromotionError):
    status_code = 409


class NotFoundError(BusinessRuleError):
    status_code = 404


class CodeNotFound(NotFoundError):
    code = "code_not_found"
    default_message = "Coupon code not found"


class TemplateNotFound(NotFoundError):
    code = "template_not_found"
    default_message = "Promotion template not found"


class InstanceNotFound(NotFoundError):
    code = "not_found"
    default_message = "Promotion instance not found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


class RewardUnavailable(NotFoundError):
    code = "reward_unavailable"
    default_message = "Reward is not available"


class Forbidden(BusinessRuleError):
    code = "forbidden"
    status_code = 403
    default_message = "Instance belongs to another user"


class CouponInactive(BusinessRuleError):
    code = "coupon_inactive"
    default_message = "Coupon is not active"


class CouponNotYetValid(BusinessRuleError):
    code = "coupon_not_yet_valid"
    default_message = "Coupon is not valid yet"


class CouponExpired(BusinessRuleError):
    code = "coupon_expired"
    default_message = "Coupon has expired"


class UsageLimitReached(BusinessRuleError):
    code = "usage_limit_reached"
    default_message = "Coupon usage limit reached"


class PerUserLimitReached(BusinessRuleError):
    code = "per_user_limit_reached"
    default_message = "Coupon already claimed the maximum number of times"


class InsufficientPoints(BusinessRuleError):
    code = "insufficient_points"
    default_message = "Insufficient loyalty points"


class AlreadyRedeemed(BusinessRuleError):
    code = "already_redeemed"
    default_message = "Instance has already been redeemed"


class TransientConflictError(PromotionError):
    """Optimistic transaction kept colliding with concurrent writers."""

    code = "transient_conflict"
    status_code = 503
    retryable = True
    default_message = "Concurrent update conflict, please retry"


class BatchTooLargeError(PromotionError):
    code = "batch_too_large"
    status_code = 500
    default_message = "Batch exceeds the per-commit operation limit"


class ChunkCommitError(PromotionError):
    """Wraps the failure of a single distribution chunk."""

    code = "chunk_commit_failed"
    status_code = 500
    default_message = "Distribution chunk failed to commit"


__all__ = [
    "AlreadyRedeemed",
    "BatchTooLargeError",
    "BusinessRuleError",
    "ChunkCommitError",
    "CodeNotFound",
    "CouponExpired",
    "CouponInactive",
    "CouponNotYetValid",
    "Forbidden",
    "InstanceNotFound",
    "InsufficientPoints",
    "NotFoundError",
    "PerUserLimitReached",
    "PromotionError",
    "RewardUnavailable",
    "TemplateNotFound",
    "TransientConflictError",
    "UsageLimitReached",
    "UserNotFound",
]
