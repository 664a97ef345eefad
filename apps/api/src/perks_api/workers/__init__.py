"""Background workers supporting async processing."""

from .coupon_expiry import CouponExpiryWorker

__all__ = ["CouponExpiryWorker"]
