"""Promotion job exports."""

from .expiry import expire_coupon_instances  # noqa: F401

__all__ = ["expire_coupon_instances"]
