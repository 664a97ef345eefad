"""Request payloads for promotion, ledger, and campaign endpoints."""

from __future__ import annotations

from typing import Annotated, List, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class AllTarget(_CamelModel):
    type: Literal["all"] = "all"


class NewTarget(_CamelModel):
    """Members who joined within the trailing new-member window."""

    type: Literal["new"] = "new"


class RoleTarget(_CamelModel):
    type: Literal["role"] = "role"
    ids: List[str] = Field(default_factory=list)


class SpecificTarget(_CamelModel):
    type: Literal["specific"] = "specific"
    ids: List[UUID] = Field(default_factory=list)


class PassTarget(_CamelModel):
    """Members holding an unexpired recurring pass with one of ``ids``."""

    type: Literal["pass"] = "pass"
    ids: List[str] = Field(default_factory=list)


DistributionTarget = Annotated[
    Union[AllTarget, NewTarget, RoleTarget, SpecificTarget, PassTarget],
    Field(discriminator="type"),
]


class DistributionRequest(_CamelModel):
    grant_id: UUID = Field(alias="grantId")
    targets: List[DistributionTarget]

    @field_validator("targets")
    @classmethod
    def _require_targets(cls, value: list) -> list:
        if not value:
            raise ValueError("At least one distribution target is required")
        return value


class ClaimCouponRequest(_CamelModel):
    code: str = Field(min_length=1, max_length=64)

    @field_validator("code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("Coupon code must not be blank")
        return stripped


class PointAdjustmentRequest(_CamelModel):
    amount: int
    reason: str = Field(min_length=1, max_length=255)

    @field_validator("amount")
    @classmethod
    def _non_zero(cls, value: int) -> int:
        if value == 0:
            raise ValueError("Adjustment amount must be non-zero")
        return value


class BookingEarningRequest(_CamelModel):
    booking_id: str = Field(alias="bookingId", min_length=1)
    amount: float = Field(ge=0)


__all__ = [
    "AllTarget",
    "BookingEarningRequest",
    "ClaimCouponRequest",
    "DistributionRequest",
    "DistributionTarget",
    "NewTarget",
    "PassTarget",
    "PointAdjustmentRequest",
    "RoleTarget",
    "SpecificTarget",
]
