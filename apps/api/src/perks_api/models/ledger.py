"""Append-only audit log for loyalty point balance changes."""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import Column, DateTime, Enum as SqlEnum, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from perks_api.db.base import Base, enum_values


class PointTransactionKind(str, Enum):
    EARN = "earn"
    REDEMPTION = "redemption"
    ADJUSTMENT = "adjustment"


class PointTransaction(Base):
    __tablename__ = "point_transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(SqlEnum(PointTransactionKind, name="point_transaction_kind", values_callable=enum_values), nullable=False)
    amount = Column(Integer, nullable=False)
    reason = Column(String, nullable=False)
    reference = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
