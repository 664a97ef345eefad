from enum import Enum
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, func
from sqlalchemy.dialects.postgresql import UUID

from perks_api.db.base import Base, VersionedMixin


class UserRoleEnum(str, Enum):
    CLIENT = "client"
    DESIGNER = "designer"
    ADMIN = "admin"


class User(VersionedMixin, Base):
    """Member profile; also carries the embedded loyalty ledger balance.

    ``loyalty_points`` stays NULL until the first grant opens the account.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("loyalty_points IS NULL OR loyalty_points >= 0", name="ck_users_loyalty_points_non_negative"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    email = Column(String, nullable=False, unique=True, index=True)
    display_name = Column(String, nullable=True)
    role = Column(String(length=16), nullable=False, default=UserRoleEnum.CLIENT.value, server_default=UserRoleEnum.CLIENT.value)
    push_token = Column(String(256), nullable=True)
    loyalty_points = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class UserPass(Base):
    """Recurring service pass held by a member."""

    __tablename__ = "user_passes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    pass_id = Column(String, nullable=False, index=True)
    pass_name = Column(String, nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
