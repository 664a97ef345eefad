"""Users, promotion templates, owned instances, rewards, and point ledger.

Revision ID: 20261017_01
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261017_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


discount_kind = sa.Enum("fixed", "percentage", name="coupon_discount_kind")
coupon_scope = sa.Enum("all", "category", "service", name="coupon_scope")
user_coupon_status = sa.Enum("active", "used", "expired", name="user_coupon_status")
user_giftcard_status = sa.Enum("active", "redeemed", name="user_giftcard_status")
redemption_item_kind = sa.Enum("coupon", "giftcard", name="redemption_item_kind")
point_transaction_kind = sa.Enum("earn", "redemption", "adjustment", name="point_transaction_kind")

# Second reference to the coupon enums; the type is created with the "coupons" table.
existing_discount_kind = postgresql.ENUM("fixed", "percentage", name="coupon_discount_kind", create_type=False)
existing_coupon_scope = postgresql.ENUM("all", "category", "service", name="coupon_scope", create_type=False)


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _created_at() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)


def _version() -> sa.Column:
    return sa.Column("version", sa.Integer(), nullable=False, server_default="1")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="client"),
        sa.Column("push_token", sa.String(length=256), nullable=True),
        sa.Column("loyalty_points", sa.Integer(), nullable=True),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        _version(),
        sa.CheckConstraint("loyalty_points IS NULL OR loyalty_points >= 0", name="ck_users_loyalty_points_non_negative"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "user_passes",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pass_id", sa.String(), nullable=False),
        sa.Column("pass_name", sa.String(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        _created_at(),
    )
    op.create_index("ix_user_passes_user_id", "user_passes", ["user_id"])
    op.create_index("ix_user_passes_pass_id", "user_passes", ["pass_id"])

    op.create_table(
        "coupons",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("discount_kind", discount_kind, nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_spend", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("scope", coupon_scope, nullable=False),
        sa.Column("scope_ids", sa.JSON(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=False, server_default="-1"),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("user_claim_limit", sa.Integer(), nullable=True),
        sa.Column("is_claimable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _version(),
        sa.CheckConstraint(
            "usage_limit = -1 OR usage_count <= usage_limit",
            name="ck_coupons_usage_within_limit",
        ),
    )
    op.create_index("ix_coupons_code", "coupons", ["code"], unique=True)

    op.create_table(
        "user_coupons",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("coupon_id", _uuid(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("discount_kind", existing_discount_kind, nullable=False),
        sa.Column("value", sa.Numeric(12, 2), nullable=False),
        sa.Column("min_spend", sa.Numeric(12, 2), nullable=False),
        sa.Column("scope", existing_coupon_scope, nullable=False),
        sa.Column("scope_ids", sa.JSON(), nullable=False),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", user_coupon_status, nullable=False, server_default="active"),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _version(),
    )
    op.create_index("ix_user_coupons_user_id", "user_coupons", ["user_id"])
    op.create_index("ix_user_coupons_coupon_id", "user_coupons", ["coupon_id"])
    op.create_index("ix_user_coupons_code", "user_coupons", ["code"])

    op.create_table(
        "gift_cards",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        _version(),
    )

    op.create_table(
        "user_giftcards",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("gift_card_id", _uuid(), sa.ForeignKey("gift_cards.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("status", user_giftcard_status, nullable=False, server_default="active"),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        _version(),
    )
    op.create_index("ix_user_giftcards_user_id", "user_giftcards", ["user_id"])

    op.create_table(
        "redemption_items",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        sa.Column("color_theme", sa.String(length=16), nullable=False, server_default="orange"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("kind", redemption_item_kind, nullable=False),
        sa.Column("linked_coupon_id", _uuid(), sa.ForeignKey("coupons.id", ondelete="SET NULL"), nullable=True),
        sa.Column("linked_gift_card_id", _uuid(), sa.ForeignKey("gift_cards.id", ondelete="SET NULL"), nullable=True),
        _created_at(),
        _version(),
        sa.CheckConstraint("points >= 0", name="ck_redemption_items_points_non_negative"),
    )

    op.create_table(
        "point_transactions",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_id", _uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("kind", point_transaction_kind, nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("reference", sa.String(), nullable=True),
        _created_at(),
    )
    op.create_index("ix_point_transactions_user_id", "point_transactions", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_point_transactions_user_id", table_name="point_transactions")
    op.drop_table("point_transactions")
    op.drop_table("redemption_items")
    op.drop_index("ix_user_giftcards_user_id", table_name="user_giftcards")
    op.drop_table("user_giftcards")
    op.drop_table("gift_cards")
    op.drop_index("ix_user_coupons_code", table_name="user_coupons")
    op.drop_index("ix_user_coupons_coupon_id", table_name="user_coupons")
    op.drop_index("ix_user_coupons_user_id", table_name="user_coupons")
    op.drop_table("user_coupons")
    op.drop_index("ix_coupons_code", table_name="coupons")
    op.drop_table("coupons")
    op.drop_index("ix_user_passes_pass_id", table_name="user_passes")
    op.drop_index("ix_user_passes_user_id", table_name="user_passes")
    op.drop_table("user_passes")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (
        point_transaction_kind,
        redemption_item_kind,
        user_giftcard_status,
        user_coupon_status,
        coupon_scope,
        discount_kind,
    ):
        enum.drop(bind, checkfirst=True)
