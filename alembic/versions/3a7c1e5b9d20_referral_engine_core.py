"""referral_engine_core

Revision ID: 3a7c1e5b9d20
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3a7c1e5b9d20"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


SYSTEM_CONFIG_SEED = [
    {
        "key": "first_order_discount",
        "value": {"percentage": 10, "validity_days": 30},
        "description": "Standard first-order discount",
    },
    {
        "key": "referral_first_order_discount",
        "value": {"percentage": 15, "validity_days": 30},
        "description": "First-order discount for referred users",
    },
    {
        "key": "referral_reward",
        "value": {"amount": 5, "currency": "EUR"},
        "description": "Store credit granted to the referrer per conversion",
    },
    {
        "key": "referral_limits",
        "value": {"max_per_ip_daily": 3, "review_threshold": 50, "refund_window_days": 14},
        "description": "Anti-fraud limits for referral conversions",
    },
    {
        "key": "referral_minimum_order",
        "value": {"amount": 35, "currency": "EUR"},
        "description": "Minimum first order subtotal that unlocks the referral reward",
    },
]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("suspended_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("status IN ('ACTIVE','SUSPENDED')", name="ck_users_status"),
    )
    op.create_index("idx_users_created_at", "users", ["created_at"])

    op.create_table(
        "user_referral_codes",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("code", sa.String(8), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("total_referrals", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_conversions", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_earned", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("char_length(code) = 8", name="ck_user_referral_codes_code_length"),
        sa.CheckConstraint(
            "total_referrals >= 0 AND total_conversions >= 0",
            name="ck_user_referral_codes_counters_non_negative",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
        sa.UniqueConstraint("code", name="uq_user_referral_codes_code"),
    )
    op.create_index(
        "idx_user_referral_codes_active",
        "user_referral_codes",
        ["is_active"],
        postgresql_where=sa.text("is_active = TRUE"),
    )

    op.create_table(
        "promotions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("code", sa.String(32), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", sa.SmallInteger(), nullable=False),
        sa.Column("min_purchase", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("usage_limit", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_first_order_code", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("referral_bonus", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("config_version", sa.Integer(), nullable=False),
        sa.Column("used_order_id", sa.String(64), nullable=True),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("discount_type IN ('percentage')", name="ck_promotions_discount_type"),
        sa.CheckConstraint("discount_value IN (10, 15)", name="ck_promotions_discount_value"),
        sa.CheckConstraint("usage_limit > 0", name="ck_promotions_usage_limit_positive"),
        sa.CheckConstraint(
            "usage_count >= 0 AND usage_count <= usage_limit",
            name="ck_promotions_usage_count_range",
        ),
        sa.CheckConstraint("ends_at > starts_at", name="ck_promotions_date_range"),
        sa.CheckConstraint(
            "NOT is_first_order_code OR user_id IS NOT NULL",
            name="ck_promotions_first_order_has_owner",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("code", name="uq_promotions_code"),
    )
    op.create_index(
        "uq_promotions_first_order_user",
        "promotions",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("is_first_order_code = TRUE"),
    )
    op.create_index(
        "idx_promotions_ends_at_active",
        "promotions",
        ["ends_at"],
        postgresql_where=sa.text("is_active = TRUE"),
    )

    op.create_table(
        "referrals",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("referrer_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referee_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referral_code", sa.String(8), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("reward_amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("minimum_order_amount", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("reward_credited", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("conversion_ip_address", sa.String(45), nullable=True),
        sa.Column("converted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("converted_order_id", sa.String(64), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoke_reason", sa.Text(), nullable=True),
        sa.Column("config_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("status IN ('pending','converted','revoked')", name="ck_referrals_status"),
        sa.CheckConstraint("referrer_user_id <> referee_user_id", name="ck_referrals_no_self_referral"),
        sa.CheckConstraint(
            "(status = 'pending' AND reward_credited = FALSE AND converted_at IS NULL) "
            "OR (status = 'converted' AND reward_credited = TRUE AND converted_at IS NOT NULL) "
            "OR (status = 'revoked' AND converted_at IS NOT NULL AND revoked_at IS NOT NULL)",
            name="ck_referrals_status_consistency",
        ),
        sa.CheckConstraint("reward_amount > 0", name="ck_referrals_reward_amount_positive"),
        sa.ForeignKeyConstraint(["referrer_user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["referee_user_id"], ["users.id"]),
        sa.UniqueConstraint("referee_user_id", name="uq_referrals_referee_user_id"),
    )
    op.create_index("idx_referrals_referrer_created", "referrals", ["referrer_user_id", "created_at"])
    op.create_index("idx_referrals_code", "referrals", ["referral_code"])
    op.create_index("idx_referrals_status_created", "referrals", ["status", "created_at"])
    op.create_index(
        "idx_referrals_conversion_ip_converted_at",
        "referrals",
        ["conversion_ip_address", "converted_at"],
        postgresql_where=sa.text("status = 'converted'"),
    )
    op.create_index(
        "uq_referrals_converted_order",
        "referrals",
        ["converted_order_id"],
        unique=True,
        postgresql_where=sa.text("converted_order_id IS NOT NULL"),
    )

    op.create_table(
        "user_credits",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("balance", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_earned", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_revoked", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("balance_before", sa.Numeric(10, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(10, 2), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("reference_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "reference_type IN ('referral_reward','referral_revocation')",
            name="ck_credit_transactions_reference_type",
        ),
        sa.CheckConstraint(
            "(reference_type = 'referral_reward' AND amount > 0) "
            "OR (reference_type = 'referral_revocation' AND amount < 0)",
            name="ck_credit_transactions_amount_sign",
        ),
        sa.CheckConstraint(
            "balance_after = balance_before + amount",
            name="ck_credit_transactions_running_balance",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.UniqueConstraint("reference_type", "reference_id", name="uq_credit_transactions_reference"),
    )
    op.create_index(
        "idx_credit_transactions_user_created",
        "credit_transactions",
        ["user_id", "created_at"],
    )
    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_credit_transactions_append_only()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'credit_transactions is append-only';
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_credit_transactions_append_only
        BEFORE UPDATE OR DELETE ON credit_transactions
        FOR EACH ROW
        EXECUTE FUNCTION fn_credit_transactions_append_only();
        """
    )

    system_config = op.create_table(
        "system_config",
        sa.Column("key", sa.String(100), primary_key=True),
        sa.Column("value", postgresql.JSONB(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.bulk_insert(system_config, SYSTEM_CONFIG_SEED)

    op.create_table(
        "processed_orders",
        sa.Column("order_id", sa.String(64), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("subtotal", sa.Numeric(10, 2), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("outcome", sa.String(32), nullable=False),
        sa.Column("referral_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_outcome", sa.String(32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index(
        "idx_processed_orders_user_completed",
        "processed_orders",
        ["user_id", "completed_at"],
    )
    op.create_index(
        "idx_processed_orders_refunded_at",
        "processed_orders",
        ["refunded_at"],
        postgresql_where=sa.text("refunded_at IS NOT NULL"),
    )

    op.create_table(
        "outbox_events",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("subject_user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_outbox_events_type_created", "outbox_events", ["event_type", "created_at"])
    op.create_index(
        "idx_outbox_events_subject_type",
        "outbox_events",
        ["subject_user_id", "event_type"],
    )


def downgrade() -> None:
    op.drop_index("idx_outbox_events_subject_type", table_name="outbox_events")
    op.drop_index("idx_outbox_events_type_created", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("idx_processed_orders_refunded_at", table_name="processed_orders")
    op.drop_index("idx_processed_orders_user_completed", table_name="processed_orders")
    op.drop_table("processed_orders")

    op.drop_table("system_config")

    op.execute("DROP TRIGGER IF EXISTS trg_credit_transactions_append_only ON credit_transactions;")
    op.execute("DROP FUNCTION IF EXISTS fn_credit_transactions_append_only();")
    op.drop_index("idx_credit_transactions_user_created", table_name="credit_transactions")
    op.drop_table("credit_transactions")

    op.drop_table("user_credits")

    op.drop_index("uq_referrals_converted_order", table_name="referrals")
    op.drop_index("idx_referrals_conversion_ip_converted_at", table_name="referrals")
    op.drop_index("idx_referrals_status_created", table_name="referrals")
    op.drop_index("idx_referrals_code", table_name="referrals")
    op.drop_index("idx_referrals_referrer_created", table_name="referrals")
    op.drop_table("referrals")

    op.drop_index("idx_promotions_ends_at_active", table_name="promotions")
    op.drop_index("uq_promotions_first_order_user", table_name="promotions")
    op.drop_table("promotions")

    op.drop_index("idx_user_referral_codes_active", table_name="user_referral_codes")
    op.drop_table("user_referral_codes")

    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_table("users")
