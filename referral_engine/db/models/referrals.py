from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BOOLEAN,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base


class Referral(Base):
    __tablename__ = "referrals"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','converted','revoked')",
            name="ck_referrals_status",
        ),
        CheckConstraint(
            "referrer_user_id <> referee_user_id", name="ck_referrals_no_self_referral"
        ),
        CheckConstraint(
            "(status = 'pending' AND reward_credited = FALSE AND converted_at IS NULL) "
            "OR (status = 'converted' AND reward_credited = TRUE AND converted_at IS NOT NULL) "
            "OR (status = 'revoked' AND converted_at IS NOT NULL AND revoked_at IS NOT NULL)",
            name="ck_referrals_status_consistency",
        ),
        CheckConstraint("reward_amount > 0", name="ck_referrals_reward_amount_positive"),
        Index("idx_referrals_referrer_created", "referrer_user_id", "created_at"),
        Index("idx_referrals_code", "referral_code"),
        Index("idx_referrals_status_created", "status", "created_at"),
        Index(
            "idx_referrals_conversion_ip_converted_at",
            "conversion_ip_address",
            "converted_at",
            postgresql_where=text("status = 'converted'"),
        ),
        Index(
            "uq_referrals_converted_order",
            "converted_order_id",
            unique=True,
            postgresql_where=text("converted_order_id IS NOT NULL"),
        ),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    referrer_user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    referee_user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )
    referral_code: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    reward_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    minimum_order_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, server_default=text("0")
    )
    reward_credited: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    conversion_ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    converted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revoke_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    config_version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
