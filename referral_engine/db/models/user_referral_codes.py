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
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base


class UserReferralCode(Base):
    __tablename__ = "user_referral_codes"
    __table_args__ = (
        CheckConstraint("char_length(code) = 8", name="ck_user_referral_codes_code_length"),
        CheckConstraint(
            "total_referrals >= 0 AND total_conversions >= 0",
            name="ck_user_referral_codes_counters_non_negative",
        ),
        Index(
            "idx_user_referral_codes_active",
            "is_active",
            postgresql_where=text("is_active = TRUE"),
        ),
    )

    user_id: Mapped[UUID] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        primary_key=True,
    )
    code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    total_referrals: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    total_conversions: Mapped[int] = mapped_column(
        Integer, nullable=False, server_default=text("0")
    )
    total_earned: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, server_default=text("0")
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
