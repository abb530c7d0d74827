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
    SmallInteger,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import Mapped, mapped_column

from referral_engine.db.models.base import Base


class Promotion(Base):
    __tablename__ = "promotions"
    __table_args__ = (
        CheckConstraint(
            "discount_type IN ('percentage')",
            name="ck_promotions_discount_type",
        ),
        CheckConstraint(
            "discount_value IN (10, 15)",
            name="ck_promotions_discount_value",
        ),
        CheckConstraint("usage_limit > 0", name="ck_promotions_usage_limit_positive"),
        CheckConstraint(
            "usage_count >= 0 AND usage_count <= usage_limit",
            name="ck_promotions_usage_count_range",
        ),
        CheckConstraint("ends_at > starts_at", name="ck_promotions_date_range"),
        CheckConstraint(
            "NOT is_first_order_code OR user_id IS NOT NULL",
            name="ck_promotions_first_order_has_owner",
        ),
        Index(
            "uq_promotions_first_order_user",
            "user_id",
            unique=True,
            postgresql_where=text("is_first_order_code = TRUE"),
        ),
        Index("idx_promotions_ends_at_active", "ends_at", postgresql_where=text("is_active = TRUE")),
    )

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_id: Mapped[UUID | None] = mapped_column(
        PG_UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=True,
    )
    discount_type: Mapped[str] = mapped_column(String(16), nullable=False)
    discount_value: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    min_purchase: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, server_default=text("0")
    )
    usage_limit: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"))
    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"))
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_active: Mapped[bool] = mapped_column(BOOLEAN, nullable=False, server_default=text("true"))
    is_first_order_code: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    referral_bonus: Mapped[bool] = mapped_column(
        BOOLEAN, nullable=False, server_default=text("false")
    )
    config_version: Mapped[int] = mapped_column(Integer, nullable=False)
    used_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
