from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Literal, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from referral_engine.db.repo.system_config_repo import SystemConfigRepo
from referral_engine.economy.config.errors import ConfigKeyUnknownError, ConfigValueInvalidError

logger = structlog.get_logger(__name__)

FIRST_ORDER_DISCOUNT_KEY = "first_order_discount"
REFERRAL_FIRST_ORDER_DISCOUNT_KEY = "referral_first_order_discount"
REFERRAL_REWARD_KEY = "referral_reward"
REFERRAL_LIMITS_KEY = "referral_limits"
REFERRAL_MINIMUM_ORDER_KEY = "referral_minimum_order"


class _ConfigValue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class DiscountConfig(_ConfigValue):
    percentage: Literal[10, 15]
    validity_days: int = Field(ge=1, le=365)


class ReferralRewardConfig(_ConfigValue):
    amount: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    currency: Literal["EUR"] = "EUR"


class ReferralLimitsConfig(_ConfigValue):
    max_per_ip_daily: int = Field(ge=1)
    review_threshold: int = Field(ge=1)
    refund_window_days: int = Field(ge=0)


class MinimumOrderConfig(_ConfigValue):
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    currency: Literal["EUR"] = "EUR"


ConfigValueT = TypeVar("ConfigValueT", bound=_ConfigValue)

CONFIG_VALUE_MODELS: dict[str, type[_ConfigValue]] = {
    FIRST_ORDER_DISCOUNT_KEY: DiscountConfig,
    REFERRAL_FIRST_ORDER_DISCOUNT_KEY: DiscountConfig,
    REFERRAL_REWARD_KEY: ReferralRewardConfig,
    REFERRAL_LIMITS_KEY: ReferralLimitsConfig,
    REFERRAL_MINIMUM_ORDER_KEY: MinimumOrderConfig,
}
CONFIG_KEYS = tuple(CONFIG_VALUE_MODELS)

DEFAULT_CONFIG_VALUES: dict[str, dict[str, object]] = {
    FIRST_ORDER_DISCOUNT_KEY: {"percentage": 10, "validity_days": 30},
    REFERRAL_FIRST_ORDER_DISCOUNT_KEY: {"percentage": 15, "validity_days": 30},
    REFERRAL_REWARD_KEY: {"amount": 5, "currency": "EUR"},
    REFERRAL_LIMITS_KEY: {
        "max_per_ip_daily": 3,
        "review_threshold": 50,
        "refund_window_days": 14,
    },
    REFERRAL_MINIMUM_ORDER_KEY: {"amount": 35, "currency": "EUR"},
}

CONFIG_DESCRIPTIONS = {
    FIRST_ORDER_DISCOUNT_KEY: "Standard first-order discount",
    REFERRAL_FIRST_ORDER_DISCOUNT_KEY: "First-order discount for referred users",
    REFERRAL_REWARD_KEY: "Store credit granted to the referrer per conversion",
    REFERRAL_LIMITS_KEY: "Anti-fraud limits for referral conversions",
    REFERRAL_MINIMUM_ORDER_KEY: "Minimum first order subtotal that unlocks the referral reward",
}


@dataclass(frozen=True, slots=True)
class ConfigSnapshot:
    version: int
    first_order_discount_percent: int
    first_order_validity_days: int
    referral_discount_percent: int
    referral_validity_days: int
    reward_amount: Decimal
    minimum_order_amount: Decimal
    max_conversions_per_ip_daily: int
    review_threshold: int
    refund_window_days: int


def parse_config_value(key: str, raw_value: object) -> _ConfigValue:
    model = CONFIG_VALUE_MODELS.get(key)
    if model is None:
        raise ConfigKeyUnknownError(key)
    try:
        return model.model_validate(raw_value)
    except ValidationError as exc:
        raise ConfigValueInvalidError(key) from exc


def _resolve_value(
    raw_values: dict[str, object],
    key: str,
    model: type[ConfigValueT],
) -> ConfigValueT:
    raw_value = raw_values.get(key)
    if raw_value is not None:
        try:
            return model.model_validate(raw_value)
        except ValidationError:
            logger.warning("system_config_value_invalid", config_key=key)
    return model.model_validate(DEFAULT_CONFIG_VALUES[key])


def build_config_snapshot(
    raw_values: dict[str, object],
    *,
    version: int,
) -> ConfigSnapshot:
    first_order = _resolve_value(raw_values, FIRST_ORDER_DISCOUNT_KEY, DiscountConfig)
    referral_discount = _resolve_value(
        raw_values,
        REFERRAL_FIRST_ORDER_DISCOUNT_KEY,
        DiscountConfig,
    )
    reward = _resolve_value(raw_values, REFERRAL_REWARD_KEY, ReferralRewardConfig)
    limits = _resolve_value(raw_values, REFERRAL_LIMITS_KEY, ReferralLimitsConfig)
    minimum_order = _resolve_value(raw_values, REFERRAL_MINIMUM_ORDER_KEY, MinimumOrderConfig)

    return ConfigSnapshot(
        version=version,
        first_order_discount_percent=first_order.percentage,
        first_order_validity_days=first_order.validity_days,
        referral_discount_percent=referral_discount.percentage,
        referral_validity_days=referral_discount.validity_days,
        reward_amount=reward.amount,
        minimum_order_amount=minimum_order.amount,
        max_conversions_per_ip_daily=limits.max_per_ip_daily,
        review_threshold=limits.review_threshold,
        refund_window_days=limits.refund_window_days,
    )


async def load_config_snapshot(session: AsyncSession) -> ConfigSnapshot:
    rows = await SystemConfigRepo.list_by_keys(session, keys=CONFIG_KEYS)
    raw_values: dict[str, object] = {row.key: row.value for row in rows}
    version = sum(row.version for row in rows)
    return build_config_snapshot(raw_values, version=version)
