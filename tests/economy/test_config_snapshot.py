from __future__ import annotations

from decimal import Decimal

import pytest

from referral_engine.economy.config.errors import ConfigKeyUnknownError, ConfigValueInvalidError
from referral_engine.economy.config.snapshot import (
    CONFIG_KEYS,
    DEFAULT_CONFIG_VALUES,
    DiscountConfig,
    build_config_snapshot,
    parse_config_value,
)


def test_empty_config_falls_back_to_defaults() -> None:
    snapshot = build_config_snapshot({}, version=0)

    assert snapshot.version == 0
    assert snapshot.first_order_discount_percent == 10
    assert snapshot.first_order_validity_days == 30
    assert snapshot.referral_discount_percent == 15
    assert snapshot.referral_validity_days == 30
    assert snapshot.reward_amount == Decimal("5")
    assert snapshot.minimum_order_amount == Decimal("35")
    assert snapshot.max_conversions_per_ip_daily == 3
    assert snapshot.review_threshold == 50
    assert snapshot.refund_window_days == 14


def test_stored_values_override_defaults() -> None:
    snapshot = build_config_snapshot(
        {
            "referral_first_order_discount": {"percentage": 10, "validity_days": 7},
            "referral_reward": {"amount": "7.50", "currency": "EUR"},
            "referral_limits": {
                "max_per_ip_daily": 5,
                "review_threshold": 10,
                "refund_window_days": 30,
            },
        },
        version=9,
    )

    assert snapshot.version == 9
    assert snapshot.referral_discount_percent == 10
    assert snapshot.referral_validity_days == 7
    assert snapshot.reward_amount == Decimal("7.50")
    assert snapshot.max_conversions_per_ip_daily == 5
    assert snapshot.review_threshold == 10
    assert snapshot.refund_window_days == 30
    assert snapshot.first_order_discount_percent == 10


def test_invalid_stored_value_uses_default_for_that_key_only() -> None:
    snapshot = build_config_snapshot(
        {
            "first_order_discount": {"percentage": 95, "validity_days": 30},
            "referral_reward": {"amount": 6, "currency": "EUR"},
        },
        version=2,
    )

    assert snapshot.first_order_discount_percent == 10
    assert snapshot.reward_amount == Decimal("6")


def test_defaults_cover_every_config_key() -> None:
    assert set(DEFAULT_CONFIG_VALUES) == set(CONFIG_KEYS)
    for key in CONFIG_KEYS:
        parse_config_value(key, DEFAULT_CONFIG_VALUES[key])


def test_parse_config_value_returns_typed_model() -> None:
    parsed = parse_config_value("first_order_discount", {"percentage": 15, "validity_days": 14})
    assert parsed == DiscountConfig(percentage=15, validity_days=14)


def test_parse_config_value_rejects_unknown_key() -> None:
    with pytest.raises(ConfigKeyUnknownError):
        parse_config_value("loyalty_points", {"amount": 1})


@pytest.mark.parametrize(
    ("key", "value"),
    [
        ("first_order_discount", {"percentage": 0, "validity_days": 30}),
        ("first_order_discount", {"percentage": 12, "validity_days": 30}),
        ("referral_first_order_discount", {"percentage": 20, "validity_days": 30}),
        ("first_order_discount", {"percentage": 10}),
        ("referral_reward", {"amount": 0, "currency": "EUR"}),
        ("referral_reward", {"amount": 5, "currency": "USD"}),
        ("referral_limits", {"max_per_ip_daily": 0, "review_threshold": 5, "refund_window_days": 14}),
        ("referral_minimum_order", {"amount": 35, "currency": "EUR", "extra": True}),
        ("referral_minimum_order", "35"),
    ],
)
def test_parse_config_value_rejects_invalid_values(key: str, value: object) -> None:
    with pytest.raises(ConfigValueInvalidError):
        parse_config_value(key, value)
