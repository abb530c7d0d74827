from __future__ import annotations

from decimal import Decimal

import pytest

from referral_engine.economy.config.snapshot import build_config_snapshot
from referral_engine.economy.promotions.first_order import (
    calculate_first_order_discount,
    get_referral_bonus_eligibility,
    promotion_description,
    promotion_name,
)


def test_discount_applies_to_subtotal_only() -> None:
    result = calculate_first_order_discount(Decimal("100.00"), 15, Decimal("7.90"))

    assert result.subtotal == Decimal("100.00")
    assert result.discount == Decimal("15.00")
    assert result.shipping == Decimal("7.90")
    assert result.total == Decimal("92.90")


def test_discount_rounds_half_up_to_cents() -> None:
    result = calculate_first_order_discount(Decimal("33.35"), 10)

    assert result.discount == Decimal("3.34")
    assert result.total == Decimal("30.01")


def test_discount_on_empty_cart_is_zero() -> None:
    result = calculate_first_order_discount(Decimal("0"), 10, Decimal("5.00"))

    assert result.discount == Decimal("0.00")
    assert result.total == Decimal("5.00")


@pytest.mark.parametrize(
    ("subtotal", "percent", "shipping"),
    [
        (Decimal("-1"), 10, Decimal("0")),
        (Decimal("10"), 10, Decimal("-0.01")),
        (Decimal("10"), 101, Decimal("0")),
        (Decimal("10"), -5, Decimal("0")),
    ],
)
def test_discount_rejects_invalid_inputs(subtotal: Decimal, percent: int, shipping: Decimal) -> None:
    with pytest.raises(ValueError):
        calculate_first_order_discount(subtotal, percent, shipping)


def test_bonus_eligibility_below_minimum_reports_amount_needed() -> None:
    snapshot = build_config_snapshot({}, version=0)

    eligibility = get_referral_bonus_eligibility(snapshot, Decimal("20.50"))

    assert eligibility.is_eligible is False
    assert eligibility.amount_needed == Decimal("14.50")
    assert eligibility.bonus_amount == Decimal("5")
    assert eligibility.minimum_order == Decimal("35")


def test_bonus_eligibility_at_minimum_is_eligible() -> None:
    snapshot = build_config_snapshot({}, version=0)

    eligibility = get_referral_bonus_eligibility(snapshot, Decimal("35.00"))

    assert eligibility.is_eligible is True
    assert eligibility.amount_needed == Decimal("0.00")


def test_promotion_naming_distinguishes_referral_codes() -> None:
    assert promotion_name(is_referral=False) == "Sconto Primo Ordine"
    assert promotion_name(is_referral=True) == "Sconto Primo Ordine (Referral)"
    assert promotion_description(15) == "15% di sconto sul tuo primo ordine"
