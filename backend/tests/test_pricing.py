import random
from decimal import Decimal

import pytest

from footymarket.pricing import (
    PRICE_RANGES,
    change_percent,
    generate_price,
    price_is_current,
    price_range_for,
    to_decimal,
    weighted_average_price,
)


def test_weighted_average_matches_worked_example():
    assert weighted_average_price(2, Decimal("100"), 1, Decimal("130")) == Decimal("110")


def test_weighted_average_first_purchase_is_trade_price():
    assert weighted_average_price(0, Decimal("0"), 3, Decimal("42.5")) == Decimal("42.5")


def test_to_decimal_goes_through_str():
    assert to_decimal(0.1) == Decimal("0.1")
    assert to_decimal(None) == Decimal("0")


def test_price_is_current_exact_match():
    assert price_is_current(Decimal("100"), Decimal("100.000000"), tolerance=Decimal("0"))
    assert not price_is_current(Decimal("99.99"), Decimal("100"), tolerance=Decimal("0"))
    assert price_is_current(Decimal("99.99"), Decimal("100"), tolerance=Decimal("0.01"))


@pytest.mark.parametrize("position", sorted(PRICE_RANGES))
def test_generated_price_stays_in_band(position):
    low, high = PRICE_RANGES[position]
    rng = random.Random(7)
    for _ in range(200):
        price = generate_price(position, rng)
        assert Decimal(low) <= price <= Decimal(high)
        assert price == price.to_integral_value()


def test_unknown_position_uses_midfielder_band():
    assert price_range_for("Wingback") == PRICE_RANGES["Midfielder"]
    assert price_range_for("  forward ") == PRICE_RANGES["Forward"]


def test_change_percent():
    assert change_percent(Decimal("100"), Decimal("110")) == Decimal("10")
    assert change_percent(Decimal("0"), Decimal("110")) == Decimal("0")
