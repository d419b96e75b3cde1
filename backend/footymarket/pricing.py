import os
import random
from decimal import Decimal


PRICE_QUANTUM = Decimal("0.000001")
PRICE_TOLERANCE = max(Decimal("0"), Decimal(os.environ.get("PRICE_TOLERANCE", "0")))

# EUR millions, inclusive.
PRICE_RANGES: dict[str, tuple[int, int]] = {
    "Forward": (50, 200),
    "Midfielder": (30, 150),
    "Defender": (20, 100),
    "Goalkeeper": (15, 80),
}
DEFAULT_PRICE_RANGE = PRICE_RANGES["Midfielder"]


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_QUANTUM)


def weighted_average_price(
    held_quantity: int,
    held_average: Decimal,
    bought_quantity: int,
    price: Decimal,
) -> Decimal:
    """Quantity-weighted mean of the existing holding and a new purchase."""
    total_quantity = held_quantity + bought_quantity
    if total_quantity <= 0:
        return Decimal("0")
    total_cost = Decimal(held_quantity) * held_average + Decimal(bought_quantity) * price
    return quantize_price(total_cost / Decimal(total_quantity))


def price_is_current(quoted: Decimal, current: Decimal, tolerance: Decimal = PRICE_TOLERANCE) -> bool:
    return abs(quoted - current) <= tolerance


def price_range_for(position: str) -> tuple[int, int]:
    return PRICE_RANGES.get((position or "").strip().title(), DEFAULT_PRICE_RANGE)


def generate_price(position: str, rng: random.Random | None = None) -> Decimal:
    """Random whole-million price inside the band for a playing position."""
    low, high = price_range_for(position)
    source = rng or random
    return Decimal(source.randint(low, high))


def change_percent(reference: Decimal, current: Decimal) -> Decimal:
    if reference <= 0:
        return Decimal("0")
    return (current - reference) / reference * Decimal(100)
