from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP

MONEY_QUANT = Decimal("0.01")
RATE_QUANT = Decimal("0.01")
RATIO_QUANT = Decimal("0.0001")
ZERO_MONEY = Decimal("0.00")
ZERO_QUANTITY = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        return ZERO_QUANTITY
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Decimal | int | float | str) -> Decimal:
    return Decimal(str(value)).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator at four places, HALF_UP; zero denominator yields zero."""
    if denominator == 0:
        return ZERO_QUANTITY
    return (numerator / denominator).quantize(RATIO_QUANT, rounding=ROUND_HALF_UP)


def percentage(numerator: Decimal, denominator: Decimal) -> Decimal:
    return ratio(numerator, denominator) * HUNDRED


def floor_div(numerator: Decimal, denominator: Decimal) -> int:
    if denominator == 0:
        return 0
    return int((numerator / denominator).to_integral_value(rounding=ROUND_DOWN))
