# teastore/utils/money.py

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

Money = Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def D(x) -> Money:
    if isinstance(x, Decimal):
        return x
    if isinstance(x, bool):
        raise InvalidOperation(f"not a money value: {x!r}")
    return Decimal(str(x if x is not None else "0"))


def round_money(x: Money) -> Money:
    return D(x).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def round_display(x: Money) -> int:
    """Whole currency units, half-up, as shown on the storefront."""
    return int(D(x).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_string_money(x) -> str:
    return str(round_money(x))
