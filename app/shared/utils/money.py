# 📄 File: app/shared/utils/money.py
# 🧭 Purpose (Layman Explanation):
# Keeps every dollar amount exact to the cent so prices, discounts and charges always add up.
# 🧪 Purpose (Technical Summary):
# Money helpers. Amounts are Decimal dollars rounded half-up to cents; JSONMoney serializes them
# as JSON numbers while keeping Decimal in Python.
# 🔗 Dependencies:
# decimal, pydantic
# 🔄 Connected Modules / Calls From:
# pricing_service.py, subscription_service.py, subscription and payment DTOs

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Union

from pydantic import PlainSerializer

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Convert a number to a cent-rounded Decimal."""
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def non_negative(value: Decimal) -> Decimal:
    """Floor an amount at zero."""
    return value if value > ZERO else ZERO


def to_minor_units(value: Decimal) -> int:
    """Dollars to integer cents, as payment processors expect."""
    return int((to_money(value) * 100).to_integral_value(rounding=ROUND_HALF_UP))


# Decimal in Python, plain number in JSON responses
JSONMoney = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
