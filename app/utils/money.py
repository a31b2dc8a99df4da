from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from app.core.config import CURRENCY_LABEL
from app.core.errors import InvalidAmount

MONEY_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
# largest value a Numeric(14, 2) column holds
MAX_AMOUNT = Decimal("999999999999.99")


def _to_decimal(x) -> Decimal:
    if x is None:
        x = 0
    if isinstance(x, Decimal):
        d = x
    else:
        try:
            d = Decimal(str(x))
        except InvalidOperation:
            raise InvalidAmount()
    if not d.is_finite():
        raise InvalidAmount()
    return d


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    d = _to_decimal(x)
    try:
        return d.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount("Amount is too large")


def parse_amount(x) -> Decimal:
    """
    Amount supplied by a caller. Never rounded: more than 2 decimal places or
    a value the money columns cannot store raises InvalidAmount.
    """
    d = _to_decimal(x)
    if abs(d) > MAX_AMOUNT:
        raise InvalidAmount("Amount is too large", max_allowed=MAX_AMOUNT)
    q = d.quantize(MONEY_PLACES)
    if q != d:
        raise InvalidAmount()
    return q


def clamp_non_negative(x) -> Decimal:
    x = money(x)
    return x if x > ZERO else ZERO


def format_amount(x) -> str:
    """
    1000000 -> "1 000 000 so'm"
    1500.50 -> "1 500.50 so'm"
    """
    x = money(x)
    if x == x.to_integral_value():
        body = f"{int(x):,}"
    else:
        body = f"{x:,.2f}"
    return f"{body.replace(',', ' ')} {CURRENCY_LABEL}"
