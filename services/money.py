from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Coerce int/float/str/Decimal/None to a Decimal rounded to cents."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a monetary amount: {value!r}")
    if not value.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return value.quantize(CENT, rounding=ROUND_HALF_UP)
