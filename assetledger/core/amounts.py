# assetledger/core/amounts.py
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from assetledger.core.errors import ValidationError

Amount = Union[int, str, Decimal]

# Currency values carry at most two fractional digits (paise / cents).
MAX_FRACTION_DIGITS = 2

AMOUNT_PATTERN = re.compile(r"\d+(\.\d{1,%d})?" % MAX_FRACTION_DIGITS, re.ASCII)


def parse_amount(value: Amount, field: str, key: Optional[str] = None) -> Decimal:
    """
    Coerce a caller-supplied amount into a non-negative Decimal.

    Accepts int, Decimal or a numeric string such as "10000" or "15.50".
    Floats are refused outright since they may already have lost precision.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(key, field, f"expected an integer, decimal or numeric string, got {type(value).__name__}")

    if isinstance(value, int):
        amount = Decimal(value)
    elif isinstance(value, Decimal):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValidationError(key, field, "value is empty")
        # ASCII digits with an optional fraction of up to two digits
        if not AMOUNT_PATTERN.fullmatch(text):
            raise ValidationError(key, field, f"{value!r} is not a number with at most {MAX_FRACTION_DIGITS} decimal places")
        amount = Decimal(text)
    else:
        raise ValidationError(key, field, f"unsupported type {type(value).__name__}")

    if not amount.is_finite():
        raise ValidationError(key, field, f"{value!r} is not a finite number")
    if amount < 0:
        raise ValidationError(key, field, f"{value!r} is negative")

    try:
        if amount == amount.to_integral_value():
            return amount.quantize(Decimal(1))
        if amount.normalize().as_tuple().exponent < -MAX_FRACTION_DIGITS:
            raise ValidationError(key, field, f"{value!r} has more than {MAX_FRACTION_DIGITS} decimal places")
        return amount.quantize(Decimal(1).scaleb(-MAX_FRACTION_DIGITS))
    except InvalidOperation:
        raise ValidationError(key, field, f"{value!r} is too large") from None


def amount_to_json(amount: Decimal) -> Union[int, str]:
    """Integral amounts become JSON integers, the rest stay decimal strings."""
    if amount == amount.to_integral_value():
        return int(amount)
    return format(amount, "f")
