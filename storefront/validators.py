"""Input validators for values coming from forms before they reach the cart."""
import math
from decimal import Decimal, InvalidOperation
from typing import Union

from storefront.errors import ERROR_QUANTITY_NOT_INTEGER


def coerce_quantity(value: Union[int, float, str, Decimal]) -> int:
    """
    Turn raw quantity input into an integer.

    Integers pass through unchanged; floats, Decimals and numeric strings are
    floored. The result may be zero or negative: update_quantity treats those
    as removal, add_item rejects them.

    Args:
        value: Raw quantity (e.g. from a number input)

    Returns:
        Integer quantity

    Raises:
        ValueError: For bools, NaN/infinity and non-numeric input
    """
    if isinstance(value, bool):
        raise ValueError(ERROR_QUANTITY_NOT_INTEGER)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(ERROR_QUANTITY_NOT_INTEGER)
        return math.floor(value)
    if isinstance(value, (str, Decimal)):
        try:
            number = Decimal(value.strip()) if isinstance(value, str) else value
        except InvalidOperation:
            raise ValueError(ERROR_QUANTITY_NOT_INTEGER) from None
        if not number.is_finite():
            raise ValueError(ERROR_QUANTITY_NOT_INTEGER)
        return math.floor(number)
    raise ValueError(ERROR_QUANTITY_NOT_INTEGER)


def is_positive_int(value) -> bool:
    """True for real ints (not bools) greater than zero."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0
