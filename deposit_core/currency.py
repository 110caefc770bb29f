"""
Currency Support Module

Handles ISO 4217 currency codes and proper Decimal precision for monetary
amounts. NEVER uses float for monetary values.
"""

from decimal import Decimal, ROUND_HALF_UP, ROUND_FLOOR, InvalidOperation
from enum import Enum
from typing import Union
import re


class Currency(Enum):
    """ISO 4217 Currency Codes with precision info"""
    KWD = ("KWD", 3)  # Kuwaiti Dinar, 3 decimal places
    INR = ("INR", 2)  # Indian Rupee
    USD = ("USD", 2)  # US Dollar
    EUR = ("EUR", 2)  # Euro
    GBP = ("GBP", 2)  # British Pound
    AED = ("AED", 2)  # UAE Dirham
    JPY = ("JPY", 0)  # Japanese Yen, 0 decimal places

    def __init__(self, code: str, precision: int):
        self.code = code
        self.precision = precision

    @property
    def quantum(self) -> Decimal:
        return Decimal(1).scaleb(-self.precision)

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        try:
            return cls[code.strip().upper()]
        except KeyError:
            raise ValueError(f"Unsupported currency: {code}")


def round_money(value: Decimal, currency: Currency = None, places: int = 2) -> Decimal:
    """
    Round half-up to the currency's precision, or to `places` when no
    currency is given.
    """
    if currency is not None:
        return value.quantize(currency.quantum, rounding=ROUND_HALF_UP)
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def whole_units(value: Decimal) -> Decimal:
    """Floor a non-negative amount to whole token units"""
    return value.to_integral_value(rounding=ROUND_FLOOR)


def is_whole(value: Decimal) -> bool:
    return value == value.to_integral_value()


def decimal_from_string(value: Union[str, int, Decimal]) -> Decimal:
    """
    Convert a wire value to Decimal. Floats are refused so that binary
    floating point never reaches monetary arithmetic.

    Raises:
        ValueError: If the value cannot be converted
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError("Monetary amounts must be decimal strings or integers")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if not value or not isinstance(value, str):
        raise ValueError("Value must be a non-empty string")

    clean_value = re.sub(r'[\s_,]', '', value.strip())
    try:
        result = Decimal(clean_value)
    except InvalidOperation:
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    if not result.is_finite():
        raise ValueError(f"Cannot convert '{value}' to Decimal")
    return result
