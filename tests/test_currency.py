"""
Test suite for currency helpers

Validates precision handling, whole-token checks and wire conversions.
"""

import pytest
from decimal import Decimal

from deposit_core.currency import (
    Currency, round_money, whole_units, is_whole, decimal_from_string
)


class TestCurrency:
    """Test Currency enum"""

    def test_precision(self):
        assert Currency.KWD.precision == 3
        assert Currency.USD.precision == 2
        assert Currency.JPY.precision == 0

    def test_quantum(self):
        assert Currency.KWD.quantum == Decimal('0.001')
        assert Currency.JPY.quantum == Decimal('1')

    def test_from_code(self):
        assert Currency.from_code(" kwd ") == Currency.KWD

    def test_unknown_code(self):
        with pytest.raises(ValueError, match="Unsupported currency"):
            Currency.from_code("XYZ")


class TestRounding:
    """Test rounding helpers"""

    def test_round_half_up_default_places(self):
        assert round_money(Decimal('1.005')) == Decimal('1.01')
        assert round_money(Decimal('1.004')) == Decimal('1.00')

    def test_round_to_currency(self):
        assert round_money(Decimal('1.0005'), Currency.KWD) == Decimal('1.001')

    def test_whole_units_floors(self):
        assert whole_units(Decimal('101.999')) == Decimal('101')

    def test_is_whole(self):
        assert is_whole(Decimal('5.000'))
        assert not is_whole(Decimal('5.5'))


class TestDecimalFromString:
    """Test wire value conversion"""

    def test_string(self):
        assert decimal_from_string("1,000.50") == Decimal('1000.50')

    def test_integer(self):
        assert decimal_from_string(42) == Decimal('42')

    def test_float_rejected(self):
        with pytest.raises(ValueError, match="decimal strings"):
            decimal_from_string(1.5)

    def test_bool_rejected(self):
        with pytest.raises(ValueError):
            decimal_from_string(True)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError, match="Cannot convert"):
            decimal_from_string("abc")

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            decimal_from_string("NaN")
