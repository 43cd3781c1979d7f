"""
Test suite for the Money type and decimal conversion
"""

import pytest
from decimal import Decimal

from dealer_finance.currency import Currency, Money, round_money, to_decimal
from dealer_finance.exceptions import InvalidInputError


class TestMoney:
    """Test Money arithmetic and rounding"""

    def test_rounds_half_up_to_currency_precision(self):
        assert Money(Decimal('10.005')).amount == Decimal('10.01')
        assert Money(Decimal('10.004')).amount == Decimal('10.00')
        assert Money(Decimal('1234.5'), Currency.JPY).amount == Decimal('1235')

    def test_float_input_uses_shortest_repr(self):
        assert Money(0.1).amount == Decimal('0.10')
        assert Money(547.595).amount == Decimal('547.60')

    def test_arithmetic(self):
        a = Money(Decimal('100.00'))
        b = Money(Decimal('25.50'))

        assert a + b == Money(Decimal('125.50'))
        assert a - b == Money(Decimal('74.50'))
        assert b * 3 == Money(Decimal('76.50'))
        assert a / 3 == Money(Decimal('33.33'))
        assert -b == Money(Decimal('-25.50'))
        assert abs(-b) == b

    def test_currency_mismatch_rejected(self):
        usd = Money(Decimal('10.00'), Currency.USD)
        mxn = Money(Decimal('10.00'), Currency.MXN)

        with pytest.raises(ValueError, match="Cannot add"):
            usd + mxn
        with pytest.raises(ValueError, match="Cannot compare"):
            usd < mxn
        assert usd != mxn

    def test_total(self):
        amounts = [Money(Decimal('1.10')), Money(Decimal('2.20')), Money(Decimal('3.30'))]
        assert Money.total(amounts) == Money(Decimal('6.60'))
        assert Money.total([], Currency.CAD) == Money.zero(Currency.CAD)

    def test_predicates_and_formatting(self):
        assert Money.zero().is_zero()
        assert Money(Decimal('0.01')).is_positive()
        assert Money(Decimal('-0.01')).is_negative()
        assert Money(Decimal('1234.5')).to_string() == "USD 1,234.50"
        assert Money(Decimal('1234'), Currency.JPY).to_string() == "JPY 1,234"

    def test_hashable(self):
        assert len({Money(Decimal('5')), Money(Decimal('5.00'))}) == 1


class TestToDecimal:
    """Test input conversion"""

    @pytest.mark.parametrize("value,expected", [
        (6, Decimal('6')),
        (6.5, Decimal('6.5')),
        ("20000.00", Decimal('20000.00')),
        (" 12 ", Decimal('12')),
        (Decimal('0.5'), Decimal('0.5')),
    ])
    def test_valid_values(self, value, expected):
        assert to_decimal(value) == expected

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity", float('inf'), True, None, [1]])
    def test_invalid_values(self, value):
        with pytest.raises(InvalidInputError):
            to_decimal(value)

    def test_round_money(self):
        assert round_money(Decimal('547.5948741')) == Decimal('547.59')
        assert round_money(Decimal('2.5'), Currency.JPY) == Decimal('3')
