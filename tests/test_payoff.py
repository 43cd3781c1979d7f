"""
Test suite for early payoff quotes
"""

import pytest
from decimal import Decimal

from dealer_finance.currency import Currency, Money
from dealer_finance.exceptions import InvalidInputError
from dealer_finance.payoff import calculate_early_payoff


class TestEarlyPayoff:
    """Test proportional interest allocation"""

    def test_one_third_through_term(self):
        quote = calculate_early_payoff(
            remaining_principal=Money(Decimal('12355.37')),
            original_loan_amount=Money(Decimal('18000')),
            total_interest=Money(Decimal('1713.42')),
            remaining_payments=24,
            total_payments=36
        )

        # 12355.37 + 1713.42 / 3
        assert quote.payoff_amount == Money(Decimal('12927'))
        # 19713.42 - (5644.63 + 12927)
        assert quote.total_savings == Money(Decimal('1142'))
        # 1713.42 * 2 / 3
        assert quote.interest_saved == Money(Decimal('1142'))
        assert quote.remaining_payments == 24

    def test_nothing_paid(self):
        quote = calculate_early_payoff(
            Decimal('18000'), Decimal('18000'), Decimal('1713.42'), 36, 36
        )

        assert quote.payoff_amount == Money(Decimal('18000'))
        assert quote.interest_saved == Money(Decimal('1713'))
        assert quote.total_savings == Money(Decimal('1713'))

    def test_no_payments_remaining(self):
        quote = calculate_early_payoff(
            Decimal('0'), Decimal('18000'), Decimal('1713.42'), 0, 36
        )

        assert quote.payoff_amount == Money(Decimal('1713'))
        assert quote.interest_saved == Money.zero()

    def test_whole_unit_rounding_is_half_up(self):
        quote = calculate_early_payoff(
            Decimal('100.50'), Decimal('100.50'), Decimal('0'), 1, 1
        )
        assert quote.payoff_amount == Money(Decimal('101'))

    def test_currency(self):
        quote = calculate_early_payoff(
            Money(Decimal('1000'), Currency.CAD), Money(Decimal('2000'), Currency.CAD),
            Money(Decimal('120'), Currency.CAD), 6, 12, currency=Currency.CAD
        )
        assert quote.payoff_amount == Money(Decimal('1060'), Currency.CAD)

    def test_rejects_invalid_counts(self):
        with pytest.raises(InvalidInputError, match="total_payments must be positive"):
            calculate_early_payoff(Decimal('1'), Decimal('1'), Decimal('0'), 0, 0)
        with pytest.raises(InvalidInputError, match="remaining_payments cannot be negative"):
            calculate_early_payoff(Decimal('1'), Decimal('1'), Decimal('0'), -1, 12)
