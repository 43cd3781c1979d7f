"""
Amortization Module

Computes the periodic installment, payment count and total interest for a
financed vehicle sale using the standard annuity formula.
"""

from decimal import Decimal
from dataclasses import dataclass
from typing import Union

from .cadence import PaymentFrequency, parse_frequency, periods_per_year
from .currency import Money, Currency, to_decimal
from .exceptions import InvalidInputError


MAX_INTEREST_RATE = Decimal('100')


def periodic_rate(interest_rate: Decimal, frequency: Union[PaymentFrequency, str]) -> Decimal:
    """Annual percentage rate divided across the payment periods of one year"""
    return (to_decimal(interest_rate) / Decimal('100')) / Decimal(periods_per_year(frequency))


def validate_loan_terms(
    vehicle_price: Decimal,
    down_payment: Decimal,
    interest_rate: Decimal,
    loan_term_years: int
) -> None:
    """
    Reject loan terms before any computation

    Raises:
        InvalidInputError: On negative prices, a rate outside [0, 100] or a
            non-positive whole-year term
    """
    if vehicle_price < 0:
        raise InvalidInputError(f"Vehicle price cannot be negative: {vehicle_price}")
    if down_payment < 0:
        raise InvalidInputError(f"Down payment cannot be negative: {down_payment}")
    if interest_rate < 0 or interest_rate > MAX_INTEREST_RATE:
        raise InvalidInputError(f"Interest rate must be between 0 and 100 percent, got {interest_rate}")
    if isinstance(loan_term_years, bool) or not isinstance(loan_term_years, int):
        raise InvalidInputError(f"Loan term must be a whole number of years, got {loan_term_years!r}")
    if loan_term_years <= 0:
        raise InvalidInputError(f"Loan term must be positive, got {loan_term_years}")


@dataclass
class LoanRequest:
    """Terms a salesperson enters when financing a vehicle"""
    vehicle_price: Decimal
    down_payment: Decimal
    interest_rate: Decimal              # Annual percent, e.g. 6 for 6%
    loan_term_years: int
    payment_frequency: PaymentFrequency
    currency: Currency = Currency.USD

    def __post_init__(self):
        self.vehicle_price = to_decimal(self.vehicle_price)
        self.down_payment = to_decimal(self.down_payment)
        self.interest_rate = to_decimal(self.interest_rate)
        self.payment_frequency = parse_frequency(self.payment_frequency)
        validate_loan_terms(
            self.vehicle_price, self.down_payment, self.interest_rate, self.loan_term_years
        )

    @property
    def financed_amount(self) -> Decimal:
        return self.vehicle_price - self.down_payment

    @property
    def total_payments(self) -> int:
        return periods_per_year(self.payment_frequency) * self.loan_term_years

    @property
    def periodic_rate(self) -> Decimal:
        return periodic_rate(self.interest_rate, self.payment_frequency)


@dataclass(frozen=True)
class LoanQuote:
    """Result of an amortization calculation"""
    payment_amount: Money
    total_payments: int
    total_interest: Money
    financed_amount: Money

    @property
    def total_of_payments(self) -> Money:
        """Everything the buyer pays over the schedule, excluding the down payment"""
        return self.financed_amount + self.total_interest


def annuity_payment(principal: Decimal, rate: Decimal, num_payments: int) -> Decimal:
    """
    Unrounded level payment that amortizes principal over num_payments

    Standard loan payment formula: P * [r(1+r)^n] / [(1+r)^n - 1]
    """
    if num_payments <= 0:
        raise InvalidInputError("Number of payments must be positive")
    if principal <= 0:
        return Decimal('0')
    if rate == Decimal('0'):
        return principal / Decimal(num_payments)

    factor = (Decimal('1') + rate) ** num_payments
    return principal * (rate * factor) / (factor - Decimal('1'))


def calculate_loan_details(request: LoanRequest) -> LoanQuote:
    """
    Calculate payment amount, payment count and total interest

    Args:
        request: Validated loan request

    Returns:
        LoanQuote with the payment rounded half-up to cents. Total interest is
        derived from the unrounded payment.
    """
    currency = request.currency
    financed = request.financed_amount
    num_payments = request.total_payments

    if financed <= 0:
        # Fully covered by the down payment
        zero = Money.zero(currency)
        return LoanQuote(
            payment_amount=zero,
            total_payments=num_payments,
            total_interest=zero,
            financed_amount=Money(financed, currency)
        )

    payment = annuity_payment(financed, request.periodic_rate, num_payments)
    # Zero-rate division residue can go a hair below zero
    total_interest = max(payment * Decimal(num_payments) - financed, Decimal('0'))

    return LoanQuote(
        payment_amount=Money(payment, currency),
        total_payments=num_payments,
        total_interest=Money(total_interest, currency),
        financed_amount=Money(financed, currency)
    )
