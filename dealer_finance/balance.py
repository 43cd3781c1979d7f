"""
Balance Reconstruction Module

Derives the remaining principal and remaining payment count of a loan from its
original terms and the total amount paid so far. No remaining-balance field is
ever stored; corrections to payment history are picked up on the next replay.
"""

from decimal import Decimal, ROUND_CEILING
from dataclasses import dataclass
from typing import Optional, Union

from .amortization import periodic_rate
from .cadence import PaymentFrequency
from .currency import CENT, Currency, Money, to_decimal, round_money
from .exceptions import InvalidInputError


# Fraction of a period treated as rounding residue when counting payments left
PERIOD_TOLERANCE = Decimal('0.001')


@dataclass(frozen=True)
class BalanceSnapshot:
    """Outcome of replaying amortization over the amount paid"""
    remaining_principal: Money
    remaining_payments: int
    periods_replayed: int       # Full payments consumed by the replay

    @property
    def is_paid_off(self) -> bool:
        return self.remaining_principal.is_zero()


def remaining_payment_count(remaining: Decimal, payment: Decimal, rate: Decimal) -> int:
    """
    Payments needed to retire remaining at the given level payment

    Inverse annuity formula: ceil(ln(P / (P - B*r)) / ln(1 + r))

    Raises:
        InvalidInputError: If the payment does not cover periodic interest
    """
    if remaining <= 0:
        return 0
    if payment <= 0:
        raise InvalidInputError("A positive payment is required to retire a balance")

    if rate == Decimal('0'):
        periods = remaining / payment
    else:
        interest = remaining * rate
        if payment <= interest:
            raise InvalidInputError(
                f"Payment {payment} does not cover periodic interest {round_money(interest)}"
            )
        periods = (payment / (payment - interest)).ln() / (Decimal('1') + rate).ln()

    count = int((periods - PERIOD_TOLERANCE).to_integral_value(rounding=ROUND_CEILING))
    return max(0, count)


def reconstruct_balance(
    financed_amount: Union[Money, Decimal],
    interest_rate: Decimal,
    payment_amount: Union[Money, Decimal],
    payment_frequency: Union[PaymentFrequency, str],
    total_paid: Union[Money, Decimal],
    total_payments: Optional[int] = None,
    currency: Currency = Currency.USD
) -> BalanceSnapshot:
    """
    Replay amortization period by period over the amount paid

    Each full payment first covers interest on the outstanding principal and
    the rest reduces principal. A leftover smaller than one payment is applied
    as a partial period whose principal portion never goes below zero.

    Args:
        financed_amount: Original principal
        interest_rate: Annual percent
        payment_amount: Scheduled level payment
        payment_frequency: Payment cadence
        total_paid: Sum of installment amounts paid, excluding the down payment
        total_payments: Scheduled payment count. When given, a residue of at
            most one cent per scheduled payment left after the whole term has
            been replayed is treated as rounding drift and zeroed, and the
            remaining count never exceeds the unpaid part of the schedule.
        currency: Currency of the returned amounts

    Returns:
        BalanceSnapshot
    """
    financed = _amount(financed_amount)
    payment = _amount(payment_amount)
    paid = _amount(total_paid)
    nothing_paid = paid == 0
    rate = periodic_rate(interest_rate, payment_frequency)

    if paid < 0:
        raise InvalidInputError(f"Total paid cannot be negative: {paid}")
    if payment < 0:
        raise InvalidInputError(f"Payment amount cannot be negative: {payment}")

    remaining = financed
    periods = 0

    if payment > 0:
        while paid >= payment and remaining > 0:
            interest_portion = remaining * rate
            principal_portion = payment - interest_portion
            remaining -= principal_portion
            paid -= payment
            periods += 1

    # Partial period for whatever is left over
    if paid > 0 and remaining > 0:
        interest_portion = remaining * rate
        principal_portion = max(paid - interest_portion, Decimal('0'))
        remaining -= principal_portion

    if total_payments is not None and periods >= total_payments > 0:
        if remaining <= CENT * total_payments:
            remaining = Decimal('0')

    remaining = max(round_money(remaining, currency), Decimal('0'))
    remaining_payments = remaining_payment_count(remaining, payment, rate)

    if total_payments is not None and remaining > 0:
        # A cent-rounded payment can stretch the formula past the schedule
        if nothing_paid:
            remaining_payments = total_payments
        else:
            remaining_payments = min(remaining_payments, max(total_payments - periods, 1))

    return BalanceSnapshot(
        remaining_principal=Money(remaining, currency),
        remaining_payments=remaining_payments,
        periods_replayed=periods
    )


def _amount(value: Union[Money, Decimal]) -> Decimal:
    if isinstance(value, Money):
        return value.amount
    return to_decimal(value)
