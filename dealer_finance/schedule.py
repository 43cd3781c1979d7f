"""
Payment Schedule Module

Expands a financed sale into its ordered sequence of pending installments.
"""

from datetime import date
from dataclasses import dataclass
from typing import Iterator, List, Union

from .cadence import PaymentFrequency, advance, first_payment_date, parse_frequency
from .currency import Money
from .exceptions import InvalidInputError


@dataclass(frozen=True)
class ScheduledInstallment:
    """One not-yet-persisted installment of a schedule"""
    sequence: int               # 1-based position in the schedule
    amount: Money
    due_date: date
    status: str = "pending"


class PaymentSchedule:
    """
    Lazy, finite, restartable installment sequence

    Iterating yields total_payments installments. due_date[0] is one period
    after the sale start date and every later due date is advance() of the
    previous one. Each call to iter() starts again from the first installment.
    """

    def __init__(
        self,
        start_date: date,
        frequency: Union[PaymentFrequency, str],
        total_payments: int,
        payment_amount: Money
    ):
        if total_payments < 0:
            raise InvalidInputError(f"total_payments cannot be negative, got {total_payments}")
        if payment_amount.is_negative():
            raise InvalidInputError(f"payment_amount cannot be negative, got {payment_amount.to_string()}")

        self.start_date = start_date
        self.frequency = parse_frequency(frequency)
        self.total_payments = total_payments
        self.payment_amount = payment_amount

    def __iter__(self) -> Iterator[ScheduledInstallment]:
        due_date = first_payment_date(self.start_date, self.frequency)
        for sequence in range(1, self.total_payments + 1):
            yield ScheduledInstallment(
                sequence=sequence,
                amount=self.payment_amount,
                due_date=due_date
            )
            due_date = advance(due_date, self.frequency)

    def __len__(self) -> int:
        return self.total_payments

    @property
    def first_due_date(self) -> date:
        return first_payment_date(self.start_date, self.frequency)

    @property
    def final_due_date(self) -> date:
        """Due date of the last installment"""
        if self.total_payments == 0:
            raise InvalidInputError("Empty schedule has no final due date")
        due_date = self.first_due_date
        for _ in range(self.total_payments - 1):
            due_date = advance(due_date, self.frequency)
        return due_date

    def due_dates(self) -> List[date]:
        return [installment.due_date for installment in self]
