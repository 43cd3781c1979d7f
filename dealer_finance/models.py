"""
Sale and Payment Records

Persisted shape of a financed sale and its installments, plus the derived,
never-stored payment standing used for overdue classification.
"""

from decimal import Decimal
from datetime import datetime, date, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import uuid

from .amortization import LoanRequest, calculate_loan_details
from .cadence import (
    DEFAULT_GRACE_PERIOD_DAYS, PaymentFrequency, as_date, first_payment_date,
    is_overdue, parse_frequency, periods_per_year
)
from .currency import Currency, Money, to_decimal
from .exceptions import InvalidInputError
from .storage import StorageRecord


class SaleStatus(Enum):
    """Financed sale lifecycle states"""
    ACTIVE = "active"             # Installments being collected
    COMPLETED = "completed"       # Paid in full
    DEFAULTED = "defaulted"       # Buyer stopped paying
    CANCELLED = "cancelled"       # Unwound by the sales workflow


class PaymentStatus(Enum):
    """Persisted payment states"""
    PENDING = "pending"
    PAID = "paid"


class PaymentStanding(Enum):
    """Derived view of a payment as of a given day; never persisted"""
    PAID = "paid"
    OVERDUE = "overdue"           # Past due date plus grace period
    IN_GRACE = "in_grace"         # Past due date, still inside grace period
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4()}"


@dataclass
class Sale(StorageRecord):
    """One financed vehicle sale"""
    vehicle_id: str
    client_id: str
    sale_price: Money
    down_payment: Money
    financed_amount: Money
    interest_rate: Decimal              # Annual percent
    loan_term_years: int
    payment_frequency: PaymentFrequency
    payment_amount: Money
    total_payments: int
    start_date: date
    first_payment_date: date
    status: SaleStatus = SaleStatus.ACTIVE
    ledger_version: int = 0

    def __post_init__(self):
        self.interest_rate = to_decimal(self.interest_rate)
        self.payment_frequency = parse_frequency(self.payment_frequency)

        if self.financed_amount != self.sale_price - self.down_payment:
            raise InvalidInputError(
                f"Financed amount {self.financed_amount.to_string()} must equal sale price "
                f"{self.sale_price.to_string()} minus down payment {self.down_payment.to_string()}"
            )
        expected_payments = periods_per_year(self.payment_frequency) * self.loan_term_years
        if self.total_payments != expected_payments:
            raise InvalidInputError(
                f"Total payments {self.total_payments} must equal {expected_payments} "
                f"for a {self.loan_term_years}-year {self.payment_frequency.value} loan"
            )
        if self.first_payment_date != first_payment_date(self.start_date, self.payment_frequency):
            raise InvalidInputError(
                f"First payment date {self.first_payment_date} must fall one "
                f"{self.payment_frequency.value} period after the sale date {self.start_date}"
            )

    @classmethod
    def from_request(
        cls,
        request: LoanRequest,
        vehicle_id: str,
        client_id: str,
        start_date: date,
        sale_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> 'Sale':
        """Finalize a loan request into a new active sale"""
        quote = calculate_loan_details(request)
        now = now or datetime.now(timezone.utc)
        currency = request.currency
        return cls(
            id=sale_id or _new_id("sale"),
            created_at=now,
            updated_at=now,
            vehicle_id=vehicle_id,
            client_id=client_id,
            sale_price=Money(request.vehicle_price, currency),
            down_payment=Money(request.down_payment, currency),
            financed_amount=quote.financed_amount,
            interest_rate=request.interest_rate,
            loan_term_years=request.loan_term_years,
            payment_frequency=request.payment_frequency,
            payment_amount=quote.payment_amount,
            total_payments=quote.total_payments,
            start_date=start_date,
            first_payment_date=first_payment_date(start_date, request.payment_frequency)
        )

    @property
    def currency(self) -> Currency:
        return self.sale_price.currency

    @property
    def is_active(self) -> bool:
        return self.status == SaleStatus.ACTIVE

    @property
    def scheduled_interest(self) -> Money:
        """Interest implied by the stored payment over the full schedule"""
        interest = self.payment_amount * Decimal(self.total_payments) - self.financed_amount
        if interest.is_negative():
            return Money.zero(self.currency)
        return interest

    def to_loan_request(self) -> LoanRequest:
        """Re-validate the stored terms as a loan request"""
        return LoanRequest(
            vehicle_price=self.sale_price.amount,
            down_payment=self.down_payment.amount,
            interest_rate=self.interest_rate,
            loan_term_years=self.loan_term_years,
            payment_frequency=self.payment_frequency,
            currency=self.currency
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert sale to dictionary"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'vehicle_id': self.vehicle_id,
            'client_id': self.client_id,
            'currency': self.currency.code,
            'sale_price': str(self.sale_price.amount),
            'down_payment': str(self.down_payment.amount),
            'financed_amount': str(self.financed_amount.amount),
            'interest_rate': str(self.interest_rate),
            'loan_term_years': self.loan_term_years,
            'payment_frequency': self.payment_frequency.value,
            'payment_amount': str(self.payment_amount.amount),
            'total_payments': self.total_payments,
            'start_date': self.start_date.isoformat(),
            'first_payment_date': self.first_payment_date.isoformat(),
            'status': self.status.value,
            'ledger_version': self.ledger_version
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sale':
        """Convert dictionary to sale"""
        currency = Currency[data['currency']]

        def get_money(key: str) -> Money:
            return Money(Decimal(data[key]), currency)

        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            vehicle_id=data['vehicle_id'],
            client_id=data['client_id'],
            sale_price=get_money('sale_price'),
            down_payment=get_money('down_payment'),
            financed_amount=get_money('financed_amount'),
            interest_rate=Decimal(data['interest_rate']),
            loan_term_years=data['loan_term_years'],
            payment_frequency=PaymentFrequency(data['payment_frequency']),
            payment_amount=get_money('payment_amount'),
            total_payments=data['total_payments'],
            start_date=date.fromisoformat(data['start_date']),
            first_payment_date=date.fromisoformat(data['first_payment_date']),
            status=SaleStatus(data['status']),
            ledger_version=data.get('ledger_version', 0)
        )


@dataclass
class Payment(StorageRecord):
    """One scheduled or completed installment"""
    sale_id: str
    amount: Money
    due_date: date
    status: PaymentStatus = PaymentStatus.PENDING
    paid_date: Optional[date] = None

    def __post_init__(self):
        if self.amount.is_negative():
            raise InvalidInputError(f"Payment amount cannot be negative: {self.amount.to_string()}")
        if self.status == PaymentStatus.PAID and self.paid_date is None:
            raise InvalidInputError("Paid payments must carry a paid date")
        if self.status == PaymentStatus.PENDING and self.paid_date is not None:
            raise InvalidInputError("Pending payments cannot carry a paid date")

    @classmethod
    def pending(
        cls,
        sale_id: str,
        amount: Money,
        due_date: date,
        payment_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> 'Payment':
        now = now or datetime.now(timezone.utc)
        return cls(
            id=payment_id or _new_id("payment"),
            created_at=now,
            updated_at=now,
            sale_id=sale_id,
            amount=amount,
            due_date=due_date
        )

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    @property
    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def to_dict(self) -> Dict[str, Any]:
        """Convert payment to dictionary"""
        return {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'updated_at': self.updated_at.isoformat(),
            'sale_id': self.sale_id,
            'amount': str(self.amount.amount),
            'currency': self.amount.currency.code,
            'due_date': self.due_date.isoformat(),
            'status': self.status.value,
            'paid_date': self.paid_date.isoformat() if self.paid_date else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        """Convert dictionary to payment"""
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            sale_id=data['sale_id'],
            amount=Money(Decimal(data['amount']), Currency[data['currency']]),
            due_date=date.fromisoformat(data['due_date']),
            status=PaymentStatus(data['status']),
            paid_date=date.fromisoformat(data['paid_date']) if data.get('paid_date') else None
        )


def derive_standing(
    payment: Payment,
    now,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> PaymentStanding:
    """
    Classify a payment as of now

    Paid payments are always PAID. Pending payments are OVERDUE once now is
    past due date plus grace, IN_GRACE between the due date and that point,
    DUE_TODAY on the due date and UPCOMING before it.
    """
    if payment.is_paid:
        return PaymentStanding.PAID

    today = as_date(now)
    if is_overdue(payment.due_date, today, grace_period_days):
        return PaymentStanding.OVERDUE
    if today > payment.due_date:
        return PaymentStanding.IN_GRACE
    if today == payment.due_date:
        return PaymentStanding.DUE_TODAY
    return PaymentStanding.UPCOMING


@dataclass
class PaymentClassification:
    """Pending payments grouped by standing"""
    overdue: List[Payment] = field(default_factory=list)
    due_today: List[Payment] = field(default_factory=list)
    upcoming: List[Payment] = field(default_factory=list)
    in_grace: List[Payment] = field(default_factory=list)

    @property
    def total_overdue(self) -> Money:
        if not self.overdue:
            return Money.zero()
        return Money.total((p.amount for p in self.overdue), self.overdue[0].amount.currency)


def sort_by_due_date(payments: List[Payment]) -> List[Payment]:
    return sorted(payments, key=lambda p: (p.due_date, p.id))
