"""
Test suite for sale and payment records
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from dealer_finance.amortization import LoanRequest
from dealer_finance.cadence import PaymentFrequency
from dealer_finance.currency import Currency, Money
from dealer_finance.exceptions import InvalidInputError
from dealer_finance.models import (
    Payment, PaymentStanding, PaymentStatus, Sale, SaleStatus,
    derive_standing, sort_by_due_date
)


def make_sale(**overrides):
    request = LoanRequest(
        vehicle_price=Decimal('20000'),
        down_payment=Decimal('2000'),
        interest_rate=Decimal('6'),
        loan_term_years=3,
        payment_frequency=PaymentFrequency.MONTHLY
    )
    sale = Sale.from_request(request, "vehicle-1", "client-1", date(2024, 1, 15), sale_id="sale-1")
    for key, value in overrides.items():
        setattr(sale, key, value)
    return sale


class TestSale:
    """Test sale construction and invariants"""

    def test_from_request(self):
        sale = make_sale()

        assert sale.id == "sale-1"
        assert sale.status == SaleStatus.ACTIVE
        assert sale.financed_amount == Money(Decimal('18000'))
        assert sale.payment_amount == Money(Decimal('547.59'))
        assert sale.total_payments == 36
        assert sale.first_payment_date == date(2024, 2, 15)
        assert sale.ledger_version == 0
        assert sale.is_active

    def test_scheduled_interest_uses_stored_payment(self):
        assert make_sale().scheduled_interest == Money(Decimal('1713.24'))

    def test_generated_id(self):
        request = LoanRequest(Decimal('1000'), Decimal('0'), Decimal('0'), 1, "monthly")
        sale = Sale.from_request(request, "v", "c", date(2024, 1, 1))
        assert sale.id.startswith("sale-")

    def test_financed_amount_invariant(self):
        data = make_sale().to_dict()
        data['financed_amount'] = "17000.00"

        with pytest.raises(InvalidInputError, match="must equal sale price"):
            Sale.from_dict(data)

    def test_total_payments_invariant(self):
        data = make_sale().to_dict()
        data['total_payments'] = 35

        with pytest.raises(InvalidInputError, match="Total payments 35 must equal 36"):
            Sale.from_dict(data)

    def test_first_payment_date_invariant(self):
        data = make_sale().to_dict()
        data['first_payment_date'] = "2024-02-16"

        with pytest.raises(InvalidInputError, match="First payment date"):
            Sale.from_dict(data)

    def test_dict_round_trip(self):
        sale = make_sale(status=SaleStatus.DEFAULTED, ledger_version=4)
        restored = Sale.from_dict(sale.to_dict())

        assert restored == sale
        assert restored.interest_rate == Decimal('6')
        assert restored.currency == Currency.USD

    def test_to_loan_request(self):
        request = make_sale().to_loan_request()
        assert request.financed_amount == Decimal('18000.00')
        assert request.total_payments == 36


class TestPayment:
    """Test payment records"""

    def test_pending_factory(self):
        payment = Payment.pending("sale-1", Money(Decimal('100')), date(2024, 2, 1))

        assert payment.id.startswith("payment-")
        assert payment.status == PaymentStatus.PENDING
        assert payment.is_pending
        assert payment.paid_date is None

    def test_paid_date_required_iff_paid(self):
        payment = Payment.pending("sale-1", Money(Decimal('100')), date(2024, 2, 1))
        data = payment.to_dict()

        data['status'] = "paid"
        with pytest.raises(InvalidInputError, match="must carry a paid date"):
            Payment.from_dict(data)

        data['status'] = "pending"
        data['paid_date'] = "2024-02-01"
        with pytest.raises(InvalidInputError, match="cannot carry a paid date"):
            Payment.from_dict(data)

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidInputError):
            Payment.pending("sale-1", Money(Decimal('-1')), date(2024, 2, 1))

    def test_dict_round_trip(self):
        now = datetime(2024, 2, 1, tzinfo=timezone.utc)
        payment = Payment(
            id="p1", created_at=now, updated_at=now, sale_id="sale-1",
            amount=Money(Decimal('547.59')), due_date=date(2024, 2, 15),
            status=PaymentStatus.PAID, paid_date=date(2024, 2, 14)
        )
        assert Payment.from_dict(payment.to_dict()) == payment

    def test_sort_by_due_date(self):
        later = Payment.pending("s", Money(Decimal('1')), date(2024, 3, 1), payment_id="b")
        earlier = Payment.pending("s", Money(Decimal('1')), date(2024, 2, 1), payment_id="a")
        assert sort_by_due_date([later, earlier]) == [earlier, later]


class TestDeriveStanding:
    """Test the derived overdue view"""

    def setup_method(self):
        self.payment = Payment.pending("sale-1", Money(Decimal('100')), date(2024, 3, 1))

    @pytest.mark.parametrize("today,standing", [
        (date(2024, 2, 28), PaymentStanding.UPCOMING),
        (date(2024, 3, 1), PaymentStanding.DUE_TODAY),
        (date(2024, 3, 2), PaymentStanding.IN_GRACE),
        (date(2024, 3, 4), PaymentStanding.IN_GRACE),
        (date(2024, 3, 5), PaymentStanding.OVERDUE),
    ])
    def test_pending_standing(self, today, standing):
        assert derive_standing(self.payment, today) == standing

    def test_paid_is_always_paid(self):
        data = self.payment.to_dict()
        data.update(status="paid", paid_date="2024-03-20")
        paid = Payment.from_dict(data)

        assert derive_standing(paid, date(2025, 1, 1)) == PaymentStanding.PAID
