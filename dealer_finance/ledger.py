"""
Payment Ledger Module

Owns the lifecycle of a financed sale's installments: atomic origination,
recording payments, deleting paid payments with reinstatement and due-date
re-sequencing, early payoff and overdue classification.

Every mutation of one sale's payments runs as a single storage transaction
and bumps the sale's ledger_version, so readers see either the ledger before
an operation or after it, never in between.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import threading

from .amortization import LoanRequest
from .balance import BalanceSnapshot, reconstruct_balance
from .cadence import DEFAULT_GRACE_PERIOD_DAYS, advance, as_date
from .config import get_config
from .currency import Money
from .events import (
    DomainEvent, EventDispatcher, EventPayload,
    create_payment_event, create_sale_event, create_vehicle_event
)
from .exceptions import ConcurrencyConflictError, InconsistentLedgerError, InvalidInputError
from .logging_config import get_logger, log_action
from .models import (
    Payment, PaymentClassification, PaymentStanding, PaymentStatus, Sale, SaleStatus,
    derive_standing, sort_by_due_date
)
from .payoff import PayoffQuote, calculate_early_payoff
from .schedule import PaymentSchedule
from .storage import StorageInterface


VEHICLE_SOLD = "sold"
VEHICLE_AVAILABLE = "available"

# Sales that may still take installments
PAYABLE_STATES = (SaleStatus.ACTIVE, SaleStatus.DEFAULTED)


@dataclass
class PaymentRecordResult:
    """Outcome of recording a payment"""
    updated_payment: Payment
    next_pending_payment: Optional[Payment]
    sale_completed: bool
    sale: Sale


@dataclass
class PaymentDeletionResult:
    """Outcome of deleting a paid payment"""
    deleted_payment: Payment
    reinstated_payment: Payment
    resequenced_pending_payments: List[Payment]
    sale_status_reverted: bool
    sale: Sale


@dataclass
class SaleBalance:
    """Where a sale stands, derived from its paid installments"""
    sale_id: str
    total_paid: Money                   # Down payment plus paid installments
    installments_paid: Money
    remaining_principal: Money
    remaining_payments: int
    remaining_scheduled_amount: Money   # remaining_payments x payment amount
    payments_made: int
    next_due_date: Optional[date]
    progress_percent: Decimal


def classify(
    payments: List[Payment],
    now,
    grace_period_days: int = DEFAULT_GRACE_PERIOD_DAYS
) -> PaymentClassification:
    """
    Group pending payments by standing as of now

    Pure and read-only; paid payments are ignored. Each group is sorted by
    due date.
    """
    result = PaymentClassification()
    buckets = {
        PaymentStanding.OVERDUE: result.overdue,
        PaymentStanding.IN_GRACE: result.in_grace,
        PaymentStanding.DUE_TODAY: result.due_today,
        PaymentStanding.UPCOMING: result.upcoming,
    }
    for payment in sort_by_due_date([p for p in payments if p.is_pending]):
        buckets[derive_standing(payment, now, grace_period_days)].append(payment)
    return result


def total_paid_installments(sale: Sale, payments: List[Payment]) -> Money:
    """Sum of paid installment amounts, excluding the down payment"""
    return Money.total((p.amount for p in payments if p.is_paid), sale.currency)


class PaymentLedger:
    """
    Manages a financed sale's payments from origination through payoff
    """

    def __init__(
        self,
        storage: StorageInterface,
        event_dispatcher: Optional[EventDispatcher] = None,
        grace_period_days: Optional[int] = None,
        enable_events: Optional[bool] = None
    ):
        settings = get_config()
        self.storage = storage
        self._event_dispatcher = event_dispatcher
        self.grace_period_days = (
            settings.grace_period_days if grace_period_days is None else grace_period_days
        )
        self.enable_events = settings.enable_events if enable_events is None else enable_events
        self.logger = get_logger("dealer_finance.ledger")

        self.sales_table = "sales"
        self.payments_table = "payments"
        self.vehicles_table = "vehicles"

        self._sale_locks: Dict[str, threading.RLock] = {}
        self._sale_locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Origination
    # ------------------------------------------------------------------

    def create_schedule_for_sale(self, sale: Sale) -> List[Payment]:
        """
        Materialize the pending installments of a sale

        Nothing is persisted; originate_sale() writes the result together
        with the sale and the vehicle status. A sale whose down payment covers
        the whole price has no installments.
        """
        if not sale.financed_amount.is_positive():
            return []

        now = datetime.now(timezone.utc)
        schedule = PaymentSchedule(
            sale.start_date, sale.payment_frequency, sale.total_payments, sale.payment_amount
        )
        return [
            Payment.pending(
                sale_id=sale.id,
                amount=installment.amount,
                due_date=installment.due_date,
                payment_id=f"payment-{sale.id}-{installment.sequence}",
                now=now
            )
            for installment in schedule
        ]

    def create_sale(
        self,
        request: LoanRequest,
        vehicle_id: str,
        client_id: str,
        start_date: date,
        sale_id: Optional[str] = None
    ) -> Tuple[Sale, List[Payment]]:
        """Finance a vehicle: build the sale from loan terms and originate it"""
        sale = Sale.from_request(request, vehicle_id, client_id, start_date, sale_id=sale_id)
        return self.originate_sale(sale)

    def originate_sale(self, sale: Sale) -> Tuple[Sale, List[Payment]]:
        """
        Persist a new sale, its schedule and the vehicle's sold status

        All three writes are one unit of work: either every record is stored
        or none is.

        Raises:
            InvalidInputError: If the sale's loan terms are invalid
            InconsistentLedgerError: If the sale exists or the vehicle is sold
        """
        sale.to_loan_request()
        if sale.status != SaleStatus.ACTIVE:
            raise InvalidInputError(f"New sales must be active, got {sale.status.value}")

        payments = self.create_schedule_for_sale(sale)
        if not payments:
            sale.status = SaleStatus.COMPLETED

        with self._sale_lock(sale.id):
            with self.storage.atomic():
                if self.storage.exists(self.sales_table, sale.id):
                    raise InconsistentLedgerError(f"Sale {sale.id} already exists")

                vehicle = self.storage.load(self.vehicles_table, sale.vehicle_id)
                if vehicle and vehicle.get('status') == VEHICLE_SOLD:
                    raise InconsistentLedgerError(
                        f"Vehicle {sale.vehicle_id} is already sold (sale {vehicle.get('sale_id')})"
                    )

                self._save_sale(sale)
                for payment in payments:
                    self._save_payment(payment)
                self._set_vehicle_status(sale.vehicle_id, VEHICLE_SOLD, sale.id)

        log_action(
            self.logger, "info", f"Sale originated with {len(payments)} installments",
            action="originate_sale", resource=f"sale:{sale.id}",
            extra={
                "vehicle_id": sale.vehicle_id,
                "financed_amount": sale.financed_amount.to_string(),
                "payment_amount": sale.payment_amount.to_string(),
                "payment_frequency": sale.payment_frequency.value,
                "first_payment_date": sale.first_payment_date.isoformat()
            }
        )
        self._publish([
            create_sale_event(DomainEvent.SALE_ORIGINATED, sale),
            create_vehicle_event(DomainEvent.VEHICLE_SOLD, sale.vehicle_id, sale.id),
        ])
        return sale, payments

    # ------------------------------------------------------------------
    # Recording payments
    # ------------------------------------------------------------------

    def record_payment(
        self,
        sale_id: str,
        payment_id: str,
        amount: Optional[Money] = None,
        paid_date: Optional[date] = None,
        due_date: Optional[date] = None,
        expected_version: Optional[int] = None
    ) -> PaymentRecordResult:
        """
        Mark a pending payment as paid

        Args:
            sale_id: Owning sale
            payment_id: Pending payment to mark paid
            amount: Amount received; defaults to the scheduled amount and may
                differ from it (partial payment, early payoff)
            paid_date: Date received (required)
            due_date: Edited due date, applied before the payment is marked paid
            expected_version: Ledger version the caller read, if any

        Returns:
            PaymentRecordResult with the next pending slot when one was created

        Raises:
            InvalidInputError: Missing paid date or non-positive amount
            InconsistentLedgerError: Unknown sale/payment, payment already paid,
                or an edited due date that collides with another payment
            ConcurrencyConflictError: The ledger changed since expected_version
        """
        return self._record(sale_id, payment_id, amount, paid_date, due_date, expected_version)

    def _record(
        self,
        sale_id: str,
        payment_id: str,
        amount: Optional[Money],
        paid_date: Optional[date],
        due_date: Optional[date],
        expected_version: Optional[int],
        settles_loan: bool = False
    ) -> PaymentRecordResult:
        if paid_date is None:
            raise InvalidInputError("paid_date is required")
        paid_date = as_date(paid_date)
        if amount is not None and not amount.is_positive():
            raise InvalidInputError(f"Payment amount must be positive, got {amount.to_string()}")

        events: List[EventPayload] = []

        with self._sale_lock(sale_id):
            with self.storage.atomic():
                sale = self._load_sale_for_update(sale_id, expected_version)
                read_version = sale.ledger_version
                if sale.status not in PAYABLE_STATES:
                    raise InconsistentLedgerError(
                        f"Sale {sale_id} is {sale.status.value} and cannot take payments"
                    )

                payments = self.get_sale_payments(sale_id)
                payment = self._find_payment(payments, payment_id, sale_id)
                if not payment.is_pending:
                    raise InconsistentLedgerError(f"Payment {payment_id} is already paid")
                if amount is not None and amount.currency != sale.currency:
                    raise InvalidInputError(
                        f"Payment currency {amount.currency.code} does not match sale currency {sale.currency.code}"
                    )

                others = [p for p in payments if p.id != payment.id]
                if due_date is not None and due_date != payment.due_date:
                    if any(p.due_date == due_date for p in others):
                        raise InconsistentLedgerError(
                            f"Sale {sale_id} already has a payment due {due_date.isoformat()}"
                        )
                    payment.due_date = due_date

                now = datetime.now(timezone.utc)
                payment.status = PaymentStatus.PAID
                payment.paid_date = paid_date
                payment.amount = amount if amount is not None else payment.amount
                payment.updated_at = now
                self._save_payment(payment)

                completed = settles_loan or self._is_paid_in_full(sale, others + [payment])

                next_payment = None
                if not completed:
                    next_due = advance(payment.due_date, sale.payment_frequency)
                    if not any(p.due_date == next_due for p in others):
                        next_payment = Payment.pending(sale.id, sale.payment_amount, next_due, now=now)
                        self._save_payment(next_payment)

                if completed and sale.status != SaleStatus.COMPLETED:
                    sale.status = SaleStatus.COMPLETED
                    events.append(create_sale_event(DomainEvent.SALE_COMPLETED, sale))

                self._commit_sale(sale, read_version)

        events.insert(0, create_payment_event(DomainEvent.PAYMENT_RECORDED, payment))
        log_action(
            self.logger, "info", "Payment recorded",
            action="record_payment", resource=f"payment:{payment.id}",
            extra={
                "sale_id": sale_id,
                "amount": payment.amount.to_string(),
                "due_date": payment.due_date.isoformat(),
                "paid_date": paid_date.isoformat(),
                "next_due_date": next_payment.due_date.isoformat() if next_payment else None,
                "sale_completed": completed
            }
        )
        self._publish(events)
        return PaymentRecordResult(
            updated_payment=payment,
            next_pending_payment=next_payment,
            sale_completed=completed,
            sale=sale
        )

    # ------------------------------------------------------------------
    # Deleting paid payments
    # ------------------------------------------------------------------

    def delete_paid_payment(
        self,
        sale_id: str,
        payment_id: str,
        expected_version: Optional[int] = None
    ) -> PaymentDeletionResult:
        """
        Delete a paid payment and reinstate its slot

        The paid record is removed, a pending payment for the standard amount
        takes its due date, and every pending payment is re-dated in order by
        repeated advance() from that date so cadence spacing has no gaps or
        overlaps. A completed sale that is no longer paid in full goes back
        to active.

        Raises:
            InconsistentLedgerError: Unknown sale/payment, payment not paid, or
                the re-dated schedule would collide with a paid payment
            ConcurrencyConflictError: The ledger changed since expected_version
        """
        events: List[EventPayload] = []

        with self._sale_lock(sale_id):
            with self.storage.atomic():
                sale = self._load_sale_for_update(sale_id, expected_version)
                read_version = sale.ledger_version

                payments = self.get_sale_payments(sale_id)
                deleted = self._find_payment(payments, payment_id, sale_id)
                if not deleted.is_paid:
                    raise InconsistentLedgerError(f"Payment {payment_id} is not paid and cannot be deleted")

                reinstated_due = deleted.due_date
                remaining = [p for p in payments if p.id != deleted.id]
                paid_dates = {p.due_date for p in remaining if p.is_paid}
                if reinstated_due in paid_dates:
                    raise InconsistentLedgerError(
                        f"Sale {sale_id} has another paid payment due {reinstated_due.isoformat()}"
                    )

                # Plan the re-dated pending slots before writing anything
                pending = sort_by_due_date([p for p in remaining if p.is_pending])
                new_dates = []
                previous = reinstated_due
                for payment in pending:
                    next_due = advance(previous, sale.payment_frequency)
                    if next_due in paid_dates:
                        raise InconsistentLedgerError(
                            f"Re-sequencing sale {sale_id} would place a pending payment on "
                            f"{next_due.isoformat()}, which already has a paid payment"
                        )
                    new_dates.append(next_due)
                    previous = next_due

                now = datetime.now(timezone.utc)
                if not self.storage.delete(self.payments_table, deleted.id):
                    raise InconsistentLedgerError(f"Payment {payment_id} was removed concurrently")

                reverted = False
                if sale.status == SaleStatus.COMPLETED and not self._is_paid_in_full(sale, remaining):
                    sale.status = SaleStatus.ACTIVE
                    reverted = True
                    events.append(create_sale_event(DomainEvent.SALE_REACTIVATED, sale))

                reinstated = Payment.pending(sale.id, sale.payment_amount, reinstated_due, now=now)
                self._save_payment(reinstated)

                for payment, new_due in zip(pending, new_dates):
                    if payment.due_date != new_due:
                        payment.due_date = new_due
                        payment.updated_at = now
                        self._save_payment(payment)

                self._commit_sale(sale, read_version)

        events[:0] = [
            create_payment_event(DomainEvent.PAYMENT_DELETED, deleted),
            create_payment_event(DomainEvent.PAYMENT_REINSTATED, reinstated),
        ]
        events.append(EventPayload(
            event_type=DomainEvent.SCHEDULE_RESEQUENCED,
            entity_type="sale",
            entity_id=sale.id,
            data={
                "reinstated_due_date": reinstated_due.isoformat(),
                "pending_due_dates": [d.isoformat() for d in new_dates]
            }
        ))
        log_action(
            self.logger, "info", "Paid payment deleted and slot reinstated",
            action="delete_paid_payment", resource=f"payment:{deleted.id}",
            extra={
                "sale_id": sale_id,
                "amount": deleted.amount.to_string(),
                "reinstated_due_date": reinstated_due.isoformat(),
                "resequenced": len(pending),
                "sale_status_reverted": reverted
            }
        )
        self._publish(events)
        return PaymentDeletionResult(
            deleted_payment=deleted,
            reinstated_payment=reinstated,
            resequenced_pending_payments=pending,
            sale_status_reverted=reverted,
            sale=sale
        )

    # ------------------------------------------------------------------
    # Balances and early payoff
    # ------------------------------------------------------------------

    def reconstruct(self, sale: Sale, payments: List[Payment]) -> BalanceSnapshot:
        """Replay amortization over a sale's paid installments"""
        return reconstruct_balance(
            financed_amount=sale.financed_amount,
            interest_rate=sale.interest_rate,
            payment_amount=sale.payment_amount,
            payment_frequency=sale.payment_frequency,
            total_paid=total_paid_installments(sale, payments),
            total_payments=sale.total_payments,
            currency=sale.currency
        )

    def quote_early_payoff(self, sale: Sale, payments: List[Payment]) -> PayoffQuote:
        """
        Quote the amount that settles the sale today

        Remaining principal and remaining payment count come from replaying
        the paid installments; interest is allocated proportionally (see
        dealer_finance.payoff).
        """
        snapshot = self.reconstruct(sale, payments)
        if sale.total_payments <= 0:
            raise InvalidInputError(f"Sale {sale.id} has no scheduled payments")
        remaining_payments = min(snapshot.remaining_payments, sale.total_payments)
        return calculate_early_payoff(
            remaining_principal=snapshot.remaining_principal,
            original_loan_amount=sale.financed_amount,
            total_interest=sale.scheduled_interest,
            remaining_payments=remaining_payments,
            total_payments=sale.total_payments,
            currency=sale.currency
        )

    def settle_early_payoff(
        self,
        sale_id: str,
        paid_date: date,
        expected_version: Optional[int] = None
    ) -> Tuple[PayoffQuote, PaymentRecordResult]:
        """
        Quote and record an early payoff against the next pending installment

        The sale is completed by the payoff.
        """
        with self._sale_lock(sale_id):
            sale = self._require_sale(sale_id)
            payments = self.get_sale_payments(sale_id)
            quote = self.quote_early_payoff(sale, payments)
            pending = sort_by_due_date([p for p in payments if p.is_pending])
            if not pending:
                raise InconsistentLedgerError(f"Sale {sale_id} has no pending installment to settle")
            if not quote.payoff_amount.is_positive():
                raise InconsistentLedgerError(f"Sale {sale_id} has nothing left to pay off")

            result = self._record(
                sale_id, pending[0].id, quote.payoff_amount, paid_date,
                due_date=None, expected_version=expected_version, settles_loan=True
            )
        return quote, result

    def get_balance(self, sale_id: str) -> SaleBalance:
        """Summarize what has been paid and what is left on a sale"""
        sale = self._require_sale(sale_id)
        payments = self.get_sale_payments(sale_id)
        snapshot = self.reconstruct(sale, payments)
        installments = total_paid_installments(sale, payments)
        total_paid = sale.down_payment + installments

        contract_total = sale.sale_price + sale.scheduled_interest
        if contract_total.is_positive():
            progress = (total_paid.amount / contract_total.amount * Decimal('100')).quantize(Decimal('0.01'))
        else:
            progress = Decimal('100.00')

        pending = sort_by_due_date([p for p in payments if p.is_pending])
        return SaleBalance(
            sale_id=sale.id,
            total_paid=total_paid,
            installments_paid=installments,
            remaining_principal=snapshot.remaining_principal,
            remaining_payments=snapshot.remaining_payments,
            remaining_scheduled_amount=sale.payment_amount * Decimal(snapshot.remaining_payments),
            payments_made=sum(1 for p in payments if p.is_paid),
            next_due_date=pending[0].due_date if pending else None,
            progress_percent=progress
        )

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def classify(self, payments: List[Payment], now) -> PaymentClassification:
        """Classify payments using the ledger's grace period"""
        return classify(payments, now, self.grace_period_days)

    def classify_open_payments(self, now) -> PaymentClassification:
        """Classify the pending payments of every active sale"""
        active_ids = {
            data['id'] for data in self.storage.find(self.sales_table, {"status": SaleStatus.ACTIVE.value})
        }
        payments = [
            Payment.from_dict(data)
            for data in self.storage.find(self.payments_table, {"status": PaymentStatus.PENDING.value})
            if data['sale_id'] in active_ids
        ]
        return self.classify(payments, now)

    # ------------------------------------------------------------------
    # Sale lifecycle
    # ------------------------------------------------------------------

    def cancel_sale(self, sale_id: str, expected_version: Optional[int] = None) -> Sale:
        """Mark a sale cancelled; its payments are kept for the record"""
        with self._sale_lock(sale_id):
            with self.storage.atomic():
                sale = self._load_sale_for_update(sale_id, expected_version)
                read_version = sale.ledger_version
                if sale.status == SaleStatus.CANCELLED:
                    raise InconsistentLedgerError(f"Sale {sale_id} is already cancelled")
                sale.status = SaleStatus.CANCELLED
                self._commit_sale(sale, read_version)

        log_action(self.logger, "info", "Sale cancelled", action="cancel_sale", resource=f"sale:{sale_id}")
        self._publish([create_sale_event(DomainEvent.SALE_CANCELLED, sale)])
        return sale

    def delete_sale(self, sale_id: str) -> int:
        """
        Delete a sale, cascading to its payments and releasing the vehicle

        Returns:
            Number of payments deleted
        """
        with self._sale_lock(sale_id):
            with self.storage.atomic():
                sale = self._require_sale(sale_id)
                payments = self.get_sale_payments(sale_id)
                for payment in payments:
                    self.storage.delete(self.payments_table, payment.id)
                self.storage.delete(self.sales_table, sale.id)
                self._set_vehicle_status(sale.vehicle_id, VEHICLE_AVAILABLE, None)

        log_action(
            self.logger, "info", f"Sale deleted with {len(payments)} payments",
            action="delete_sale", resource=f"sale:{sale_id}",
            extra={"vehicle_id": sale.vehicle_id}
        )
        self._publish([
            create_sale_event(DomainEvent.SALE_DELETED, sale),
            create_vehicle_event(DomainEvent.VEHICLE_RELEASED, sale.vehicle_id, sale.id),
        ])
        with self._sale_locks_guard:
            self._sale_locks.pop(sale_id, None)
        return len(payments)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_sale(self, sale_id: str) -> Optional[Sale]:
        """Get sale by ID"""
        data = self.storage.load(self.sales_table, sale_id)
        if data:
            return Sale.from_dict(data)
        return None

    def get_sale_payments(self, sale_id: str) -> List[Payment]:
        """Get every payment of a sale ordered by due date"""
        data = self.storage.find(self.payments_table, {"sale_id": sale_id})
        return sort_by_due_date([Payment.from_dict(item) for item in data])

    def payment_history(self, sale_id: str) -> List[Payment]:
        """Paid payments of a sale, most recently paid first"""
        paid = [p for p in self.get_sale_payments(sale_id) if p.is_paid]
        return sorted(paid, key=lambda p: (p.paid_date, p.due_date), reverse=True)

    def get_vehicle_status(self, vehicle_id: str) -> Optional[str]:
        data = self.storage.load(self.vehicles_table, vehicle_id)
        return data.get('status') if data else None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _sale_lock(self, sale_id: str) -> threading.RLock:
        with self._sale_locks_guard:
            lock = self._sale_locks.get(sale_id)
            if lock is None:
                lock = threading.RLock()
                self._sale_locks[sale_id] = lock
            return lock

    def _require_sale(self, sale_id: str) -> Sale:
        sale = self.get_sale(sale_id)
        if not sale:
            raise InconsistentLedgerError(f"Sale {sale_id} not found")
        return sale

    def _load_sale_for_update(self, sale_id: str, expected_version: Optional[int]) -> Sale:
        sale = self._require_sale(sale_id)
        if expected_version is not None and expected_version != sale.ledger_version:
            self._log_conflict(sale_id, expected_version, sale.ledger_version)
            raise ConcurrencyConflictError(sale_id, expected_version, sale.ledger_version)
        return sale

    def _commit_sale(self, sale: Sale, read_version: int) -> None:
        """Bump the ledger version, failing if another writer got there first"""
        stored = self.storage.load(self.sales_table, sale.id)
        stored_version = stored.get('ledger_version', 0) if stored else None
        if stored_version != read_version:
            self._log_conflict(sale.id, read_version, stored_version)
            raise ConcurrencyConflictError(sale.id, read_version, stored_version)

        sale.ledger_version = read_version + 1
        sale.updated_at = datetime.now(timezone.utc)
        self._save_sale(sale)

    def _log_conflict(self, sale_id: str, expected: int, actual: Optional[int]) -> None:
        log_action(
            self.logger, "warning", "Ledger version conflict",
            action="version_check", resource=f"sale:{sale_id}",
            extra={"expected_version": expected, "actual_version": actual}
        )

    @staticmethod
    def _find_payment(payments: List[Payment], payment_id: str, sale_id: str) -> Payment:
        for payment in payments:
            if payment.id == payment_id:
                return payment
        raise InconsistentLedgerError(f"Payment {payment_id} not found for sale {sale_id}")

    def _is_paid_in_full(self, sale: Sale, payments: List[Payment]) -> bool:
        """Completion: replaying the paid installments retires the principal"""
        return self.reconstruct(sale, payments).is_paid_off

    def _set_vehicle_status(self, vehicle_id: str, status: str, sale_id: Optional[str]) -> None:
        """Write the vehicle status, keeping any other fields of its record"""
        record = self.storage.load(self.vehicles_table, vehicle_id) or {"id": vehicle_id}
        record['status'] = status
        record['sale_id'] = sale_id
        record['updated_at'] = datetime.now(timezone.utc).isoformat()
        self.storage.save(self.vehicles_table, vehicle_id, record)

    def _save_sale(self, sale: Sale) -> None:
        self.storage.save(self.sales_table, sale.id, sale.to_dict())

    def _save_payment(self, payment: Payment) -> None:
        self.storage.save(self.payments_table, payment.id, payment.to_dict())

    def _publish(self, events: List[EventPayload]) -> None:
        """Publish events after the transaction has committed"""
        if not self._event_dispatcher or not self.enable_events:
            return
        for event in events:
            self._event_dispatcher.publish(event)
