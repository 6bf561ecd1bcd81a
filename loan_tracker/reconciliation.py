"""
Ledger Reconciliation Module

Derives an entry's remaining balance and status from the payments linked to
it. Every change to the (amount_remaining, status) pair goes through
LedgerReconciler, which reloads the entry inside an atomic block before
writing, so a penalty and a payment never overwrite each other with stale
totals.

Penalties assessed on installment terms are part of what the borrower owes:
a full recompute uses amount_borrowed plus assessed penalties, which keeps
the sweep from discarding fees added by the term lifecycle.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Iterable, List, Optional
import logging

from .errors import NotFoundError
from .models import (
    LedgerEntry, EntryStatus, Payment, InstallmentPlan, InstallmentTerm, PaymentEntryLink
)
from .money import to_amount, sum_amounts, ZERO
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Balance:
    """Result of a reconciliation"""
    amount_remaining: Decimal
    status: EntryStatus
    date_fully_paid: Optional[date]


def derive_status(amount_remaining: Decimal, amount_paid: Decimal) -> EntryStatus:
    if amount_remaining <= ZERO:
        return EntryStatus.PAID
    if amount_paid > ZERO:
        return EntryStatus.PARTIALLY_PAID
    return EntryStatus.UNPAID


def _settled_on(remaining: Decimal, previous: Optional[date], today: date) -> Optional[date]:
    # Set once when the balance first reaches zero, never overwritten
    if previous is not None:
        return previous
    return today if remaining <= ZERO else None


def reconcile(
    amount_borrowed: Decimal,
    payment_amounts: Iterable[Decimal],
    today: date,
    penalties: Decimal = ZERO,
    date_fully_paid: Optional[date] = None
) -> Balance:
    """
    Full recompute of an entry's balance from scratch

    Args:
        amount_borrowed: Principal of the entry
        payment_amounts: Amounts of every payment linked to the entry
        today: Date recorded when the balance first reaches zero
        penalties: Total penalties assessed on the entry's terms
        date_fully_paid: Previously recorded settlement date, kept if set

    Returns:
        Balance with remaining = max(borrowed + penalties - paid, 0)
    """
    total_paid = sum_amounts(payment_amounts)
    remaining = max(to_amount(amount_borrowed + penalties - total_paid), ZERO)
    return Balance(
        amount_remaining=remaining,
        status=derive_status(remaining, total_paid),
        date_fully_paid=_settled_on(remaining, date_fully_paid, today)
    )


def apply_payment_delta(
    amount_remaining: Decimal,
    amount_paid: Decimal,
    delta: Decimal,
    today: date,
    date_fully_paid: Optional[date] = None
) -> Balance:
    """
    Incremental update for a payment that was added or changed by delta

    A positive delta lowers the balance, a negative one (a payment edited
    downwards) raises it. The balance floors at zero. amount_paid is the
    total of the payments linked to the entry after the change.
    """
    remaining = max(to_amount(amount_remaining - delta), ZERO)
    return Balance(
        amount_remaining=remaining,
        status=derive_status(remaining, amount_paid),
        date_fully_paid=_settled_on(remaining, date_fully_paid, today)
    )


def change_amount(payment_amount: Decimal, amount_remaining: Decimal) -> Decimal:
    """Excess of a payment over the balance it is applied to"""
    return max(to_amount(payment_amount - amount_remaining), ZERO)


class LedgerReconciler:
    """
    Owns every write to an entry's remaining balance and status
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    def _load_entry(self, entry_id: str) -> LedgerEntry:
        data = self.storage.load(Tables.ENTRIES, entry_id)
        if not data:
            raise NotFoundError.for_id("Entry", entry_id)
        return LedgerEntry.from_dict(data)

    def _store(self, entry: LedgerEntry, balance: Balance) -> LedgerEntry:
        entry.amount_remaining = balance.amount_remaining
        entry.status = balance.status
        entry.date_fully_paid = balance.date_fully_paid
        entry.touch()
        self.storage.save(Tables.ENTRIES, entry.id, entry.to_dict())
        return entry

    def linked_payments(self, entry_id: str) -> List[Payment]:
        payments = []
        for link in self.storage.find(Tables.PAYMENT_ENTRIES, {"entry_id": entry_id}):
            data = self.storage.load(Tables.PAYMENTS, PaymentEntryLink.from_dict(link).payment_id)
            if data:
                payments.append(Payment.from_dict(data))
        return payments

    def assessed_penalties(self, entry_id: str) -> Decimal:
        plan_data = self.storage.find_one(Tables.INSTALLMENT_PLANS, {"entry_id": entry_id})
        if not plan_data:
            return ZERO
        plan = InstallmentPlan.from_dict(plan_data)
        terms = [
            InstallmentTerm.from_dict(data)
            for data in self.storage.find(Tables.INSTALLMENT_TERMS, {"plan_id": plan.id})
        ]
        return sum_amounts(term.penalty_applied for term in terms if term.has_penalty)

    def reconcile_entry(self, entry_id: str, today: date) -> LedgerEntry:
        """Recompute an entry's balance from all of its payments"""
        with self.storage.atomic():
            entry = self._load_entry(entry_id)
            balance = reconcile(
                entry.amount_borrowed,
                [payment.payment_amount for payment in self.linked_payments(entry_id)],
                today,
                penalties=self.assessed_penalties(entry_id),
                date_fully_paid=entry.date_fully_paid
            )
            return self._store(entry, balance)

    def apply_payment(self, entry_id: str, delta: Decimal, today: date) -> LedgerEntry:
        """Apply a payment amount (or the change to one) without a full recompute"""
        with self.storage.atomic():
            entry = self._load_entry(entry_id)
            paid = sum_amounts(payment.payment_amount for payment in self.linked_payments(entry_id))
            balance = apply_payment_delta(
                entry.amount_remaining, paid, delta, today, entry.date_fully_paid
            )
            return self._store(entry, balance)

    def add_penalty(self, entry_id: str, penalty: Decimal) -> LedgerEntry:
        """
        Raise the balance by an assessed penalty

        A settled entry that receives a penalty is no longer settled; it
        becomes partially paid since payments covered the original amount.
        """
        with self.storage.atomic():
            entry = self._load_entry(entry_id)
            remaining = to_amount(entry.amount_remaining + penalty)
            status = entry.status
            if status == EntryStatus.PAID and remaining > ZERO:
                status = EntryStatus.PARTIALLY_PAID
            logger.info(f"Penalty {penalty} added to entry {entry.reference_id}, remaining {remaining}")
            return self._store(entry, Balance(remaining, status, entry.date_fully_paid))

    def settle(self, entry_id: str, today: date) -> LedgerEntry:
        """Mark an entry fully paid regardless of recorded payments"""
        with self.storage.atomic():
            entry = self._load_entry(entry_id)
            return self._store(entry, Balance(ZERO, EntryStatus.PAID, _settled_on(ZERO, entry.date_fully_paid, today)))
