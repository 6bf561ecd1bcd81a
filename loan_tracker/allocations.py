"""
Allocation Module

Group-split line items of an entry. Status and share of the total are
derived on every read from the entry and its payments, never stored.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import logging

from .context import ActorContext
from .directory import Directory
from .errors import NotFoundError, ValidationError
from .logging_config import log_action
from .models import (
    Allocation, AllocationPaymentLink, AllocationStatus, LedgerEntry, EntryStatus,
    Payment, PaymentEntryLink, new_id
)
from .money import to_amount, sum_amounts, percentage_of, ZERO
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


def status_for_amount_paid(amount_paid: Decimal, allocation_amount: Decimal) -> AllocationStatus:
    if amount_paid <= ZERO:
        return AllocationStatus.UNPAID
    if amount_paid >= allocation_amount:
        return AllocationStatus.PAID
    return AllocationStatus.PARTIALLY_PAID


def resolve_allocation_status(
    allocation: Allocation,
    entry: LedgerEntry,
    explicit_links: Sequence[AllocationPaymentLink],
    entry_payments: Sequence[Payment]
) -> AllocationStatus:
    """
    Derive an allocation's payment status

    A paid entry settles every allocation. Otherwise payments explicitly
    linked to the allocation are counted; allocations without any explicit
    link fall back to the entry's payments made by the allocation's person.

    Args:
        allocation: Allocation to resolve
        entry: Owning entry
        explicit_links: Payment links recorded against this allocation
        entry_payments: All payments linked to the entry
    """
    if entry.status == EntryStatus.PAID:
        return AllocationStatus.PAID

    if explicit_links:
        amount_paid = sum_amounts(link.amount for link in explicit_links)
    else:
        amount_paid = sum_amounts(
            payment.payment_amount for payment in entry_payments
            if payment.payee_person_id == allocation.person_id
        )
    return status_for_amount_paid(amount_paid, allocation.amount)


def percentage_of_total(allocation: Allocation, entry: LedgerEntry) -> Decimal:
    """Allocation amount as a percentage of the amount borrowed, 4 places"""
    return percentage_of(allocation.amount, entry.amount_borrowed, places=4)


@dataclass
class AllocationView:
    """Allocation with its derived fields"""
    allocation: Allocation
    person_name: Optional[str]
    status: AllocationStatus
    percentage_of_total: Decimal


@dataclass(frozen=True)
class AllocationItem:
    """One line of a bulk allocation request"""
    person_id: str
    amount: Decimal
    description: Optional[str] = None
    notes: Optional[str] = None


class AllocationManager:
    """
    Creates, edits and resolves allocations

    Reads and edits by entry or allocation id are not scoped to the actor,
    so allocations can be set up right after an entry is created by
    someone who is not a party to it. Listing across entries is scoped.
    """

    def __init__(self, storage: StorageInterface, directory: Directory):
        self.storage = storage
        self.directory = directory

    def _load_entry(self, entry_id: str) -> LedgerEntry:
        data = self.storage.load(Tables.ENTRIES, entry_id)
        if not data:
            raise NotFoundError.for_id("Entry", entry_id)
        return LedgerEntry.from_dict(data)

    def _load_allocation(self, allocation_id: str) -> Allocation:
        data = self.storage.load(Tables.ALLOCATIONS, allocation_id)
        if not data:
            raise NotFoundError.for_id("Payment allocation", allocation_id)
        return Allocation.from_dict(data)

    def _entry_payments(self, entry_id: str) -> List[Payment]:
        payments = []
        for link in self.storage.find(Tables.PAYMENT_ENTRIES, {"entry_id": entry_id}):
            data = self.storage.load(Tables.PAYMENTS, PaymentEntryLink.from_dict(link).payment_id)
            if data:
                payments.append(Payment.from_dict(data))
        return payments

    def _links(self, allocation_id: str) -> List[AllocationPaymentLink]:
        return [
            AllocationPaymentLink.from_dict(data)
            for data in self.storage.find(Tables.ALLOCATION_PAYMENTS, {"allocation_id": allocation_id})
        ]

    def _view(self, allocation: Allocation, entry: LedgerEntry,
              entry_payments: Optional[List[Payment]] = None) -> AllocationView:
        if entry_payments is None:
            entry_payments = self._entry_payments(entry.id)
        person = self.directory.get_person(allocation.person_id)
        return AllocationView(
            allocation=allocation,
            person_name=person.full_name if person else None,
            status=resolve_allocation_status(allocation, entry, self._links(allocation.id), entry_payments),
            percentage_of_total=percentage_of_total(allocation, entry)
        )

    def create_allocations(self, entry_id: str, items: Sequence[AllocationItem],
                           actor: Optional[ActorContext] = None) -> List[AllocationView]:
        """Create several allocations for one entry in a single unit of work"""
        entry = self._load_entry(entry_id)
        now = datetime.now(timezone.utc)
        created = []
        with self.storage.atomic():
            for item in items:
                self.directory.require_person(item.person_id)
                amount = to_amount(item.amount)
                if amount < ZERO:
                    raise ValidationError("Allocation amount cannot be negative")
                allocation = Allocation(
                    id=new_id(),
                    created_at=now,
                    updated_at=now,
                    entry_id=entry.id,
                    person_id=item.person_id,
                    amount=amount,
                    description=item.description,
                    notes=item.notes
                )
                self.storage.save(Tables.ALLOCATIONS, allocation.id, allocation.to_dict())
                created.append(allocation)

        log_action(logger, "info", f"Created {len(created)} allocations for entry {entry.reference_id}",
                   actor=actor.name if actor else None, action="create_allocations",
                   resource=f"entry:{entry.id}")
        payments = self._entry_payments(entry.id)
        return [self._view(allocation, entry, payments) for allocation in created]

    def update_allocation(self, allocation_id: str, person_id: Optional[str] = None,
                          description: Optional[str] = None, amount: Optional[Decimal] = None,
                          notes: Optional[str] = None) -> AllocationView:
        """Change the given fields; None leaves a field as it is"""
        allocation = self._load_allocation(allocation_id)
        if person_id is not None and person_id != allocation.person_id:
            self.directory.require_person(person_id)
            allocation.person_id = person_id
        if description is not None:
            allocation.description = description
        if amount is not None:
            amount = to_amount(amount)
            if amount < ZERO:
                raise ValidationError("Allocation amount cannot be negative")
            allocation.amount = amount
        if notes is not None:
            allocation.notes = notes
        allocation.touch()
        self.storage.save(Tables.ALLOCATIONS, allocation.id, allocation.to_dict())
        logger.info(f"Updated allocation {allocation.id}")
        return self._view(allocation, self._load_entry(allocation.entry_id))

    def delete_allocation(self, allocation_id: str) -> None:
        """Delete an allocation after removing its payment links"""
        if not self.storage.exists(Tables.ALLOCATIONS, allocation_id):
            raise NotFoundError.for_id("Payment allocation", allocation_id)
        with self.storage.atomic():
            self.storage.delete_where(Tables.ALLOCATION_PAYMENTS, {"allocation_id": allocation_id})
            self.storage.delete(Tables.ALLOCATIONS, allocation_id)
        logger.info(f"Deleted allocation {allocation_id}")

    def delete_for_entry(self, entry_id: str) -> int:
        """Remove every allocation of an entry, links first"""
        allocations = self.storage.find(Tables.ALLOCATIONS, {"entry_id": entry_id})
        for data in allocations:
            self.storage.delete_where(Tables.ALLOCATION_PAYMENTS, {"allocation_id": data["id"]})
        for data in allocations:
            self.storage.delete(Tables.ALLOCATIONS, data["id"])
        return len(allocations)

    def get_allocation(self, allocation_id: str, actor: ActorContext) -> AllocationView:
        allocation = self._load_allocation(allocation_id)
        entry = self._load_entry(allocation.entry_id)
        if not self.directory.is_related(entry, actor):
            raise NotFoundError.for_id("Payment allocation", allocation_id)
        return self._view(allocation, entry)

    def list_for_entry(self, entry_id: str) -> List[AllocationView]:
        entry = self._load_entry(entry_id)
        payments = self._entry_payments(entry.id)
        return [
            self._view(Allocation.from_dict(data), entry, payments)
            for data in self.storage.find(Tables.ALLOCATIONS, {"entry_id": entry_id})
        ]

    def list_for_actor(self, actor: ActorContext) -> List[AllocationView]:
        views = []
        entries: Dict[str, Optional[LedgerEntry]] = {}
        for data in self.storage.load_all(Tables.ALLOCATIONS):
            allocation = Allocation.from_dict(data)
            if allocation.entry_id not in entries:
                entry = self._load_entry(allocation.entry_id)
                entries[allocation.entry_id] = entry if self.directory.is_related(entry, actor) else None
            entry = entries[allocation.entry_id]
            if entry is not None:
                views.append(self._view(allocation, entry))
        return views

    def validate_payment_target(self, allocation_id: str, entry_id: str, payee_person_id: str) -> Allocation:
        """
        Allocation a new payment may be attributed to

        Raises:
            ValidationError: If the allocation belongs to another entry or
                to a different person than the payment's payee
        """
        allocation = self._load_allocation(allocation_id)
        if allocation.entry_id != entry_id:
            raise ValidationError("Payment allocation does not belong to this entry")
        if allocation.person_id != payee_person_id:
            raise ValidationError("Payment payee does not match the allocation's person")
        return allocation

    def link_payment(self, payment: Payment, allocation: Allocation) -> AllocationPaymentLink:
        """Attribute the full payment amount to an allocation"""
        now = datetime.now(timezone.utc)
        link = AllocationPaymentLink(
            id=new_id(),
            created_at=now,
            updated_at=now,
            payment_id=payment.id,
            allocation_id=allocation.id,
            amount=payment.payment_amount
        )
        self.storage.save(Tables.ALLOCATION_PAYMENTS, link.id, link.to_dict())
        return link

    def sync_payment_amount(self, payment: Payment) -> None:
        """Keep link amounts equal to an edited payment's amount"""
        for data in self.storage.find(Tables.ALLOCATION_PAYMENTS, {"payment_id": payment.id}):
            link = AllocationPaymentLink.from_dict(data)
            link.amount = payment.payment_amount
            link.touch()
            self.storage.save(Tables.ALLOCATION_PAYMENTS, link.id, link.to_dict())

    def unlink_payment(self, payment_id: str) -> int:
        return self.storage.delete_where(Tables.ALLOCATION_PAYMENTS, {"payment_id": payment_id})
