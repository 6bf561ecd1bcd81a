"""
Payment Module

Records payments against entries, keeps entry balances in step through the
ledger reconciler, and serves payment proofs.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import List, Optional, Tuple
import logging

from .allocations import AllocationManager
from .attachments import AttachmentStore, ProofUpload, DEFAULT_CONTENT_TYPE
from .context import ActorContext
from .directory import Directory
from .errors import NotFoundError, ValidationError
from .installments import InstallmentManager
from .logging_config import log_action
from .models import LedgerEntry, Payment, PaymentEntryLink, AllocationPaymentLink, new_id
from .money import to_amount, ZERO
from .reconciliation import LedgerReconciler, change_amount
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


@dataclass
class NewPayment:
    """Input for recording a payment"""
    entry_id: str
    payee_person_id: str
    payment_amount: Decimal
    payment_date: Optional[date] = None
    notes: Optional[str] = None
    allocation_id: Optional[str] = None


@dataclass
class PaymentView:
    """Payment with payee name, proof flag and the entry it was made against"""
    payment: Payment
    payee_name: Optional[str]
    has_proof: bool
    entry_id: Optional[str] = None
    entry_name: Optional[str] = None
    entry_reference_id: Optional[str] = None


class PaymentManager:
    """
    Manages payments

    Recording a payment is allowed against any entry by id. Reading,
    editing and deleting a payment require the actor to be a party to one
    of the entries it is linked to.
    """

    def __init__(
        self,
        storage: StorageInterface,
        directory: Directory,
        reconciler: LedgerReconciler,
        installments: InstallmentManager,
        allocations: AllocationManager,
        attachments: AttachmentStore
    ):
        self.storage = storage
        self.directory = directory
        self.reconciler = reconciler
        self.installments = installments
        self.allocations = allocations
        self.attachments = attachments

    def _load_entry(self, entry_id: str) -> LedgerEntry:
        data = self.storage.load(Tables.ENTRIES, entry_id)
        if not data:
            raise NotFoundError.for_id("Entry", entry_id)
        return LedgerEntry.from_dict(data)

    def _linked_entries(self, payment_id: str) -> List[LedgerEntry]:
        entries = []
        for data in self.storage.find(Tables.PAYMENT_ENTRIES, {"payment_id": payment_id}):
            entry_data = self.storage.load(Tables.ENTRIES, data["entry_id"])
            if entry_data:
                entries.append(LedgerEntry.from_dict(entry_data))
        return entries

    def _accessible_payment(self, payment_id: str, actor: ActorContext) -> Payment:
        data = self.storage.load(Tables.PAYMENTS, payment_id)
        if not data:
            raise NotFoundError.for_id("Payment", payment_id)
        if not any(self.directory.is_related(entry, actor) for entry in self._linked_entries(payment_id)):
            raise NotFoundError.for_id("Payment", payment_id)
        return Payment.from_dict(data)

    def record_payment(self, request: NewPayment, actor: Optional[ActorContext] = None,
                       proof: Optional[ProofUpload] = None, today: Optional[date] = None) -> Payment:
        """
        Record a payment against an entry

        The excess over the entry's remaining balance is kept on the payment
        as its change amount; the balance itself stops at zero. After a
        payment on an installment entry its lapsed terms are marked
        delinquent.

        Raises:
            ValidationError: If the amount is not positive, the allocation
                does not match the entry or payee, or the proof cannot be stored
            NotFoundError: If the entry, payee or allocation does not exist
        """
        today = today or date.today()
        amount = to_amount(request.payment_amount)
        if amount <= ZERO:
            raise ValidationError("Payment amount must be positive")

        with self.storage.atomic():
            entry = self._load_entry(request.entry_id)
            payee = self.directory.require_person(request.payee_person_id)
            allocation = None
            if request.allocation_id:
                allocation = self.allocations.validate_payment_target(
                    request.allocation_id, entry.id, payee.id
                )

            now = datetime.now(timezone.utc)
            payment = Payment(
                id=new_id(),
                created_at=now,
                updated_at=now,
                payment_date=request.payment_date or today,
                payment_amount=amount,
                payee_person_id=payee.id,
                change_amount=change_amount(amount, entry.amount_remaining),
                notes=request.notes
            )
            self.storage.save(Tables.PAYMENTS, payment.id, payment.to_dict())

            if proof is not None and proof.data:
                self.attachments.attach_to_payment(payment.id, proof)

            link = PaymentEntryLink(id=new_id(), created_at=now, updated_at=now,
                                    payment_id=payment.id, entry_id=entry.id)
            self.storage.save(Tables.PAYMENT_ENTRIES, link.id, link.to_dict())

            if allocation is not None:
                self.allocations.link_payment(payment, allocation)

            entry = self.reconciler.apply_payment(entry.id, amount, today)
            if entry.is_installment:
                self.installments.sweep_entry(entry.id, today)

        log_action(logger, "info", f"Recorded payment of {amount} on entry {entry.reference_id}",
                   actor=actor.name if actor else None, action="record_payment",
                   resource=f"payment:{payment.id}",
                   extra={"entry_id": entry.id, "change_amount": str(payment.change_amount)})
        return payment

    def update_payment(
        self,
        payment_id: str,
        actor: ActorContext,
        payment_amount: Optional[Decimal] = None,
        payment_date: Optional[date] = None,
        payee_person_id: Optional[str] = None,
        notes: Optional[str] = None,
        proof: Optional[ProofUpload] = None,
        today: Optional[date] = None
    ) -> Payment:
        """
        Edit a payment

        A changed amount moves the linked entries by the difference in the
        part of the payment not returned as change, and the change amount
        is recomputed. A replaced proof is stored in the same unit of
        work, so a storage failure undoes the whole edit.
        """
        today = today or date.today()
        with self.storage.atomic():
            payment = self._accessible_payment(payment_id, actor)
            old_amount = payment.payment_amount
            old_applied = payment.payment_amount - payment.change_amount

            if payee_person_id is not None and payee_person_id != payment.payee_person_id:
                self.directory.require_person(payee_person_id)
                # An allocation-linked payment must stay with the allocation's person
                for data in self.storage.find(Tables.ALLOCATION_PAYMENTS, {"payment_id": payment.id}):
                    link = AllocationPaymentLink.from_dict(data)
                    self.allocations.validate_payment_target(
                        link.allocation_id, self._allocation_entry_id(link.allocation_id), payee_person_id
                    )
                payment.payee_person_id = payee_person_id
            if payment_amount is not None:
                amount = to_amount(payment_amount)
                if amount <= ZERO:
                    raise ValidationError("Payment amount must be positive")
                payment.payment_amount = amount
            if payment_date is not None:
                payment.payment_date = payment_date
            payment.notes = notes
            payment.touch()
            self.storage.save(Tables.PAYMENTS, payment.id, payment.to_dict())

            if proof is not None and proof.data:
                self.attachments.attach_to_payment(payment.id, proof)

            if payment.payment_amount != old_amount:
                self.allocations.sync_payment_amount(payment)
                # Only the part of the payment not returned as change moves the balance
                for entry in self._linked_entries(payment.id):
                    outstanding = to_amount(entry.amount_remaining + old_applied)
                    payment.change_amount = change_amount(payment.payment_amount, outstanding)
                    applied = payment.payment_amount - payment.change_amount
                    self.reconciler.apply_payment(entry.id, applied - old_applied, today)
                self.storage.save(Tables.PAYMENTS, payment.id, payment.to_dict())

        log_action(logger, "info", f"Updated payment {payment.id}",
                   actor=actor.name, action="update_payment", resource=f"payment:{payment.id}",
                   extra={"old_amount": str(old_amount), "new_amount": str(payment.payment_amount)})
        return payment

    def _allocation_entry_id(self, allocation_id: str) -> Optional[str]:
        data = self.storage.load(Tables.ALLOCATIONS, allocation_id)
        return data["entry_id"] if data else None

    def delete_payment(self, payment_id: str, actor: ActorContext, today: Optional[date] = None) -> None:
        """Delete a payment and its links, then recompute the entries it was paid against"""
        today = today or date.today()
        with self.storage.atomic():
            payment = self._accessible_payment(payment_id, actor)
            entries = self._linked_entries(payment.id)
            self.allocations.unlink_payment(payment.id)
            self.storage.delete_where(Tables.PAYMENT_ENTRIES, {"payment_id": payment.id})
            self.attachments.delete_for_payment(payment.id)
            self.storage.delete(Tables.PAYMENTS, payment.id)
            for entry in entries:
                self.reconciler.reconcile_entry(entry.id, today)

        log_action(logger, "info", f"Deleted payment {payment.id} of {payment.payment_amount}",
                   actor=actor.name, action="delete_payment", resource=f"payment:{payment.id}")

    def get_payment(self, payment_id: str, actor: ActorContext) -> Payment:
        return self._accessible_payment(payment_id, actor)

    def list_for_actor(self, actor: ActorContext) -> List[Payment]:
        payments = []
        for data in self.storage.load_all(Tables.PAYMENTS):
            entries = self._linked_entries(data["id"])
            if any(self.directory.is_related(entry, actor) for entry in entries):
                payments.append(Payment.from_dict(data))
        return payments

    def list_for_entry(self, entry_id: str) -> List[Payment]:
        """Payments of an entry, oldest first; not scoped to the actor"""
        self._load_entry(entry_id)
        payments = self.reconciler.linked_payments(entry_id)
        payments.sort(key=lambda payment: (payment.payment_date, payment.created_at))
        return payments

    def has_proof(self, payment_id: str) -> bool:
        return self.attachments.has_proof(payment_id)

    def describe(self, payment: Payment) -> PaymentView:
        payee = self.directory.get_person(payment.payee_person_id)
        view = PaymentView(
            payment=payment,
            payee_name=payee.full_name if payee else None,
            has_proof=self.has_proof(payment.id)
        )
        entries = self._linked_entries(payment.id)
        if entries:
            view.entry_id = entries[0].id
            view.entry_name = entries[0].entry_name
            view.entry_reference_id = entries[0].reference_id
        return view

    def get_proof_with_info(self, payment_id: str, actor: ActorContext) -> Tuple[bytes, str]:
        """
        Proof bytes and content type of a payment

        Raises:
            NotFoundError: If the payment is not visible or has no proof
        """
        payment = self._accessible_payment(payment_id, actor)
        attachment = self.attachments.for_payment(payment.id)
        if attachment is None or not attachment.file_data:
            raise NotFoundError("Payment proof not found")
        content_type = attachment.content_type
        if not content_type or not content_type.strip():
            content_type = DEFAULT_CONTENT_TYPE
        return attachment.file_data, content_type
