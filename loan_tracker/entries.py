"""
Entry Module

Creation, editing, completion and deletion of ledger entries, plus the
auto-complete sweep that recomputes balances from recorded payments.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import List, Optional
import logging

from .allocations import AllocationManager
from .attachments import AttachmentStore, ProofUpload
from .context import ActorContext
from .directory import Directory
from .errors import NotFoundError, ValidationError
from .installments import InstallmentManager
from .logging_config import log_action
from .models import (
    LedgerEntry, TransactionKind, EntryStatus, PaymentMethod, InstallmentPlan,
    InstallmentTerm, Payment, new_id
)
from .money import to_amount, ZERO
from .reconciliation import LedgerReconciler
from .reference_ids import person_reference, group_reference, unique_reference
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


@dataclass
class NewEntry:
    """Input for creating an entry"""
    entry_name: str
    transaction_kind: TransactionKind
    amount_borrowed: Decimal
    lender_person_id: str
    borrower_person_id: Optional[str] = None
    borrower_group_id: Optional[str] = None
    description: Optional[str] = None
    date_borrowed: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    payment_notes: Optional[str] = None
    # Installment plan, used only for installment expenses
    installment_start_date: Optional[date] = None
    payment_frequency: Optional[str] = None
    payment_frequency_day: Optional[str] = None
    payment_terms: Optional[int] = None
    plan_notes: Optional[str] = None


@dataclass
class EntryView:
    """Entry with the names, plan and payments shown alongside it"""
    entry: LedgerEntry
    lender_name: Optional[str] = None
    borrower_name: Optional[str] = None
    borrower_group_name: Optional[str] = None
    plan: Optional[InstallmentPlan] = None
    terms: List[InstallmentTerm] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)


def _coerce_kind(value) -> TransactionKind:
    if isinstance(value, TransactionKind):
        return value
    try:
        return TransactionKind(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported transaction type: {value}")


def _coerce_method(value) -> Optional[PaymentMethod]:
    if value is None or isinstance(value, PaymentMethod):
        return value
    try:
        return PaymentMethod(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {value}")


class EntryManager:
    """
    Manages ledger entries

    Listing and every mutation are scoped to the acting person; reading a
    single entry by id is not, so an entry can be viewed right after its
    creator records it on behalf of others.
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

    def _validate(self, request: NewEntry) -> None:
        """Reject contradictory input before anything is written"""
        if request.borrower_person_id and request.borrower_group_id:
            raise ValidationError("Entry cannot have both borrower person and borrower group")
        if not request.borrower_person_id and not request.borrower_group_id:
            raise ValidationError("Entry must have either borrower person or borrower group")
        if request.borrower_person_id and request.borrower_person_id == request.lender_person_id:
            raise ValidationError("Borrower and lender cannot be the same person")
        if request.borrower_group_id and self.directory.is_member(request.borrower_group_id, request.lender_person_id):
            raise ValidationError("Lender cannot be a member of the borrower group")
        if request.transaction_kind == TransactionKind.INSTALLMENT_EXPENSE and request.borrower_group_id:
            raise ValidationError("Entry cannot be installment type with group borrower")
        if (request.transaction_kind == TransactionKind.STRAIGHT_EXPENSE
                and request.payment_method not in (None, PaymentMethod.CASH)):
            raise ValidationError("Straight payment entries only allow CASH as payment method")
        if request.amount_borrowed is None or to_amount(request.amount_borrowed) <= ZERO:
            raise ValidationError("Amount borrowed must be positive")
        if not request.entry_name or not request.entry_name.strip():
            raise ValidationError("Entry name is required")

    def create_entry(self, request: NewEntry, actor: Optional[ActorContext] = None,
                     proof: Optional[ProofUpload] = None) -> LedgerEntry:
        """
        Create an entry, its installment plan and its proof attachment

        The plan and terms are created only for installment expenses that
        name a start date. Everything is written in one unit of work.

        Raises:
            ValidationError: If the parties, kind or schedule are invalid, or
                the proof cannot be stored
            NotFoundError: If the lender, borrower or group does not exist
        """
        request.transaction_kind = _coerce_kind(request.transaction_kind)
        request.payment_method = _coerce_method(request.payment_method)
        self._validate(request)

        lender = self.directory.require_person(request.lender_person_id)
        if request.borrower_person_id:
            borrower = self.directory.require_person(request.borrower_person_id)
            base_reference = person_reference(borrower, lender)
        else:
            group = self.directory.require_group(request.borrower_group_id)
            base_reference = group_reference(group, lender)

        amount = to_amount(request.amount_borrowed)
        now = datetime.now(timezone.utc)
        with self.storage.atomic():
            entry = LedgerEntry(
                id=new_id(),
                created_at=now,
                updated_at=now,
                entry_name=request.entry_name.strip(),
                transaction_kind=request.transaction_kind,
                amount_borrowed=amount,
                amount_remaining=amount,
                lender_person_id=lender.id,
                reference_id=unique_reference(
                    base_reference,
                    lambda code: self.storage.exists_where(Tables.ENTRIES, {"reference_id": code})
                ),
                borrower_person_id=request.borrower_person_id or None,
                borrower_group_id=request.borrower_group_id or None,
                description=request.description,
                date_borrowed=request.date_borrowed,
                payment_method=request.payment_method or PaymentMethod.CASH,
                notes=request.notes,
                payment_notes=request.payment_notes
            )
            self.storage.save(Tables.ENTRIES, entry.id, entry.to_dict())

            if proof is not None and proof.data:
                self.attachments.attach_to_entry(entry.id, proof)

            if entry.is_installment and request.installment_start_date is not None:
                self.installments.create_plan(
                    entry,
                    start_date=request.installment_start_date,
                    frequency=request.payment_frequency,
                    term_count=request.payment_terms,
                    due_day=request.payment_frequency_day,
                    notes=request.plan_notes
                )

        log_action(logger, "info", f"Created entry {entry.reference_id} for {entry.amount_borrowed}",
                   actor=actor.name if actor else None, action="create_entry",
                   resource=f"entry:{entry.id}",
                   extra={"transaction_kind": entry.transaction_kind.value})
        return entry

    def get_entry(self, entry_id: str) -> LedgerEntry:
        data = self.storage.load(Tables.ENTRIES, entry_id)
        if not data:
            raise NotFoundError.for_id("Entry", entry_id)
        return LedgerEntry.from_dict(data)

    def get_entry_for_actor(self, entry_id: str, actor: ActorContext) -> LedgerEntry:
        """Entry the actor is a party to; otherwise reported as not found"""
        entry = self.get_entry(entry_id)
        if not self.directory.is_related(entry, actor):
            raise NotFoundError.for_id("Entry", entry_id)
        return entry

    def list_for_actor(self, actor: ActorContext) -> List[LedgerEntry]:
        entries = [LedgerEntry.from_dict(data) for data in self.storage.load_all(Tables.ENTRIES)]
        return [entry for entry in entries if self.directory.is_related(entry, actor)]

    def describe(self, entry: LedgerEntry) -> EntryView:
        lender = self.directory.get_person(entry.lender_person_id)
        view = EntryView(entry=entry, lender_name=lender.full_name if lender else None)
        if entry.borrower_person_id:
            borrower = self.directory.get_person(entry.borrower_person_id)
            view.borrower_name = borrower.full_name if borrower else None
        if entry.borrower_group_id:
            group = self.directory.get_group(entry.borrower_group_id)
            view.borrower_group_name = group.group_name if group else None
        if entry.is_installment:
            view.plan = self.installments.get_plan(entry.id)
            if view.plan is not None:
                view.terms = self.installments.get_terms(view.plan.id)
        view.payments = self.reconciler.linked_payments(entry.id)
        return view

    def update_entry(
        self,
        entry_id: str,
        actor: ActorContext,
        entry_name: Optional[str] = None,
        description: Optional[str] = None,
        date_borrowed: Optional[date] = None,
        notes: Optional[str] = None,
        payment_notes: Optional[str] = None
    ) -> LedgerEntry:
        """Replace the descriptive fields; amounts and parties never change"""
        entry = self.get_entry_for_actor(entry_id, actor)
        if entry_name is not None:
            if not entry_name.strip():
                raise ValidationError("Entry name is required")
            entry.entry_name = entry_name.strip()
        entry.description = description
        entry.date_borrowed = date_borrowed
        entry.notes = notes
        entry.payment_notes = payment_notes
        entry.touch()
        self.storage.save(Tables.ENTRIES, entry.id, entry.to_dict())
        log_action(logger, "info", f"Updated entry {entry.reference_id}",
                   actor=actor.name, action="update_entry", resource=f"entry:{entry.id}")
        return entry

    def delete_entry(self, entry_id: str, actor: ActorContext) -> None:
        """
        Delete an entry and everything it owns

        Allocation payment links go first, then allocations, then the plan
        and terms, the payment links and attachments, and finally the entry.
        Payments themselves are independent records and are kept.
        """
        entry = self.get_entry_for_actor(entry_id, actor)
        with self.storage.atomic():
            self.allocations.delete_for_entry(entry.id)
            self.installments.delete_for_entry(entry.id)
            self.storage.delete_where(Tables.PAYMENT_ENTRIES, {"entry_id": entry.id})
            self.attachments.delete_for_entry(entry.id)
            self.storage.delete(Tables.ENTRIES, entry.id)
        log_action(logger, "info", f"Deleted entry {entry.reference_id}",
                   actor=actor.name, action="delete_entry", resource=f"entry:{entry.id}")

    def complete_entry(self, entry_id: str, actor: ActorContext, today: Optional[date] = None) -> LedgerEntry:
        """
        Mark an entry fully paid

        Open installment terms are closed as PAID without any late fee.
        """
        today = today or date.today()
        entry = self.get_entry_for_actor(entry_id, actor)
        with self.storage.atomic():
            entry = self.reconciler.settle(entry.id, today)
            closed = self.installments.complete_terms(entry.id) if entry.is_installment else 0
        log_action(logger, "info", f"Completed entry {entry.reference_id}",
                   actor=actor.name, action="complete_entry", resource=f"entry:{entry.id}",
                   extra={"terms_closed": closed})
        return entry

    def auto_complete_entries(self, actor: ActorContext, today: Optional[date] = None) -> int:
        """
        Recompute the balance of every unpaid entry of the actor

        Each entry is reconciled in its own unit of work; a failure is
        logged and the sweep continues.

        Returns:
            Number of entries that reached a zero balance
        """
        today = today or date.today()
        completed = 0
        candidates = [entry for entry in self.list_for_actor(actor) if entry.status != EntryStatus.PAID]
        for entry in candidates:
            try:
                reconciled = self.reconciler.reconcile_entry(entry.id, today)
            except Exception as e:
                logger.error(f"Auto-complete failed for entry {entry.id}: {e}", exc_info=True)
                continue
            if reconciled.is_paid:
                completed += 1

        log_action(logger, "info", f"Auto-completed {completed} of {len(candidates)} entries",
                   actor=actor.name, action="auto_complete_entries")
        return completed
