"""
Installment Module

Installment plans, their terms and the term lifecycle:

    NOT_STARTED -> UNPAID | DELINQUENT | PAID | SKIPPED
    UNPAID      -> DELINQUENT | PAID | SKIPPED
    DELINQUENT  -> PAID | SKIPPED

PAID and SKIPPED are terminal for automatic transitions. A term that lapses
into delinquency is charged the late fee once; skipping a term charges it
again every time. Every penalty is added to the entry's balance through
the ledger reconciler.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple
import logging

from .context import ActorContext
from .directory import Directory
from .errors import NotFoundError, ValidationError
from .fees import late_fee, DEFAULT_LATE_FEE_RATE, DEFAULT_MINIMUM_LATE_FEE
from .logging_config import log_action
from .models import (
    LedgerEntry, InstallmentPlan, InstallmentTerm, TermStatus, EntryStatus, new_id
)
from .money import sum_amounts, ZERO
from .reconciliation import LedgerReconciler
from .scheduler import generate_schedule, parse_frequency
from .storage import StorageInterface, Tables


logger = logging.getLogger(__name__)


def parse_term_status(value) -> TermStatus:
    """Accepts a TermStatus or a name such as "PAID" or "not_started" """
    if isinstance(value, TermStatus):
        return value
    try:
        return TermStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unsupported installment status: {value}")


def has_lapsed(term: InstallmentTerm, today: date) -> bool:
    """Due strictly before today and still open (a term due today is not late)"""
    return (
        term.due_date < today
        and term.term_status in (TermStatus.NOT_STARTED, TermStatus.UNPAID)
    )


class InstallmentManager:
    """
    Plans, terms and the term lifecycle engine
    """

    def __init__(
        self,
        storage: StorageInterface,
        directory: Directory,
        reconciler: LedgerReconciler,
        late_fee_rate: Decimal = DEFAULT_LATE_FEE_RATE,
        minimum_late_fee: Decimal = DEFAULT_MINIMUM_LATE_FEE
    ):
        self.storage = storage
        self.directory = directory
        self.reconciler = reconciler
        self.late_fee_rate = late_fee_rate
        self.minimum_late_fee = minimum_late_fee

    def late_fee_for(self, plan: InstallmentPlan) -> Decimal:
        return late_fee(plan.amount_per_term, self.late_fee_rate, self.minimum_late_fee)

    # Plans and terms

    def create_plan(
        self,
        entry: LedgerEntry,
        start_date: Optional[date],
        frequency,
        term_count: Optional[int],
        due_day: Optional[str] = None,
        notes: Optional[str] = None
    ) -> Tuple[InstallmentPlan, List[InstallmentTerm]]:
        """
        Create the plan of an installment entry and materialize its terms

        Raises:
            ValidationError: If the entry already has a plan or the schedule
                inputs are missing or invalid
        """
        if self.storage.exists_where(Tables.INSTALLMENT_PLANS, {"entry_id": entry.id}):
            raise ValidationError(f"Entry {entry.reference_id} already has an installment plan")

        schedule = generate_schedule(start_date, frequency, due_day, term_count, entry.amount_borrowed)
        now = datetime.now(timezone.utc)
        plan = InstallmentPlan(
            id=new_id(),
            created_at=now,
            updated_at=now,
            entry_id=entry.id,
            start_date=start_date,
            payment_frequency=parse_frequency(frequency),
            payment_terms=term_count,
            amount_per_term=schedule.amount_per_term,
            due_day=due_day.strip() if due_day and due_day.strip() else None,
            notes=notes
        )

        terms = []
        with self.storage.atomic():
            self.storage.save(Tables.INSTALLMENT_PLANS, plan.id, plan.to_dict())
            for scheduled in schedule.terms:
                term = InstallmentTerm(
                    id=new_id(),
                    created_at=now,
                    updated_at=now,
                    plan_id=plan.id,
                    term_number=scheduled.term_number,
                    due_date=scheduled.due_date
                )
                self.storage.save(Tables.INSTALLMENT_TERMS, term.id, term.to_dict())
                terms.append(term)

        logger.info(
            f"Created {plan.payment_frequency.value} plan for entry {entry.reference_id}: "
            f"{plan.payment_terms} terms of {plan.amount_per_term}"
        )
        return plan, terms

    def get_plan(self, entry_id: str) -> Optional[InstallmentPlan]:
        data = self.storage.find_one(Tables.INSTALLMENT_PLANS, {"entry_id": entry_id})
        return InstallmentPlan.from_dict(data) if data else None

    def get_terms(self, plan_id: str) -> List[InstallmentTerm]:
        terms = [
            InstallmentTerm.from_dict(data)
            for data in self.storage.find(Tables.INSTALLMENT_TERMS, {"plan_id": plan_id})
        ]
        terms.sort(key=lambda term: term.term_number)
        return terms

    def get_term(self, term_id: str) -> InstallmentTerm:
        data = self.storage.load(Tables.INSTALLMENT_TERMS, term_id)
        if not data:
            raise NotFoundError.for_id("Installment term", term_id)
        return InstallmentTerm.from_dict(data)

    def delete_for_entry(self, entry_id: str) -> None:
        plan = self.get_plan(entry_id)
        if plan is None:
            return
        self.storage.delete_where(Tables.INSTALLMENT_TERMS, {"plan_id": plan.id})
        self.storage.delete(Tables.INSTALLMENT_PLANS, plan.id)

    def _plan_and_entry(self, term: InstallmentTerm) -> Tuple[InstallmentPlan, LedgerEntry]:
        plan_data = self.storage.load(Tables.INSTALLMENT_PLANS, term.plan_id)
        if not plan_data:
            raise NotFoundError.for_id("Installment term", term.id)
        plan = InstallmentPlan.from_dict(plan_data)
        entry_data = self.storage.load(Tables.ENTRIES, plan.entry_id)
        if not entry_data:
            raise NotFoundError.for_id("Installment term", term.id)
        return plan, LedgerEntry.from_dict(entry_data)

    def _accessible_term(self, term_id: str, actor: ActorContext):
        term = self.get_term(term_id)
        plan, entry = self._plan_and_entry(term)
        if not self.directory.is_related(entry, actor):
            raise NotFoundError.for_id("Installment term", term_id)
        return term, plan, entry

    def _save_term(self, term: InstallmentTerm) -> None:
        term.touch()
        self.storage.save(Tables.INSTALLMENT_TERMS, term.id, term.to_dict())

    # Term actions

    def skip_term(self, term_id: str, actor: ActorContext) -> InstallmentTerm:
        """
        Skip a term, charging the late fee

        The fee is recomputed and added to the balance on every skip, even
        when the term already carries a penalty.
        """
        with self.storage.atomic():
            term, plan, entry = self._accessible_term(term_id, actor)
            penalty = self.late_fee_for(plan)
            term.term_status = TermStatus.SKIPPED
            term.penalty_applied = penalty
            self._save_term(term)
            self.reconciler.add_penalty(entry.id, penalty)

        log_action(logger, "info", f"Skipped term {term.term_number} of entry {entry.reference_id}",
                   actor=actor.name, action="skip_term", resource=f"term:{term.id}",
                   extra={"penalty": str(penalty)})
        return term

    def update_term_status(self, term_id: str, status, actor: ActorContext) -> InstallmentTerm:
        """
        Set a term's status

        Paying a delinquent term that has not been charged yet charges the
        late fee first. Every other change is a plain overwrite.
        """
        status = parse_term_status(status)
        with self.storage.atomic():
            term, plan, entry = self._accessible_term(term_id, actor)
            previous = term.term_status
            if status == TermStatus.PAID and previous == TermStatus.DELINQUENT and not term.has_penalty:
                term.penalty_applied = self.late_fee_for(plan)
                self.reconciler.add_penalty(entry.id, term.penalty_applied)
            term.term_status = status
            self._save_term(term)

        log_action(logger, "info",
                   f"Term {term.term_number} of entry {entry.reference_id}: {previous.value} -> {status.value}",
                   actor=actor.name, action="update_term_status", resource=f"term:{term.id}")
        return term

    def preview_skip_penalty(self, term_id: str) -> Decimal:
        """Penalty a skip would charge; nothing is stored"""
        plan, _ = self._plan_and_entry(self.get_term(term_id))
        return self.late_fee_for(plan)

    def preview_delinquent_late_fee(self, term_id: str) -> Decimal:
        """Fee charged when paying the term now; zero unless it is delinquent"""
        term = self.get_term(term_id)
        if term.term_status != TermStatus.DELINQUENT:
            return ZERO
        plan, _ = self._plan_and_entry(term)
        return self.late_fee_for(plan)

    # Sweeps

    def _mark_delinquent(self, plan: InstallmentPlan, entry: LedgerEntry, today: date) -> int:
        """Mark the lapsed terms of one plan delinquent; caller provides the atomic block"""
        lapsed = [term for term in self.get_terms(plan.id) if has_lapsed(term, today)]
        charged = []
        for term in lapsed:
            term.term_status = TermStatus.DELINQUENT
            if not term.has_penalty:
                term.penalty_applied = self.late_fee_for(plan)
                charged.append(term.penalty_applied)
            self._save_term(term)

        if charged:
            self.reconciler.add_penalty(entry.id, sum_amounts(charged))
        if lapsed:
            logger.info(
                f"Marked {len(lapsed)} terms delinquent on entry {entry.reference_id}, "
                f"charged {sum_amounts(charged)}"
            )
        return len(lapsed)

    def sweep_entry(self, entry_id: str, today: Optional[date] = None) -> int:
        """
        Mark lapsed terms of one entry delinquent

        Runs after payments and is not scoped to an actor.

        Returns:
            Number of terms marked delinquent
        """
        today = today or date.today()
        entry_data = self.storage.load(Tables.ENTRIES, entry_id)
        if not entry_data:
            raise NotFoundError.for_id("Entry", entry_id)
        entry = LedgerEntry.from_dict(entry_data)
        if not entry.is_installment:
            return 0
        plan = self.get_plan(entry_id)
        if plan is None:
            return 0
        with self.storage.atomic():
            return self._mark_delinquent(plan, entry, today)

    def sweep_delinquent_terms(self, actor: ActorContext, today: Optional[date] = None) -> int:
        """
        Mark lapsed terms delinquent across the actor's entries

        Each entry is processed in its own atomic block. A failure on one
        entry is logged and the sweep carries on with the rest.

        Returns:
            Number of terms marked delinquent
        """
        today = today or date.today()
        marked = 0
        failed = 0
        for plan_data in self.storage.load_all(Tables.INSTALLMENT_PLANS):
            plan = InstallmentPlan.from_dict(plan_data)
            entry_data = self.storage.load(Tables.ENTRIES, plan.entry_id)
            if not entry_data:
                continue
            entry = LedgerEntry.from_dict(entry_data)
            if not self.directory.is_related(entry, actor):
                continue
            try:
                with self.storage.atomic():
                    marked += self._mark_delinquent(plan, entry, today)
            except Exception as e:
                failed += 1
                logger.error(f"Delinquency sweep failed for entry {entry.id}: {e}", exc_info=True)

        log_action(logger, "info", f"Delinquency sweep marked {marked} terms",
                   actor=actor.name, action="sweep_delinquent_terms",
                   extra={"as_of": today.isoformat(), "failed_entries": failed})
        return marked

    def complete_terms(self, entry_id: str) -> int:
        """Force every open term of an entry to PAID without charging fees"""
        plan = self.get_plan(entry_id)
        if plan is None:
            return 0
        completed = 0
        for term in self.get_terms(plan.id):
            if term.term_status.is_outstanding:
                term.term_status = TermStatus.PAID
                self._save_term(term)
                completed += 1
        return completed

    # Reporting

    def total_paid_penalties(self, actor: ActorContext) -> Decimal:
        """
        Penalties settled on the actor's installment entries

        A fully paid entry counts every assessed penalty; otherwise only the
        penalties of terms marked PAID.
        """
        penalties = []
        for plan_data in self.storage.load_all(Tables.INSTALLMENT_PLANS):
            plan = InstallmentPlan.from_dict(plan_data)
            entry_data = self.storage.load(Tables.ENTRIES, plan.entry_id)
            if not entry_data:
                continue
            entry = LedgerEntry.from_dict(entry_data)
            if not entry.is_installment or not self.directory.is_related(entry, actor):
                continue
            for term in self.get_terms(plan.id):
                if not term.has_penalty:
                    continue
                if entry.status == EntryStatus.PAID or term.term_status == TermStatus.PAID:
                    penalties.append(term.penalty_applied)
        return sum_amounts(penalties)

