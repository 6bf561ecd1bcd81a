"""
Ledger Data Model

Entries, installment plans and terms, payments, group-split allocations
and the join records linking payments to entries and allocations.
An entry owns its plan and allocations; payments are created on their own
and then linked.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Optional
from enum import Enum
import uuid

from .money import to_amount, ZERO
from .storage import StorageRecord


class TransactionKind(Enum):
    """How an entry is repaid"""
    STRAIGHT_EXPENSE = "straight_expense"        # Lump sum
    GROUP_EXPENSE = "group_expense"              # Split across group members
    INSTALLMENT_EXPENSE = "installment_expense"  # Scheduled terms


class EntryStatus(Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


class PaymentMethod(Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    EWALLET = "ewallet"
    OTHER = "other"


class PaymentFrequency(Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class TermStatus(Enum):
    """Installment term lifecycle states"""
    NOT_STARTED = "not_started"
    UNPAID = "unpaid"
    DELINQUENT = "delinquent"    # Due date passed without payment
    PAID = "paid"
    SKIPPED = "skipped"          # Borrower skipped the term and took a penalty

    @property
    def is_outstanding(self) -> bool:
        return self in (TermStatus.NOT_STARTED, TermStatus.UNPAID, TermStatus.DELINQUENT)


class AllocationStatus(Enum):
    UNPAID = "unpaid"
    PARTIALLY_PAID = "partially_paid"
    PAID = "paid"


def new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Person(StorageRecord):
    full_name: str


@dataclass
class Group(StorageRecord):
    group_name: str
    description: Optional[str] = None


@dataclass
class GroupMember(StorageRecord):
    group_id: str
    person_id: str


@dataclass
class LedgerEntry(StorageRecord):
    """A loan or expense between a lender and one borrower (person or group)"""
    entry_name: str
    transaction_kind: TransactionKind
    amount_borrowed: Decimal
    amount_remaining: Decimal
    lender_person_id: str
    reference_id: str
    status: EntryStatus = EntryStatus.UNPAID
    borrower_person_id: Optional[str] = None
    borrower_group_id: Optional[str] = None
    description: Optional[str] = None
    date_borrowed: Optional[date] = None
    date_fully_paid: Optional[date] = None
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    payment_notes: Optional[str] = None

    def __post_init__(self):
        self.amount_borrowed = to_amount(self.amount_borrowed)
        self.amount_remaining = to_amount(self.amount_remaining)

        if self.amount_borrowed <= ZERO:
            raise ValueError("Amount borrowed must be positive")
        if (self.borrower_person_id is None) == (self.borrower_group_id is None):
            raise ValueError("Entry must have exactly one of borrower person or borrower group")

    @property
    def has_group_borrower(self) -> bool:
        return self.borrower_group_id is not None

    @property
    def is_installment(self) -> bool:
        return self.transaction_kind == TransactionKind.INSTALLMENT_EXPENSE

    @property
    def is_paid(self) -> bool:
        return self.status == EntryStatus.PAID


@dataclass
class InstallmentPlan(StorageRecord):
    """Repayment schedule of an installment entry (one per entry)"""
    entry_id: str
    start_date: date
    payment_frequency: PaymentFrequency
    payment_terms: int
    amount_per_term: Decimal
    due_day: Optional[str] = None   # Weekday name (weekly) or day of month 1-28 (monthly)
    notes: Optional[str] = None

    def __post_init__(self):
        self.amount_per_term = to_amount(self.amount_per_term)
        if self.payment_terms <= 0:
            raise ValueError("Payment terms must be greater than 0")


@dataclass
class InstallmentTerm(StorageRecord):
    plan_id: str
    term_number: int
    due_date: date
    term_status: TermStatus = TermStatus.NOT_STARTED
    penalty_applied: Optional[Decimal] = None

    @property
    def has_penalty(self) -> bool:
        return self.penalty_applied is not None and self.penalty_applied != ZERO


@dataclass
class Payment(StorageRecord):
    payment_date: date
    payment_amount: Decimal
    payee_person_id: str
    change_amount: Decimal = ZERO    # Excess over the entry's remaining balance, informational
    notes: Optional[str] = None

    def __post_init__(self):
        self.payment_amount = to_amount(self.payment_amount)
        self.change_amount = to_amount(self.change_amount)
        if self.payment_amount <= ZERO:
            raise ValueError("Payment amount must be positive")


@dataclass
class PaymentEntryLink(StorageRecord):
    payment_id: str
    entry_id: str


@dataclass
class Allocation(StorageRecord):
    """Line item of a group-split entry owed by one person"""
    entry_id: str
    person_id: str
    amount: Decimal
    description: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        self.amount = to_amount(self.amount)
        if self.amount < ZERO:
            raise ValueError("Allocation amount cannot be negative")


@dataclass
class AllocationPaymentLink(StorageRecord):
    payment_id: str
    allocation_id: str
    amount: Decimal   # Portion of the payment attributed to the allocation


@dataclass
class Attachment(StorageRecord):
    """Proof image stored alongside a payment or entry"""
    file_data: bytes
    content_type: Optional[str] = None
    original_filename: Optional[str] = None
    file_size: int = 0
    payment_id: Optional[str] = None
    entry_id: Optional[str] = None
