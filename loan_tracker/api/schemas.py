"""
Pydantic schemas for API requests and responses
"""

from decimal import Decimal
from datetime import date
from typing import List, Optional
import base64
import binascii

from pydantic import BaseModel, Field

from ..allocations import AllocationView
from ..attachments import ProofUpload
from ..entries import EntryView
from ..errors import ValidationError
from ..models import InstallmentPlan, InstallmentTerm, Payment
from ..money import decimal_from_string
from ..payments import PaymentView


def parse_date(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date: {value}")


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return decimal_from_string(value)
    except ValueError:
        raise ValidationError(f"Invalid amount: {value}")


class ProofModel(BaseModel):
    data_base64: str = Field(..., description="Proof file contents, base64 encoded")
    content_type: Optional[str] = None
    filename: Optional[str] = None

    def to_upload(self) -> ProofUpload:
        try:
            data = base64.b64decode(self.data_base64, validate=True)
        except (binascii.Error, ValueError):
            raise ValidationError("Proof file is not valid base64")
        return ProofUpload(data=data, content_type=self.content_type, filename=self.filename)


# Directory schemas
class CreatePersonRequest(BaseModel):
    full_name: str


class CreateGroupRequest(BaseModel):
    group_name: str
    description: Optional[str] = None
    member_ids: List[str] = []


# Entry schemas
class CreateEntryRequest(BaseModel):
    entry_name: str
    transaction_type: str = Field(..., description="straight_expense, group_expense or installment_expense")
    amount_borrowed: str  # Decimal as string
    lender_person_id: str
    borrower_person_id: Optional[str] = None
    borrower_group_id: Optional[str] = None
    description: Optional[str] = None
    date_borrowed: Optional[str] = None  # ISO date string
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    payment_notes: Optional[str] = None
    installment_start_date: Optional[str] = None  # ISO date string
    payment_frequency: Optional[str] = Field(None, description="weekly or monthly")
    payment_frequency_day: Optional[str] = Field(None, description="Weekday name or day of month 1-28")
    payment_terms: Optional[int] = None
    plan_notes: Optional[str] = None
    proof: Optional[ProofModel] = None


class UpdateEntryRequest(BaseModel):
    entry_name: Optional[str] = None
    description: Optional[str] = None
    date_borrowed: Optional[str] = None
    notes: Optional[str] = None
    payment_notes: Optional[str] = None


class TermModel(BaseModel):
    term_id: str
    term_number: int
    due_date: str
    term_status: str
    penalty_applied: Optional[str] = None

    @classmethod
    def from_term(cls, term: InstallmentTerm) -> 'TermModel':
        return cls(
            term_id=term.id,
            term_number=term.term_number,
            due_date=term.due_date.isoformat(),
            term_status=term.term_status.value,
            penalty_applied=str(term.penalty_applied) if term.penalty_applied is not None else None
        )


class PlanModel(BaseModel):
    installment_id: str
    start_date: str
    payment_frequency: str
    payment_frequency_day: Optional[str] = None
    payment_terms: int
    amount_per_term: str
    notes: Optional[str] = None
    terms: List[TermModel] = []

    @classmethod
    def from_plan(cls, plan: InstallmentPlan, terms: List[InstallmentTerm]) -> 'PlanModel':
        return cls(
            installment_id=plan.id,
            start_date=plan.start_date.isoformat(),
            payment_frequency=plan.payment_frequency.value,
            payment_frequency_day=plan.due_day,
            payment_terms=plan.payment_terms,
            amount_per_term=str(plan.amount_per_term),
            notes=plan.notes,
            terms=[TermModel.from_term(term) for term in terms]
        )


class EntryPaymentModel(BaseModel):
    payment_id: str
    payment_date: str
    payment_amount: str
    payee_person_id: str
    notes: Optional[str] = None

    @classmethod
    def from_payment(cls, payment: Payment) -> 'EntryPaymentModel':
        return cls(
            payment_id=payment.id,
            payment_date=payment.payment_date.isoformat(),
            payment_amount=str(payment.payment_amount),
            payee_person_id=payment.payee_person_id,
            notes=payment.notes
        )


class EntryResponse(BaseModel):
    entry_id: str
    reference_id: str
    entry_name: str
    description: Optional[str] = None
    transaction_type: str
    date_borrowed: Optional[str] = None
    date_fully_paid: Optional[str] = None
    amount_borrowed: str
    amount_remaining: str
    status: str
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    payment_notes: Optional[str] = None
    lender_person_id: str
    lender_person_name: Optional[str] = None
    borrower_person_id: Optional[str] = None
    borrower_person_name: Optional[str] = None
    borrower_group_id: Optional[str] = None
    borrower_group_name: Optional[str] = None
    installment_plan: Optional[PlanModel] = None
    payments: List[EntryPaymentModel] = []

    @classmethod
    def from_view(cls, view: EntryView) -> 'EntryResponse':
        entry = view.entry
        return cls(
            entry_id=entry.id,
            reference_id=entry.reference_id,
            entry_name=entry.entry_name,
            description=entry.description,
            transaction_type=entry.transaction_kind.value,
            date_borrowed=entry.date_borrowed.isoformat() if entry.date_borrowed else None,
            date_fully_paid=entry.date_fully_paid.isoformat() if entry.date_fully_paid else None,
            amount_borrowed=str(entry.amount_borrowed),
            amount_remaining=str(entry.amount_remaining),
            status=entry.status.value,
            payment_method=entry.payment_method.value if entry.payment_method else None,
            notes=entry.notes,
            payment_notes=entry.payment_notes,
            lender_person_id=entry.lender_person_id,
            lender_person_name=view.lender_name,
            borrower_person_id=entry.borrower_person_id,
            borrower_person_name=view.borrower_name,
            borrower_group_id=entry.borrower_group_id,
            borrower_group_name=view.borrower_group_name,
            installment_plan=PlanModel.from_plan(view.plan, view.terms) if view.plan else None,
            payments=[EntryPaymentModel.from_payment(payment) for payment in view.payments]
        )


# Payment schemas
class CreatePaymentRequest(BaseModel):
    entry_id: str
    payee_person_id: str
    payment_amount: str  # Decimal as string
    payment_date: Optional[str] = None  # ISO date string
    notes: Optional[str] = None
    allocation_id: Optional[str] = None
    proof: Optional[ProofModel] = None


class UpdatePaymentRequest(BaseModel):
    payment_amount: Optional[str] = None
    payment_date: Optional[str] = None
    payee_person_id: Optional[str] = None
    notes: Optional[str] = None
    proof: Optional[ProofModel] = None


class PaymentResponse(BaseModel):
    payment_id: str
    payment_date: str
    payment_amount: str
    change_amount: str
    payee_person_id: str
    payee_person_name: Optional[str] = None
    notes: Optional[str] = None
    has_proof: bool = False
    entry_id: Optional[str] = None
    entry_name: Optional[str] = None
    entry_reference_id: Optional[str] = None

    @classmethod
    def from_view(cls, view: PaymentView) -> 'PaymentResponse':
        payment = view.payment
        return cls(
            payment_id=payment.id,
            payment_date=payment.payment_date.isoformat(),
            payment_amount=str(payment.payment_amount),
            change_amount=str(payment.change_amount),
            payee_person_id=payment.payee_person_id,
            payee_person_name=view.payee_name,
            notes=payment.notes,
            has_proof=view.has_proof,
            entry_id=view.entry_id,
            entry_name=view.entry_name,
            entry_reference_id=view.entry_reference_id
        )


# Installment schemas
class UpdateTermStatusRequest(BaseModel):
    status: str = Field(..., description="not_started, unpaid, delinquent, paid or skipped")


# Allocation schemas
class AllocationItemModel(BaseModel):
    person_id: str
    amount: str  # Decimal as string
    description: Optional[str] = None
    notes: Optional[str] = None


class CreateAllocationsRequest(BaseModel):
    entry_id: str
    allocations: List[AllocationItemModel]


class UpdateAllocationRequest(BaseModel):
    person_id: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[str] = None
    notes: Optional[str] = None


class AllocationResponse(BaseModel):
    allocation_id: str
    entry_id: str
    person_id: str
    person_name: Optional[str] = None
    description: Optional[str] = None
    amount: str
    notes: Optional[str] = None
    payment_allocation_status: str
    percentage_of_total: str

    @classmethod
    def from_view(cls, view: AllocationView) -> 'AllocationResponse':
        allocation = view.allocation
        return cls(
            allocation_id=allocation.id,
            entry_id=allocation.entry_id,
            person_id=allocation.person_id,
            person_name=view.person_name,
            description=allocation.description,
            amount=str(allocation.amount),
            notes=allocation.notes,
            payment_allocation_status=view.status.value,
            percentage_of_total=str(view.percentage_of_total)
        )
