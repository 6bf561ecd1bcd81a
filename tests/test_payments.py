"""
Test suite for payments

Tests cover:
- Recording payments and change amounts
- Allocation targets
- Proof attachments and rollback on storage failure
- Editing and deleting payments
"""

import pytest
from decimal import Decimal
from datetime import date

from loan_tracker.allocations import AllocationItem
from loan_tracker.attachments import ProofUpload
from loan_tracker.config import LoanTrackerConfig
from loan_tracker.entries import NewEntry
from loan_tracker.errors import NotFoundError, ValidationError
from loan_tracker.models import TransactionKind, EntryStatus, AllocationPaymentLink
from loan_tracker.payments import NewPayment
from loan_tracker.storage import InMemoryStorage, Tables
from loan_tracker.system import LedgerSystem


TODAY = date(2024, 3, 1)


class TestPaymentManager:
    """Test payment recording"""

    def setup_method(self):
        """Set up test fixtures"""
        self.system = LedgerSystem(storage=InMemoryStorage(),
                                   settings=LoanTrackerConfig(use_sqlite=False))
        self.payments = self.system.payment_manager
        self.lender = self.system.directory.resolve_actor(None)
        self.john = self.system.directory.resolve_actor("John Doe")
        self.stranger = self.system.directory.resolve_actor("Stranger")
        self.entry = self.system.entry_manager.create_entry(NewEntry(
            entry_name="Concert tickets",
            transaction_kind=TransactionKind.STRAIGHT_EXPENSE,
            amount_borrowed=Decimal("1000.00"),
            lender_person_id=self.lender.person_id,
            borrower_person_id=self.john.person_id
        ))

    def _pay(self, amount: str, **kwargs):
        request = NewPayment(entry_id=kwargs.pop("entry_id", self.entry.id),
                             payee_person_id=kwargs.pop("payee_person_id", self.john.person_id),
                             payment_amount=Decimal(amount), **kwargs)
        return self.payments.record_payment(request, actor=self.john, today=TODAY)

    def _entry(self):
        return self.system.entry_manager.get_entry(self.entry.id)

    def test_partial_payment(self):
        """Test a partial payment"""
        payment = self._pay("400.00")
        assert payment.change_amount == Decimal("0.00")
        assert payment.payment_date == TODAY
        entry = self._entry()
        assert entry.amount_remaining == Decimal("600.00")
        assert entry.status == EntryStatus.PARTIALLY_PAID
        assert entry.date_fully_paid is None

    def test_overpayment_records_change(self):
        """Test paying 1200 against 1000 leaves 200 change and a settled entry"""
        payment = self._pay("1200.00")
        assert payment.change_amount == Decimal("200.00")
        entry = self._entry()
        assert entry.amount_remaining == Decimal("0.00")
        assert entry.status == EntryStatus.PAID
        assert entry.date_fully_paid == TODAY

    def test_change_uses_current_balance(self):
        """Test change is computed against the current balance"""
        self._pay("700.00")
        second = self._pay("500.00")
        assert second.change_amount == Decimal("200.00")

    def test_lowering_overpayment_keeps_entry_settled(self):
        """Test editing a 1200 overpayment down to 1100 only shrinks the change"""
        payment = self._pay("1200.00")
        updated = self.payments.update_payment(payment.id, self.john,
                                               payment_amount=Decimal("1100.00"), today=TODAY)
        assert updated.change_amount == Decimal("100.00")
        assert self.payments.get_payment(payment.id, self.john).change_amount == Decimal("100.00")

        entry = self._entry()
        assert entry.amount_remaining == Decimal("0.00")
        assert entry.status == EntryStatus.PAID

        recomputed = self.system.reconciler.reconcile_entry(self.entry.id, TODAY)
        assert recomputed.amount_remaining == entry.amount_remaining
        assert recomputed.status == entry.status

    def test_lowering_overpayment_below_balance(self):
        """Test editing a 1200 overpayment down to 900 reopens the entry with no change"""
        payment = self._pay("1200.00")
        updated = self.payments.update_payment(payment.id, self.john,
                                               payment_amount=Decimal("900.00"), today=TODAY)
        assert updated.change_amount == Decimal("0.00")
        entry = self._entry()
        assert entry.amount_remaining == Decimal("100.00")
        assert entry.status == EntryStatus.PARTIALLY_PAID

    def test_raising_payment_past_balance_records_change(self):
        """Test editing a 400 payment up to 1100 settles the entry with 100 change"""
        payment = self._pay("400.00")
        updated = self.payments.update_payment(payment.id, self.john,
                                               payment_amount=Decimal("1100.00"), today=TODAY)
        assert updated.change_amount == Decimal("100.00")
        assert self._entry().amount_remaining == Decimal("0.00")
        assert self._entry().status == EntryStatus.PAID

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_amount(self, amount):
        """Test non-positive payment amounts are rejected"""
        with pytest.raises(ValidationError):
            self._pay(amount)

    def test_unknown_entry_or_payee(self):
        """Test paying an unknown entry or payee"""
        with pytest.raises(NotFoundError):
            self._pay("10.00", entry_id="missing")
        with pytest.raises(NotFoundError):
            self._pay("10.00", payee_person_id="missing")
        assert self.system.storage.count(Tables.PAYMENTS) == 0

    def test_proof_download(self):
        """Test downloading payment proof"""
        payment = self._pay("100.00", notes="gcash")
        self.payments.update_payment(payment.id, self.john,
                                     proof=ProofUpload(data=b"jpeg-bytes"), notes="gcash")
        data, content_type = self.payments.get_proof_with_info(payment.id, self.lender)
        assert data == b"jpeg-bytes"
        assert content_type == "image/jpeg"
        assert self.payments.describe(payment).has_proof

    def test_proof_keeps_content_type(self):
        """Test proof keeps its content type"""
        payment = self.payments.record_payment(NewPayment(
            entry_id=self.entry.id, payee_person_id=self.john.person_id,
            payment_amount=Decimal("100.00")
        ), proof=ProofUpload(data=b"png-bytes", content_type="image/png"), today=TODAY)
        assert self.payments.get_proof_with_info(payment.id, self.john) == (b"png-bytes", "image/png")

    def test_missing_proof(self):
        """Test downloading proof that does not exist"""
        payment = self._pay("100.00")
        with pytest.raises(NotFoundError, match="proof"):
            self.payments.get_proof_with_info(payment.id, self.lender)

    def test_proof_failure_rolls_back_payment(self, monkeypatch):
        """Test a proof storage failure rolls back the payment"""
        def broken_save(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(self.system.attachments, "_save", broken_save)
        with pytest.raises(ValidationError, match="Failed to store proof"):
            self.payments.record_payment(NewPayment(
                entry_id=self.entry.id, payee_person_id=self.john.person_id,
                payment_amount=Decimal("300.00")
            ), proof=ProofUpload(data=b"receipt"), today=TODAY)

        assert self.system.storage.count(Tables.PAYMENTS) == 0
        assert self.system.storage.count(Tables.PAYMENT_ENTRIES) == 0
        assert self._entry().amount_remaining == Decimal("1000.00")

    def test_scoped_reads(self):
        """Test payment reads are scoped to the actor"""
        payment = self._pay("100.00")
        assert self.payments.get_payment(payment.id, self.lender).id == payment.id
        with pytest.raises(NotFoundError):
            self.payments.get_payment(payment.id, self.stranger)
        assert self.payments.list_for_actor(self.stranger) == []
        assert [p.id for p in self.payments.list_for_actor(self.john)] == [payment.id]

    def test_list_for_entry_oldest_first(self):
        """Test listing an entry's payments oldest first"""
        self._pay("100.00", payment_date=date(2024, 2, 20))
        self._pay("50.00", payment_date=date(2024, 1, 5))
        dates = [p.payment_date for p in self.payments.list_for_entry(self.entry.id)]
        assert dates == [date(2024, 1, 5), date(2024, 2, 20)]

    def test_describe_names_entry(self):
        """Test payment view names the entry"""
        view = self.payments.describe(self._pay("100.00"))
        assert view.payee_name == "John Doe"
        assert view.entry_reference_id == self.entry.reference_id
        assert not view.has_proof


class TestPaymentEdits:
    """Test editing and deleting payments"""

    def setup_method(self):
        """Set up test fixtures"""
        self.system = LedgerSystem(storage=InMemoryStorage(),
                                   settings=LoanTrackerConfig(use_sqlite=False))
        self.payments = self.system.payment_manager
        self.lender = self.system.directory.resolve_actor(None)
        self.john = self.system.directory.resolve_actor("John Doe")
        self.jane = self.system.directory.resolve_actor("Jane Roe")
        group = self.system.directory.create_group("Roommates", [self.john.person_id, self.jane.person_id])
        self.entry = self.system.entry_manager.create_entry(NewEntry(
            entry_name="Utilities",
            transaction_kind=TransactionKind.GROUP_EXPENSE,
            amount_borrowed=Decimal("1000.00"),
            lender_person_id=self.lender.person_id,
            borrower_group_id=group.id
        ))
        views = self.system.allocation_manager.create_allocations(self.entry.id, [
            AllocationItem(person_id=self.john.person_id, amount=Decimal("600.00")),
            AllocationItem(person_id=self.jane.person_id, amount=Decimal("400.00")),
        ])
        self.john_share, self.jane_share = [view.allocation for view in views]

    def _pay(self, amount: str, allocation_id=None, payee=None):
        return self.payments.record_payment(NewPayment(
            entry_id=self.entry.id,
            payee_person_id=(payee or self.john).person_id,
            payment_amount=Decimal(amount),
            allocation_id=allocation_id
        ), today=TODAY)

    def _entry(self):
        return self.system.entry_manager.get_entry(self.entry.id)

    def test_allocation_must_match_payee(self):
        """Test allocation payments must match the payee"""
        with pytest.raises(ValidationError, match="does not match"):
            self._pay("100.00", allocation_id=self.jane_share.id)
        assert self.system.storage.count(Tables.PAYMENTS) == 0

    def test_allocation_must_belong_to_entry(self):
        """Test allocation payments must belong to the entry"""
        other = self.system.entry_manager.create_entry(NewEntry(
            entry_name="Other",
            transaction_kind=TransactionKind.STRAIGHT_EXPENSE,
            amount_borrowed=Decimal("50.00"),
            lender_person_id=self.lender.person_id,
            borrower_person_id=self.john.person_id
        ))
        with pytest.raises(ValidationError, match="does not belong"):
            self.payments.record_payment(NewPayment(
                entry_id=other.id, payee_person_id=self.john.person_id,
                payment_amount=Decimal("10.00"), allocation_id=self.john_share.id
            ))

    def test_amount_change_applies_difference(self):
        """Test editing an amount applies the difference"""
        payment = self._pay("400.00", allocation_id=self.john_share.id)
        self.payments.update_payment(payment.id, self.john, payment_amount=Decimal("600.00"), today=TODAY)

        assert self._entry().amount_remaining == Decimal("400.00")
        links = self.system.storage.find(Tables.ALLOCATION_PAYMENTS, {"payment_id": payment.id})
        assert AllocationPaymentLink.from_dict(links[0]).amount == Decimal("600.00")

    def test_amount_lowered_reopens_entry(self):
        """Test lowering a payment reopens the entry"""
        payment = self._pay("1000.00")
        assert self._entry().is_paid
        self.payments.update_payment(payment.id, self.lender, payment_amount=Decimal("900.00"), today=TODAY)
        entry = self._entry()
        assert entry.amount_remaining == Decimal("100.00")
        assert entry.status == EntryStatus.PARTIALLY_PAID

    def test_payee_change_must_match_allocation(self):
        """Test payee changes must match the allocation"""
        payment = self._pay("100.00", allocation_id=self.john_share.id)
        with pytest.raises(ValidationError):
            self.payments.update_payment(payment.id, self.john, payee_person_id=self.jane.person_id)
        assert self.payments.get_payment(payment.id, self.john).payee_person_id == self.john.person_id

    def test_payee_change_without_allocation(self):
        """Test changing the payee of an unallocated payment"""
        payment = self._pay("100.00")
        updated = self.payments.update_payment(payment.id, self.jane, payee_person_id=self.jane.person_id)
        assert updated.payee_person_id == self.jane.person_id

    def test_delete_recomputes_entry(self):
        """Test deleting a payment recomputes the entry"""
        keep = self._pay("300.00")
        drop = self._pay("200.00", allocation_id=self.john_share.id)
        self.payments.delete_payment(drop.id, self.lender, today=TODAY)

        entry = self._entry()
        assert entry.amount_remaining == Decimal("700.00")
        assert self.system.storage.find(Tables.ALLOCATION_PAYMENTS, {"payment_id": drop.id}) == []
        assert [p.id for p in self.payments.list_for_entry(self.entry.id)] == [keep.id]
