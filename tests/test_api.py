"""
Integration tests for the Loan Tracker API
Tests end-to-end workflows using FastAPI TestClient
"""

import base64
import pytest
from fastapi.testclient import TestClient

import loan_tracker.api.dependencies as dependencies
from loan_tracker.api import create_app
from loan_tracker.config import LoanTrackerConfig
from loan_tracker.storage import InMemoryStorage
from loan_tracker.system import LedgerSystem


LENDER = {"X-Selected-User-Name": "Parent User"}
JOHN = {"X-Selected-User-Name": "John Doe"}
STRANGER = {"X-Selected-User-Name": "Stranger"}


@pytest.fixture
def client():
    """Create a test client backed by an in-memory ledger"""
    test_system = LedgerSystem(storage=InMemoryStorage(), settings=LoanTrackerConfig(use_sqlite=False))

    original_system = dependencies.ledger_system
    dependencies.ledger_system = test_system

    yield TestClient(create_app())
    dependencies.ledger_system = original_system


def _person_id(client, name):
    people = client.get("/people").json()["people"]
    for person in people:
        if person["full_name"] == name:
            return person["person_id"]
    return client.post("/people", json={"full_name": name}).json()["person_id"]


def _create_entry(client, **overrides):
    body = {
        "entry_name": "Groceries",
        "transaction_type": "straight_expense",
        "amount_borrowed": "1000.00",
        "lender_person_id": _person_id(client, "Parent User"),
        "borrower_person_id": _person_id(client, "John Doe"),
    }
    body.update(overrides)
    return client.post("/entries", json=body, headers=LENDER)


class TestHealthEndpoints:
    """Test basic health endpoint"""

    def test_health(self, client):
        """Test health endpoint"""
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"


class TestDirectoryFlow:
    """People and group registration"""

    def test_create_person(self, client):
        """Test creating a person"""
        r = client.post("/people", json={"full_name": "Jane Roe"})
        assert r.status_code == 201
        assert r.json()["full_name"] == "Jane Roe"

    def test_blank_person_rejected(self, client):
        """Test a blank person name is rejected"""
        assert client.post("/people", json={"full_name": " "}).status_code == 400

    def test_create_group(self, client):
        """Test creating a group"""
        john = _person_id(client, "John Doe")
        r = client.post("/groups", json={"group_name": "Roommates", "member_ids": [john]})
        assert r.status_code == 201
        group_id = r.json()["group_id"]

        r = client.get(f"/groups/{group_id}")
        assert r.json()["member_ids"] == [john]
        assert client.get("/groups/missing").status_code == 404


class TestEntryFlow:
    """End-to-end entry management tests"""

    def test_create_and_get_entry(self, client):
        """Test creating and reading an entry"""
        r = _create_entry(client)
        assert r.status_code == 201
        data = r.json()
        assert data["reference_id"] == "JDPU"
        assert data["amount_remaining"] == "1000.00"
        assert data["status"] == "unpaid"
        assert data["borrower_person_name"] == "John Doe"

        # Reads by id are open to anyone
        r = client.get(f"/entries/{data['entry_id']}", headers=STRANGER)
        assert r.status_code == 200

    def test_validation_error_is_400(self, client):
        """Test validation errors map to 400"""
        r = _create_entry(client, payment_method="ewallet")
        assert r.status_code == 400
        assert "CASH" in r.json()["detail"]

    def test_bad_amount_is_400(self, client):
        """Test an unparseable amount maps to 400"""
        assert _create_entry(client, amount_borrowed="lots").status_code == 400

    def test_listing_is_scoped(self, client):
        """Test entry listing is scoped to the actor"""
        _create_entry(client)
        assert len(client.get("/entries", headers=LENDER).json()["entries"]) == 1
        assert len(client.get("/entries", headers=JOHN).json()["entries"]) == 1
        assert client.get("/entries", headers=STRANGER).json()["entries"] == []

    def test_update_and_delete(self, client):
        """Test updating and deleting an entry"""
        entry_id = _create_entry(client).json()["entry_id"]

        r = client.put(f"/entries/{entry_id}", json={"entry_name": "Weekly groceries"}, headers=JOHN)
        assert r.status_code == 200
        assert r.json()["entry_name"] == "Weekly groceries"

        assert client.delete(f"/entries/{entry_id}", headers=STRANGER).status_code == 404
        assert client.delete(f"/entries/{entry_id}", headers=LENDER).status_code == 204
        assert client.get(f"/entries/{entry_id}").status_code == 404

    def test_complete_entry(self, client):
        """Test completing an entry"""
        entry_id = _create_entry(client).json()["entry_id"]
        r = client.post(f"/entries/{entry_id}/complete", headers=LENDER)
        assert r.status_code == 200
        assert r.json()["status"] == "paid"
        assert r.json()["amount_remaining"] == "0.00"

    def test_installment_entry_has_plan(self, client):
        """Test an installment entry comes with its plan"""
        r = _create_entry(
            client,
            transaction_type="installment_expense",
            installment_start_date="2099-01-01",
            payment_frequency="monthly",
            payment_frequency_day="15",
            payment_terms=4
        )
        assert r.status_code == 201
        plan = r.json()["installment_plan"]
        assert plan["amount_per_term"] == "250.00"
        assert [term["due_date"] for term in plan["terms"]] == [
            "2099-01-15", "2099-02-15", "2099-03-15", "2099-04-15"
        ]


class TestPaymentFlow:
    """End-to-end payment tests"""

    def test_overpayment(self, client):
        """Test recording an overpayment"""
        entry_id = _create_entry(client).json()["entry_id"]
        r = client.post("/payments", json={
            "entry_id": entry_id,
            "payee_person_id": _person_id(client, "John Doe"),
            "payment_amount": "1200.00",
            "payment_date": "2024-03-01"
        }, headers=JOHN)
        assert r.status_code == 201
        assert r.json()["change_amount"] == "200.00"
        assert r.json()["entry_reference_id"] == "JDPU"

        entry = client.get(f"/entries/{entry_id}").json()
        assert entry["status"] == "paid"
        assert entry["amount_remaining"] == "0.00"
        assert len(entry["payments"]) == 1

    def test_proof_round_trip(self, client):
        """Test uploading and downloading payment proof"""
        entry_id = _create_entry(client).json()["entry_id"]
        r = client.post("/payments", json={
            "entry_id": entry_id,
            "payee_person_id": _person_id(client, "John Doe"),
            "payment_amount": "100.00",
            "proof": {"data_base64": base64.b64encode(b"fake-png").decode(), "content_type": "image/png"}
        }, headers=JOHN)
        payment_id = r.json()["payment_id"]
        assert r.json()["has_proof"] is True

        r = client.get(f"/payments/{payment_id}/proof", headers=LENDER)
        assert r.status_code == 200
        assert r.content == b"fake-png"
        assert r.headers["content-type"] == "image/png"

        assert client.get(f"/payments/{payment_id}/proof", headers=STRANGER).status_code == 404

    def test_invalid_proof_is_400(self, client):
        """Test invalid proof data maps to 400"""
        entry_id = _create_entry(client).json()["entry_id"]
        r = client.post("/payments", json={
            "entry_id": entry_id,
            "payee_person_id": _person_id(client, "John Doe"),
            "payment_amount": "100.00",
            "proof": {"data_base64": "not base64!"}
        }, headers=JOHN)
        assert r.status_code == 400
        assert client.get("/payments", headers=JOHN).json()["payments"] == []

    def test_edit_and_delete_payment(self, client):
        """Test editing and deleting a payment"""
        entry_id = _create_entry(client).json()["entry_id"]
        payment_id = client.post("/payments", json={
            "entry_id": entry_id,
            "payee_person_id": _person_id(client, "John Doe"),
            "payment_amount": "400.00"
        }, headers=JOHN).json()["payment_id"]

        r = client.put(f"/payments/{payment_id}", json={"payment_amount": "500.00"}, headers=LENDER)
        assert r.status_code == 200
        assert client.get(f"/entries/{entry_id}").json()["amount_remaining"] == "500.00"

        assert client.delete(f"/payments/{payment_id}", headers=LENDER).status_code == 204
        assert client.get(f"/entries/{entry_id}").json()["amount_remaining"] == "1000.00"
        assert client.get(f"/payments/entry/{entry_id}").json()["payments"] == []

    def test_unknown_entry_is_404(self, client):
        """Test paying an unknown entry maps to 404"""
        r = client.post("/payments", json={
            "entry_id": "missing",
            "payee_person_id": _person_id(client, "John Doe"),
            "payment_amount": "10.00"
        })
        assert r.status_code == 404


class TestInstallmentFlow:
    """Term actions over HTTP"""

    def _terms(self, client, start="2099-01-01", amount="2000.00"):
        entry = _create_entry(
            client,
            amount_borrowed=amount,
            transaction_type="installment_expense",
            installment_start_date=start,
            payment_frequency="weekly",
            payment_terms=2
        ).json()
        return entry["entry_id"], entry["installment_plan"]["terms"]

    def test_skip_term(self, client):
        """Test skipping a term"""
        entry_id, terms = self._terms(client)
        term_id = terms[0]["term_id"]
        assert client.get(f"/installments/terms/{term_id}/skip-penalty").json()["penalty"] == "50.00"

        r = client.post(f"/installments/terms/{term_id}/skip", headers=JOHN)
        assert r.status_code == 200
        assert r.json()["term_status"] == "skipped"
        assert client.get(f"/entries/{entry_id}").json()["amount_remaining"] == "2050.00"

    def test_status_update(self, client):
        """Test updating a term status"""
        _, terms = self._terms(client)
        term_id = terms[1]["term_id"]
        r = client.put(f"/installments/terms/{term_id}/status", json={"status": "DELINQUENT"}, headers=LENDER)
        assert r.json()["term_status"] == "delinquent"
        assert client.get(f"/installments/terms/{term_id}/delinquent-late-fee").json()["late_fee"] == "50.00"

        r = client.put(f"/installments/terms/{term_id}/status", json={"status": "late"}, headers=LENDER)
        assert r.status_code == 400

    def test_update_delinquent(self, client):
        """Test the delinquency sweep endpoint"""
        entry_id, _ = self._terms(client, start="2020-01-01")
        r = client.post("/installments/update-delinquent", headers=LENDER)
        assert r.json()["terms_marked_delinquent"] == 2
        assert client.get(f"/entries/{entry_id}").json()["amount_remaining"] == "2100.00"

    def test_unknown_term_is_404(self, client):
        """Test an unknown term maps to 404"""
        assert client.post("/installments/terms/missing/skip", headers=LENDER).status_code == 404


class TestAllocationFlow:
    """Group split tests"""

    def test_allocations(self, client):
        """Test the allocation endpoints"""
        john = _person_id(client, "John Doe")
        jane = _person_id(client, "Jane Roe")
        group_id = client.post("/groups", json={"group_name": "Roommates", "member_ids": [john, jane]}).json()["group_id"]
        entry_id = _create_entry(
            client, transaction_type="group_expense", borrower_person_id=None, borrower_group_id=group_id
        ).json()["entry_id"]

        r = client.post("/allocations", json={
            "entry_id": entry_id,
            "allocations": [
                {"person_id": john, "amount": "300.00"},
                {"person_id": jane, "amount": "700.00"}
            ]
        }, headers=LENDER)
        assert r.status_code == 201
        john_allocation = r.json()["allocations"][0]
        assert john_allocation["percentage_of_total"] == "30.0000"
        assert john_allocation["payment_allocation_status"] == "unpaid"

        client.post("/payments", json={
            "entry_id": entry_id, "payee_person_id": john, "payment_amount": "150.00",
            "allocation_id": john_allocation["allocation_id"]
        }, headers=JOHN)
        r = client.get(f"/allocations/{john_allocation['allocation_id']}", headers=JOHN)
        assert r.json()["payment_allocation_status"] == "partially_paid"

        assert len(client.get(f"/allocations/entry/{entry_id}").json()["allocations"]) == 2
        assert client.get("/allocations", headers=STRANGER).json()["allocations"] == []

        r = client.put(f"/allocations/{john_allocation['allocation_id']}", json={"amount": "150.00"})
        assert r.json()["payment_allocation_status"] == "paid"

        assert client.delete(f"/allocations/{john_allocation['allocation_id']}").status_code == 204
        assert len(client.get(f"/allocations/entry/{entry_id}").json()["allocations"]) == 1

    def test_mismatched_payee_is_400(self, client):
        """Test a payee mismatching the allocation maps to 400"""
        john = _person_id(client, "John Doe")
        jane = _person_id(client, "Jane Roe")
        group_id = client.post("/groups", json={"group_name": "Trip", "member_ids": [john, jane]}).json()["group_id"]
        entry_id = _create_entry(
            client, transaction_type="group_expense", borrower_person_id=None, borrower_group_id=group_id
        ).json()["entry_id"]
        allocation_id = client.post("/allocations", json={
            "entry_id": entry_id, "allocations": [{"person_id": john, "amount": "1000.00"}]
        }).json()["allocations"][0]["allocation_id"]

        r = client.post("/payments", json={
            "entry_id": entry_id, "payee_person_id": jane, "payment_amount": "100.00",
            "allocation_id": allocation_id
        })
        assert r.status_code == 400
