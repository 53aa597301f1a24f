# Overview: Pytest coverage for expenses, approvals, payments and recurring templates.

"""
Expense Tests

Verifies:
- Sequential EXP-###### numbers per shop
- Approval state machine (pending -> approved | rejected) and edit freeze
- Payments move payment_status and may not exceed the amount
- Summary excludes rejected expenses
- Recurring templates: month-end clamping, catch-up generation, end dates
"""

from datetime import date

import pytest

from gemledger.models import Expense, RecurringExpense
from gemledger.services import expense_service

from conftest import PASSWORD, auth_headers, get_auth_token, make_user


def create_category(client, headers, name="Rent"):
    resp = client.post("/api/expenses/categories", json={"name": name}, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["id"]


def create_expense(client, headers, category_id, **fields):
    body = {
        "category_id": category_id,
        "description": "Shop rent",
        "amount": "1500",
        "expense_date": "2024-03-01",
        **fields,
    }
    resp = client.post("/api/expenses", json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


@pytest.fixture
def category_id(client, headers_a):
    return create_category(client, headers_a)


class TestCategories:
    """Expense categories."""

    def test_duplicate_name(self, client, headers_a, category_id):
        resp = client.post("/api/expenses/categories", json={"name": "RENT"}, headers=headers_a)
        assert resp.status_code == 409

    def test_deactivated_category_blocks_new_expenses(self, client, headers_a, category_id):
        client.delete(f"/api/expenses/categories/{category_id}", headers=headers_a)

        listed = client.get("/api/expenses/categories", headers=headers_a).json
        assert listed["count"] == 0

        resp = client.post(
            "/api/expenses",
            json={"category_id": category_id, "description": "Rent", "amount": "10", "expense_date": "2024-03-01"},
            headers=headers_a,
        )
        assert resp.status_code == 400


class TestExpenses:
    """Expense records and numbering."""

    def test_create(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        assert expense["expense_number"] == "EXP-000001"
        assert expense["approval_status"] == "pending"
        assert expense["payment_status"] == "unpaid"
        assert expense["amount"] == "1500.0000"
        assert expense["paid_amount"] == "0.0000"

        second = create_expense(client, headers_a, category_id)
        assert second["expense_number"] == "EXP-000002"

    def test_numbers_are_per_shop(self, client, headers_a, headers_b, category_id):
        create_expense(client, headers_a, category_id)
        other_category = create_category(client, headers_b)
        assert create_expense(client, headers_b, other_category)["expense_number"] == "EXP-000001"

    @pytest.mark.parametrize("override", [
        {"amount": "0"},
        {"amount": "-10"},
        {"description": "ab"},
        {"expense_date": "2024-02-30"},
        {"approval_status": "approved"},
    ])
    def test_invalid(self, client, headers_a, category_id, override):
        body = {
            "category_id": category_id,
            "description": "Shop rent",
            "amount": "1500",
            "expense_date": "2024-03-01",
            **override,
        }
        assert client.post("/api/expenses", json=body, headers=headers_a).status_code == 400

    def test_foreign_category(self, client, headers_a, headers_b):
        foreign = create_category(client, headers_b)
        resp = client.post(
            "/api/expenses",
            json={"category_id": foreign, "description": "Rent", "amount": "10", "expense_date": "2024-03-01"},
            headers=headers_a,
        )
        assert resp.status_code == 404

    def test_filters(self, client, headers_a, category_id):
        create_expense(client, headers_a, category_id, amount="100", expense_date="2024-01-10")
        create_expense(client, headers_a, category_id, amount="900", expense_date="2024-02-10", vendor_name="City Power")

        by_date = client.get("/api/expenses?start_date=2024-02-01", headers=headers_a).json
        assert by_date["count"] == 1
        by_amount = client.get("/api/expenses?min_amount=50&max_amount=150", headers=headers_a).json
        assert [e["amount"] for e in by_amount["items"]] == ["100.0000"]
        by_vendor = client.get("/api/expenses?search=power", headers=headers_a).json
        assert by_vendor["count"] == 1

        assert client.get("/api/expenses?min_amount=200&max_amount=100", headers=headers_a).status_code == 400
        assert client.get("/api/expenses?start_date=2024-03-01&end_date=2024-01-01", headers=headers_a).status_code == 400
        assert client.get("/api/expenses?approval_status=maybe", headers=headers_a).status_code == 400


class TestApproval:
    """Approve and reject."""

    def test_approve_freezes(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        url = f"/api/expenses/{expense['id']}"

        resp = client.post(f"{url}/approve", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["approval_status"] == "approved"
        assert resp.json["approved_at"] is not None

        assert client.post(f"{url}/approve", headers=headers_a).status_code == 400
        assert client.post(f"{url}/reject", json={"reason": "late"}, headers=headers_a).status_code == 400
        assert client.patch(url, json={"amount": "10"}, headers=headers_a).status_code == 400

    def test_reject_requires_reason(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        url = f"/api/expenses/{expense['id']}"

        assert client.post(f"{url}/reject", json={}, headers=headers_a).status_code == 400

        resp = client.post(f"{url}/reject", json={"reason": " Duplicate invoice "}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["approval_status"] == "rejected"
        assert resp.json["rejection_reason"] == "Duplicate invoice"

    def test_rejected_cannot_be_paid(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        client.post(f"/api/expenses/{expense['id']}/reject", json={"reason": "No"}, headers=headers_a)
        resp = client.post(
            f"/api/expenses/{expense['id']}/payments",
            json={"amount": "10", "payment_type": "cash"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_salesperson_cannot_approve(self, client, headers_a, shop_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        make_user(shop_a, "clerk", role="salesperson")
        clerk = auth_headers(get_auth_token(client, "clerk", PASSWORD))
        resp = client.post(f"/api/expenses/{expense['id']}/approve", headers=clerk)
        assert resp.status_code == 403


class TestPayments:
    """Partial and full payment."""

    def test_partial_then_paid(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id, amount="100")
        url = f"/api/expenses/{expense['id']}/payments"

        resp = client.post(url, json={"amount": "60", "payment_type": "cash", "payment_date": "2024-03-02"}, headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["payment"]["payment_date"] == "2024-03-02"
        assert resp.json["expense"]["payment_status"] == "partial"

        over = client.post(url, json={"amount": "50", "payment_type": "cash"}, headers=headers_a)
        assert over.status_code == 400
        assert over.json["details"]["outstanding"] == "40.0000"

        resp = client.post(url, json={"amount": "40", "payment_type": "bank_transfer"}, headers=headers_a)
        assert resp.json["expense"]["payment_status"] == "paid"
        assert resp.json["expense"]["paid_amount"] == "100.0000"

        detail = client.get(f"/api/expenses/{expense['id']}", headers=headers_a).json
        assert len(detail["payments"]) == 2

    def test_cheque_number_required(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id)
        resp = client.post(
            f"/api/expenses/{expense['id']}/payments",
            json={"amount": "10", "payment_type": "cheque"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_cannot_lower_amount_below_paid(self, client, headers_a, category_id):
        expense = create_expense(client, headers_a, category_id, amount="100")
        client.post(f"/api/expenses/{expense['id']}/payments", json={"amount": "60", "payment_type": "cash"}, headers=headers_a)
        resp = client.patch(f"/api/expenses/{expense['id']}", json={"amount": "50"}, headers=headers_a)
        assert resp.status_code == 400

    def test_delete_rules(self, client, headers_a, category_id):
        paid = create_expense(client, headers_a, category_id, amount="10")
        client.post(f"/api/expenses/{paid['id']}/payments", json={"amount": "5", "payment_type": "cash"}, headers=headers_a)
        assert client.delete(f"/api/expenses/{paid['id']}", headers=headers_a).status_code == 400

        fresh = create_expense(client, headers_a, category_id)
        assert client.delete(f"/api/expenses/{fresh['id']}", headers=headers_a).status_code == 200
        assert client.get(f"/api/expenses/{fresh['id']}", headers=headers_a).status_code == 404


class TestSummary:
    """GET /api/expenses/summary"""

    def test_excludes_rejected(self, client, headers_a, category_id):
        utilities = create_category(client, headers_a, "Utilities")
        create_expense(client, headers_a, category_id, amount="1000")
        power = create_expense(client, headers_a, utilities, amount="200")
        rejected = create_expense(client, headers_a, utilities, amount="999")
        client.post(f"/api/expenses/{rejected['id']}/reject", json={"reason": "Duplicate"}, headers=headers_a)
        client.post(f"/api/expenses/{power['id']}/payments", json={"amount": "200", "payment_type": "cash"}, headers=headers_a)

        summary = client.get("/api/expenses/summary", headers=headers_a).json
        assert summary["total_amount"] == "1200.0000"
        assert summary["paid_amount"] == "200.0000"
        assert summary["unpaid_amount"] == "1000.0000"
        assert [b["category_name"] for b in summary["by_category"]] == ["Rent", "Utilities"]


class TestNextDue:
    """Due-date arithmetic."""

    @pytest.mark.parametrize("current,frequency,anchor,expected", [
        (date(2024, 1, 31), "daily", None, date(2024, 2, 1)),
        (date(2024, 1, 31), "weekly", None, date(2024, 2, 7)),
        (date(2024, 1, 31), "monthly", 31, date(2024, 2, 29)),
        (date(2023, 1, 31), "monthly", 31, date(2023, 2, 28)),
        (date(2024, 2, 29), "monthly", 31, date(2024, 3, 31)),
        (date(2024, 2, 29), "yearly", 29, date(2025, 2, 28)),
    ])
    def test_next_due_after(self, current, frequency, anchor, expected):
        assert expense_service.next_due_after(current, frequency, anchor) == expected


class TestRecurring:
    """Recurring templates over the API and the scheduled job."""

    def _create(self, client, headers, category_id, **fields):
        body = {
            "category_id": category_id,
            "description": "Monthly rent",
            "amount": "2000",
            "frequency": "monthly",
            "day_of_month": 31,
            "start_date": "2024-01-31",
            **fields,
        }
        resp = client.post("/api/expenses/recurring", json=body, headers=headers)
        assert resp.status_code == 201, resp.json
        return resp.json

    def test_create(self, client, headers_a, category_id):
        recurring = self._create(client, headers_a, category_id)
        assert recurring["status"] == "active"
        assert recurring["next_due_date"] == "2024-01-31"

    @pytest.mark.parametrize("override", [
        {"day_of_month": None},
        {"frequency": "weekly"},
        {"frequency": "hourly"},
        {"end_date": "2023-12-31"},
        {"day_of_month": 32},
    ])
    def test_invalid(self, client, headers_a, category_id, override):
        body = {
            "category_id": category_id,
            "description": "Monthly rent",
            "amount": "2000",
            "frequency": "monthly",
            "day_of_month": 31,
            "start_date": "2024-01-31",
            **override,
        }
        assert client.post("/api/expenses/recurring", json=body, headers=headers_a).status_code == 400

    def test_generate_advances_with_clamp(self, client, headers_a, category_id):
        recurring = self._create(client, headers_a, category_id)
        url = f"/api/expenses/recurring/{recurring['id']}"

        first = client.post(f"{url}/generate", json={}, headers=headers_a)
        assert first.status_code == 201
        assert first.json["expense_date"] == "2024-01-31"
        assert first.json["recurring_expense_id"] == recurring["id"]
        assert client.get(url, headers=headers_a).json["next_due_date"] == "2024-02-29"

        second = client.post(f"{url}/generate", json={}, headers=headers_a)
        assert second.json["expense_date"] == "2024-02-29"
        assert client.get(url, headers=headers_a).json["next_due_date"] == "2024-03-31"

    def test_auto_approve(self, client, headers_a, category_id):
        recurring = self._create(client, headers_a, category_id, auto_approve=True)
        expense = client.post(f"/api/expenses/recurring/{recurring['id']}/generate", json={}, headers=headers_a).json
        assert expense["approval_status"] == "approved"

    def test_pause_resume_cancel(self, client, headers_a, category_id):
        recurring = self._create(client, headers_a, category_id)
        url = f"/api/expenses/recurring/{recurring['id']}"

        assert client.post(f"{url}/resume", headers=headers_a).status_code == 400
        assert client.post(f"{url}/pause", headers=headers_a).json["status"] == "paused"
        assert client.post(f"{url}/generate", json={}, headers=headers_a).status_code == 400

        resumed = client.post(f"{url}/resume", headers=headers_a).json
        assert resumed["status"] == "active"
        assert resumed["next_due_date"] > "2024-01-31"

        assert client.post(f"{url}/cancel", headers=headers_a).json["status"] == "cancelled"
        assert client.post(f"{url}/cancel", headers=headers_a).status_code == 400
        assert client.patch(url, json={"amount": "1"}, headers=headers_a).status_code == 400

    def test_resume_rolls_forward_from_today(self, client, headers_a, shop_a, category_id):
        recurring = self._create(client, headers_a, category_id, day_of_month=15, start_date="2024-01-15")
        expense_service.pause_recurring(shop_id=shop_a.id, recurring_id=recurring["id"])
        resumed = expense_service.resume_recurring(
            shop_id=shop_a.id,
            recurring_id=recurring["id"],
            today=date(2030, 1, 1),
        )
        assert resumed.next_due_date == date(2030, 2, 15)

    def test_generate_due_catches_up(self, client, headers_a, shop_a, category_id, db_session):
        recurring = self._create(client, headers_a, category_id)

        generated = expense_service.generate_due_recurring(shop_id=shop_a.id, as_of=date(2024, 3, 31))
        assert [e.expense_date for e in generated] == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 31)]
        assert db_session.get(RecurringExpense, recurring["id"]).next_due_date == date(2024, 4, 30)

        assert expense_service.generate_due_recurring(shop_id=shop_a.id, as_of=date(2024, 3, 31)) == []

    def test_generate_due_skips_broken_template(self, client, headers_a, shop_a, category_id, db_session):
        blocked = self._create(client, headers_a, category_id)
        utilities = create_category(client, headers_a, "Utilities")
        working = self._create(client, headers_a, utilities, description="Electricity")
        client.delete(f"/api/expenses/categories/{category_id}", headers=headers_a)

        generated = expense_service.generate_due_recurring(shop_id=shop_a.id, as_of=date(2024, 1, 31))
        assert [e.recurring_expense_id for e in generated] == [working["id"]]

        skipped = db_session.get(RecurringExpense, blocked["id"])
        assert skipped.status == "active"
        assert skipped.next_due_date == date(2024, 1, 31)
        assert db_session.query(Expense).count() == 1

    def test_end_date_completes(self, client, headers_a, shop_a, category_id, db_session):
        recurring = self._create(
            client,
            headers_a,
            category_id,
            frequency="daily",
            day_of_month=None,
            start_date="2024-01-01",
            end_date="2024-01-03",
        )
        generated = expense_service.generate_due_recurring(shop_id=shop_a.id, as_of=date(2024, 1, 10))
        assert len(generated) == 3
        assert db_session.get(RecurringExpense, recurring["id"]).status == "completed"

    def test_delete_keeps_generated(self, client, headers_a, category_id, db_session):
        recurring = self._create(client, headers_a, category_id)
        expense = client.post(f"/api/expenses/recurring/{recurring['id']}/generate", json={}, headers=headers_a).json

        assert client.delete(f"/api/expenses/recurring/{recurring['id']}", headers=headers_a).status_code == 200
        kept = db_session.get(Expense, expense["id"])
        assert kept is not None
        assert kept.recurring_expense_id is None
