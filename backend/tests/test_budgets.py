# Overview: Pytest coverage for budget categories, allocations, transfers and reporting.

"""
Budget Tests

Verifies:
- remaining = allocated + rollover - used after every movement
- Overlapping allocations of one category are rejected (cancelled ones don't count)
- Adjustments, transfers and status changes
- Approved expenses consume the allocation covering their date
- Summary and budget-vs-actual reporting
"""

import pytest


MARCH = {"period_start": "2024-03-01", "period_end": "2024-03-31"}


def create_budget_category(client, headers, name="Rent", **fields):
    resp = client.post("/api/budgets/categories", json={"name": name, **fields}, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["id"]


def allocate(client, headers, category_id, amount="1000", **fields):
    body = {"budget_category_id": category_id, "allocated_amount": amount, **MARCH, **fields}
    return client.post("/api/budgets/allocations", json=body, headers=headers)


class TestBudgetCategories:
    """Budget categories."""

    def test_create(self, client, headers_a):
        resp = client.post(
            "/api/budgets/categories",
            json={"name": "Marketing", "budget_type": "marketing", "default_amount": "250"},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["budget_type"] == "marketing"
        assert resp.json["default_amount"] == "250.0000"

    def test_duplicate(self, client, headers_a):
        create_budget_category(client, headers_a)
        assert client.post("/api/budgets/categories", json={"name": "rent"}, headers=headers_a).status_code == 409

    def test_bad_budget_type(self, client, headers_a):
        resp = client.post("/api/budgets/categories", json={"name": "Misc", "budget_type": "fun"}, headers=headers_a)
        assert resp.status_code == 400

    def test_foreign_expense_category(self, client, headers_a, headers_b):
        foreign = client.post("/api/expenses/categories", json={"name": "Rent"}, headers=headers_b).json["id"]
        resp = client.post(
            "/api/budgets/categories",
            json={"name": "Rent", "expense_category_id": foreign},
            headers=headers_a,
        )
        assert resp.status_code == 404


class TestAllocations:
    """Creating and changing allocations."""

    def test_allocate_with_rollover(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        resp = allocate(client, headers_a, category_id, rollover_amount="200")
        assert resp.status_code == 201
        allocation = resp.json
        assert allocation["remaining_amount"] == "1200.0000"
        assert allocation["status"] == "active"

        detail = client.get(f"/api/budgets/allocations/{allocation['id']}", headers=headers_a).json
        assert [t["transaction_type"] for t in detail["transactions"]] == ["allocation", "rollover"]

    def test_overlap_rejected(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        first = allocate(client, headers_a, category_id).json

        resp = allocate(client, headers_a, category_id, period_start="2024-03-15", period_end="2024-04-15")
        assert resp.status_code == 400
        assert resp.json["error"] == "overlapping_allocation"
        assert resp.json["details"]["allocation_id"] == first["id"]

        assert allocate(client, headers_a, category_id, period_start="2024-04-01", period_end="2024-04-30").status_code == 201

    def test_cancelled_does_not_block(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        first = allocate(client, headers_a, category_id).json
        assert client.post(f"/api/budgets/allocations/{first['id']}/cancel", headers=headers_a).json["status"] == "cancelled"
        assert allocate(client, headers_a, category_id).status_code == 201

    @pytest.mark.parametrize("fields", [
        {"period_start": "2024-03-31", "period_end": "2024-03-01"},
        {"period_start": "March"},
        {"allocated_amount": "-1"},
    ])
    def test_invalid(self, client, headers_a, fields):
        category_id = create_budget_category(client, headers_a)
        assert allocate(client, headers_a, category_id, **fields).status_code == 400

    def test_adjust(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        allocation = allocate(client, headers_a, category_id).json
        url = f"/api/budgets/allocations/{allocation['id']}/adjust"

        resp = client.post(url, json={"amount": "500", "reason": "Holiday season"}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["allocated_amount"] == "1500.0000"
        assert resp.json["remaining_amount"] == "1500.0000"

        resp = client.post(url, json={"amount": "-2000", "reason": "Cut"}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["details"]["allocated_amount"] == "1500.0000"

        assert client.post(url, json={"amount": "0", "reason": "Nothing"}, headers=headers_a).status_code == 400
        assert client.post(url, json={"amount": "10"}, headers=headers_a).status_code == 400

    def test_close(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        allocation = allocate(client, headers_a, category_id).json
        url = f"/api/budgets/allocations/{allocation['id']}"

        assert client.post(f"{url}/close", headers=headers_a).json["status"] == "closed"
        assert client.post(f"{url}/close", headers=headers_a).status_code == 400
        assert client.post(f"{url}/adjust", json={"amount": "10", "reason": "x"}, headers=headers_a).status_code == 400

    def test_status_filter(self, client, headers_a):
        category_id = create_budget_category(client, headers_a)
        allocation = allocate(client, headers_a, category_id).json
        client.post(f"/api/budgets/allocations/{allocation['id']}/close", headers=headers_a)

        assert client.get("/api/budgets/allocations?status=active", headers=headers_a).json["count"] == 0
        assert client.get("/api/budgets/allocations?status=closed", headers=headers_a).json["count"] == 1
        assert client.get("/api/budgets/allocations?status=open", headers=headers_a).status_code == 400


class TestTransfers:
    """POST /api/budgets/transfers"""

    def _pair(self, client, headers):
        rent = create_budget_category(client, headers, "Rent")
        ads = create_budget_category(client, headers, "Ads")
        source = allocate(client, headers, rent, amount="1000").json
        target = allocate(client, headers, ads, amount="100").json
        return source, target

    def test_transfer(self, client, headers_a):
        source, target = self._pair(client, headers_a)
        resp = client.post(
            "/api/budgets/transfers",
            json={"from_allocation_id": source["id"], "to_allocation_id": target["id"], "amount": "300", "reason": "Campaign"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert resp.json["from"]["remaining_amount"] == "700.0000"
        assert resp.json["to"]["remaining_amount"] == "400.0000"

        detail = client.get(f"/api/budgets/allocations/{target['id']}", headers=headers_a).json
        assert detail["transactions"][-1]["transaction_type"] == "transfer_in"
        assert "Campaign" in detail["transactions"][-1]["description"]

    def test_insufficient(self, client, headers_a):
        source, target = self._pair(client, headers_a)
        resp = client.post(
            "/api/budgets/transfers",
            json={"from_allocation_id": target["id"], "to_allocation_id": source["id"], "amount": "101"},
            headers=headers_a,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["remaining_amount"] == "100.0000"

    def test_same_allocation(self, client, headers_a):
        source, _ = self._pair(client, headers_a)
        resp = client.post(
            "/api/budgets/transfers",
            json={"from_allocation_id": source["id"], "to_allocation_id": source["id"], "amount": "1"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_foreign_allocation(self, client, headers_a, headers_b):
        source, _ = self._pair(client, headers_a)
        foreign_category = create_budget_category(client, headers_b)
        foreign = allocate(client, headers_b, foreign_category).json
        resp = client.post(
            "/api/budgets/transfers",
            json={"from_allocation_id": source["id"], "to_allocation_id": foreign["id"], "amount": "1"},
            headers=headers_a,
        )
        assert resp.status_code == 404


class TestExpenseConsumption:
    """Approved expenses draw down the matching allocation."""

    def _setup(self, client, headers):
        expense_category = client.post("/api/expenses/categories", json={"name": "Rent"}, headers=headers).json["id"]
        budget_category = create_budget_category(client, headers, expense_category_id=expense_category)
        allocation = allocate(client, headers, budget_category).json
        return expense_category, allocation

    def _expense(self, client, headers, category_id, amount, expense_date="2024-03-05"):
        return client.post(
            "/api/expenses",
            json={"category_id": category_id, "description": "March rent", "amount": amount, "expense_date": expense_date},
            headers=headers,
        ).json

    def test_approval_consumes(self, client, headers_a):
        expense_category, allocation = self._setup(client, headers_a)
        url = f"/api/budgets/allocations/{allocation['id']}"

        pending = self._expense(client, headers_a, expense_category, "400")
        assert client.get(url, headers=headers_a).json["used_amount"] == "0.0000"

        client.post(f"/api/expenses/{pending['id']}/approve", headers=headers_a)
        detail = client.get(url, headers=headers_a).json
        assert detail["used_amount"] == "400.0000"
        assert detail["remaining_amount"] == "600.0000"
        assert detail["transactions"][-1]["expense_id"] == pending["id"]

    def test_deleting_approved_expense_refunds(self, client, headers_a):
        expense_category, allocation = self._setup(client, headers_a)
        url = f"/api/budgets/allocations/{allocation['id']}"
        expense = self._expense(client, headers_a, expense_category, "400")
        client.post(f"/api/expenses/{expense['id']}/approve", headers=headers_a)

        assert client.delete(f"/api/expenses/{expense['id']}", headers=headers_a).status_code == 200

        detail = client.get(url, headers=headers_a).json
        assert detail["used_amount"] == "0.0000"
        assert detail["remaining_amount"] == "1000.0000"
        refund = detail["transactions"][-1]
        assert refund["transaction_type"] == "refund"
        assert refund["amount"] == "400.0000"
        assert all(t["expense_id"] is None for t in detail["transactions"])

    def test_deleting_pending_expense_leaves_budget(self, client, headers_a):
        expense_category, allocation = self._setup(client, headers_a)
        expense = self._expense(client, headers_a, expense_category, "400")
        assert client.delete(f"/api/expenses/{expense['id']}", headers=headers_a).status_code == 200

        detail = client.get(f"/api/budgets/allocations/{allocation['id']}", headers=headers_a).json
        assert detail["used_amount"] == "0.0000"
        assert [t["transaction_type"] for t in detail["transactions"]] == ["allocation"]

    def test_outside_period_not_consumed(self, client, headers_a):
        expense_category, allocation = self._setup(client, headers_a)
        expense = self._expense(client, headers_a, expense_category, "400", expense_date="2024-04-02")
        client.post(f"/api/expenses/{expense['id']}/approve", headers=headers_a)
        detail = client.get(f"/api/budgets/allocations/{allocation['id']}", headers=headers_a).json
        assert detail["used_amount"] == "0.0000"

    def test_over_budget_reporting(self, client, headers_a):
        expense_category, allocation = self._setup(client, headers_a)
        expense = self._expense(client, headers_a, expense_category, "1500")
        client.post(f"/api/expenses/{expense['id']}/approve", headers=headers_a)

        detail = client.get(f"/api/budgets/allocations/{allocation['id']}", headers=headers_a).json
        assert detail["remaining_amount"] == "-500.0000"

        summary = client.get("/api/budgets/summary?period_start=2024-03-01&period_end=2024-03-31", headers=headers_a).json
        assert summary["total_allocated"] == "1000.0000"
        assert summary["total_used"] == "1500.0000"
        assert summary["overall_variance"] == "-500.0000"
        assert summary["utilization_pct"] == "150.00"
        assert summary["over_budget_count"] == 1
        assert summary["under_budget_count"] == 0

        rows = client.get("/api/budgets/vs-actual?period_start=2024-03-01&period_end=2024-03-31", headers=headers_a).json
        assert rows["count"] == 1
        row = rows["items"][0]
        assert row["category_name"] == "Rent"
        assert row["variance"] == "-500.0000"
        assert row["variance_pct"] == "-50.00"
        assert row["is_over_budget"] is True


class TestReporting:
    """Report parameters."""

    def test_period_required(self, client, headers_a):
        assert client.get("/api/budgets/summary", headers=headers_a).status_code == 400
        assert client.get(
            "/api/budgets/vs-actual?period_start=2024-03-31&period_end=2024-03-01",
            headers=headers_a,
        ).status_code == 400

    def test_empty_period(self, client, headers_a):
        summary = client.get("/api/budgets/summary?period_start=2024-01-01&period_end=2024-01-31", headers=headers_a).json
        assert summary["total_allocated"] == "0.0000"
        assert summary["utilization_pct"] == "0.00"
        assert summary["category_count"] == 0
