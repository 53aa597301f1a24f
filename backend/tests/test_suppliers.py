# Overview: Pytest coverage for suppliers and the supplier account ledger.

"""
Supplier Tests

Verifies:
- company_name unique per shop (case-insensitive), reusable across shops
- Signed opening balance posts one ledger entry
- Purchases raise the balance, payments lower it
- Cheque payments need a cheque number
"""

import pytest


def create_supplier(client, headers, **fields):
    body = {"company_name": "Istanbul Gold Refinery", **fields}
    resp = client.post("/api/suppliers", json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


class TestSupplierRecords:
    """CRUD on /api/suppliers"""

    def test_create(self, client, headers_a):
        supplier = create_supplier(client, headers_a, contact_person="Mert Kaya", payment_terms="Net 30")
        assert supplier["status"] == "active"
        assert supplier["current_balance"] == "0.0000"
        assert supplier["contact_person"] == "Mert Kaya"

    def test_duplicate_name_conflicts(self, client, headers_a):
        create_supplier(client, headers_a)
        resp = client.post("/api/suppliers", json={"company_name": "istanbul gold refinery"}, headers=headers_a)
        assert resp.status_code == 409

    def test_same_name_in_other_shop(self, client, headers_a, headers_b):
        create_supplier(client, headers_a)
        create_supplier(client, headers_b)

    def test_rename_onto_existing_conflicts(self, client, headers_a):
        create_supplier(client, headers_a)
        other = create_supplier(client, headers_a, company_name="Antwerp Diamonds")
        resp = client.patch(
            f"/api/suppliers/{other['id']}",
            json={"company_name": "Istanbul Gold Refinery"},
            headers=headers_a,
        )
        assert resp.status_code == 409

    @pytest.mark.parametrize("body", [
        {},
        {"company_name": "X"},
        {"company_name": "Valid Name", "status": "archived"},
        {"company_name": "Valid Name", "current_balance": "10"},
    ])
    def test_create_rejected(self, client, headers_a, body):
        assert client.post("/api/suppliers", json=body, headers=headers_a).status_code == 400

    def test_status_filter(self, client, headers_a):
        create_supplier(client, headers_a)
        dormant = create_supplier(client, headers_a, company_name="Old Findings Co")
        client.patch(f"/api/suppliers/{dormant['id']}", json={"status": "inactive"}, headers=headers_a)

        active = client.get("/api/suppliers?status=active", headers=headers_a).json
        assert [s["company_name"] for s in active["items"]] == ["Istanbul Gold Refinery"]
        assert client.get("/api/suppliers?status=bogus", headers=headers_a).status_code == 400

    def test_search_contact(self, client, headers_a):
        create_supplier(client, headers_a, contact_person="Mert Kaya")
        create_supplier(client, headers_a, company_name="Antwerp Diamonds")
        found = client.get("/api/suppliers?search=mert", headers=headers_a).json
        assert found["count"] == 1


class TestSupplierLedger:
    """Opening balance, purchases and payments."""

    def test_opening_balance(self, client, headers_a):
        supplier = create_supplier(client, headers_a, opening_balance="2500")
        assert supplier["current_balance"] == "2500.0000"

        ledger = client.get(f"/api/suppliers/{supplier['id']}/ledger", headers=headers_a).json
        assert ledger["count"] == 1
        assert ledger["items"][0]["transaction_type"] == "opening_balance"
        assert ledger["items"][0]["debit"] == "2500.0000"

    def test_negative_opening_balance(self, client, headers_a):
        supplier = create_supplier(client, headers_a, opening_balance="-300")
        assert supplier["current_balance"] == "-300.0000"
        entry = client.get(f"/api/suppliers/{supplier['id']}/ledger", headers=headers_a).json["items"][0]
        assert entry["credit"] == "300.0000"

    def test_zero_opening_balance_posts_nothing(self, client, headers_a):
        supplier = create_supplier(client, headers_a, opening_balance="0")
        assert client.get(f"/api/suppliers/{supplier['id']}/ledger", headers=headers_a).json["count"] == 0

    def test_purchase_then_payment(self, client, headers_a):
        supplier = create_supplier(client, headers_a)
        url = f"/api/suppliers/{supplier['id']}"

        purchase = client.post(f"{url}/purchases", json={"amount": "8000", "reference": "PO-17"}, headers=headers_a)
        assert purchase.status_code == 201
        assert purchase.json["balance_after"] == "8000.0000"
        assert purchase.json["reference"] == "PO-17"

        payment = client.post(f"{url}/payments", json={"amount": "3000"}, headers=headers_a)
        assert payment.status_code == 201
        assert payment.json["payment_type"] == "cash"
        assert payment.json["balance_after"] == "5000.0000"

        assert client.get(url, headers=headers_a).json["current_balance"] == "5000.0000"

    def test_prepayment_goes_negative(self, client, headers_a):
        supplier = create_supplier(client, headers_a)
        resp = client.post(
            f"/api/suppliers/{supplier['id']}/payments",
            json={"amount": "100", "payment_type": "bank_transfer"},
            headers=headers_a,
        )
        assert resp.json["balance_after"] == "-100.0000"

    def test_cheque_requires_number(self, client, headers_a):
        supplier = create_supplier(client, headers_a)
        url = f"/api/suppliers/{supplier['id']}/payments"

        resp = client.post(url, json={"amount": "100", "payment_type": "cheque"}, headers=headers_a)
        assert resp.status_code == 400

        resp = client.post(
            url,
            json={"amount": "100", "payment_type": "cheque", "cheque_number": " 004211 "},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["cheque_number"] == "004211"

    def test_unknown_payment_type(self, client, headers_a):
        supplier = create_supplier(client, headers_a)
        resp = client.post(
            f"/api/suppliers/{supplier['id']}/payments",
            json={"amount": "100", "payment_type": "barter"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_bad_purchase_amount(self, client, headers_a):
        supplier = create_supplier(client, headers_a)
        resp = client.post(f"/api/suppliers/{supplier['id']}/purchases", json={"amount": "0"}, headers=headers_a)
        assert resp.status_code == 400
