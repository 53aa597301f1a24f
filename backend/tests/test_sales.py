# Overview: Pytest coverage for POS sales: lines, discounts, payments, completion and voiding.

"""
Sales Tests

Walks sales through their lifecycle over the HTTP API and checks:
- Daily sale numbering per shop
- Item reservation on add / release on remove and void
- Totals with line discount, order discount and shop tax
- Customer account postings on completion and later payments
- Stale version_id on completion
"""

import re

import pytest

from gemledger.models import Customer, CustomerTransaction, InventoryItem
from gemledger.services import sales_service
from gemledger.services.sales_service import SaleError


def make_item(client, headers, price="1000.00"):
    resp = client.post("/api/inventory/items", json={"item_name": "Diamond Ring", "sale_price": price}, headers=headers)
    assert resp.status_code == 201
    return resp.json["id"]


def make_customer(client, headers, name="Layla Haddad"):
    resp = client.post("/api/customers", json={"full_name": name}, headers=headers)
    assert resp.status_code == 201
    return resp.json["id"]


def new_sale(client, headers, **body):
    resp = client.post("/api/sales", json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json["sale"]


def add_line(client, headers, sale_id, item_id, **extra):
    return client.post(f"/api/sales/{sale_id}/items", json={"inventory_item_id": item_id, **extra}, headers=headers)


class TestSaleNumbering:
    """Sale numbers restart daily per shop."""

    def test_sequential_numbers(self, client, headers_a, headers_b):
        first = new_sale(client, headers_a)
        second = new_sale(client, headers_a)
        other_shop = new_sale(client, headers_b)

        assert re.match(r"^INV-\d{8}-0001$", first["sale_number"])
        assert second["sale_number"].endswith("-0002")
        assert other_shop["sale_number"].endswith("-0001")
        assert first["status"] == "pending"
        assert first["payment_status"] == "unpaid"


class TestSaleLines:
    """Adding, updating and removing lines."""

    def test_add_reserves_item(self, client, headers_a, db_session):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)

        resp = add_line(client, headers_a, sale["id"], item_id)
        assert resp.status_code == 201
        assert resp.json["totals"]["total"] == "1000.0000"
        assert len(resp.json["sale"]["items"]) == 1
        assert db_session.get(InventoryItem, item_id).status == "reserved"

    def test_same_item_twice(self, client, headers_a):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], item_id)
        resp = add_line(client, headers_a, sale["id"], item_id)
        assert resp.status_code == 400

    def test_reserved_item_on_second_sale(self, client, headers_a):
        item_id = make_item(client, headers_a)
        add_line(client, headers_a, new_sale(client, headers_a)["id"], item_id)
        resp = add_line(client, headers_a, new_sale(client, headers_a)["id"], item_id)
        assert resp.status_code == 400
        assert resp.json["details"]["status"] == "reserved"

    def test_price_override(self, client, headers_a):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)
        resp = add_line(client, headers_a, sale["id"], item_id, unit_price="950.5")
        assert resp.json["sale"]["items"][0]["unit_price"] == "950.5000"

    def test_remove_releases_item(self, client, headers_a, db_session):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)
        line_id = add_line(client, headers_a, sale["id"], item_id).json["sale"]["items"][0]["id"]

        resp = client.delete(f"/api/sales/{sale['id']}/items/{line_id}", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["sale"]["items"] == []
        assert resp.json["totals"]["total"] == "0.0000"
        assert db_session.get(InventoryItem, item_id).status == "available"

    def test_update_and_clear_line_discount(self, client, headers_a):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)
        line_id = add_line(client, headers_a, sale["id"], item_id).json["sale"]["items"][0]["id"]
        url = f"/api/sales/{sale['id']}/items/{line_id}"

        resp = client.patch(url, json={"discount_type": "fixed", "discount_value": "150"}, headers=headers_a)
        assert resp.json["totals"]["total"] == "850.0000"

        resp = client.patch(url, json={"discount_type": None}, headers=headers_a)
        assert resp.json["totals"]["total"] == "1000.0000"


class TestTotals:
    """Line discount, order discount and tax together."""

    def test_discounts_and_tax(self, client, headers_a):
        resp = client.patch("/api/shop/settings", json={"tax_rate": "10"}, headers=headers_a)
        assert resp.status_code == 200

        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], item_id, discount_type="percentage", discount_value="10")

        resp = client.post(
            f"/api/sales/{sale['id']}/discount",
            json={"discount_type": "fixed", "discount_value": "100"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        totals = resp.json["totals"]
        assert totals["subtotal"] == "900.0000"
        assert totals["discount_amount"] == "100.0000"
        assert totals["tax_amount"] == "80.0000"
        assert totals["total"] == "880.0000"
        assert resp.json["sale"]["tax_rate"] == "10.00"

    def test_percentage_over_hundred_rejected(self, client, headers_a):
        sale = new_sale(client, headers_a)
        resp = client.post(
            f"/api/sales/{sale['id']}/discount",
            json={"discount_type": "percentage", "discount_value": "120"},
            headers=headers_a,
        )
        assert resp.status_code == 400


class TestPayments:
    """Tenders against a sale."""

    def test_partial_then_paid(self, client, headers_a):
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))
        url = f"/api/sales/{sale['id']}/payments"

        resp = client.post(url, json={"payment_type": "cash", "amount": "400"}, headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["sale"]["payment_status"] == "partial"
        assert resp.json["totals"]["remaining"] == "600.0000"

        resp = client.post(url, json={"payment_type": "card", "amount": "600"}, headers=headers_a)
        assert resp.json["sale"]["payment_status"] == "paid"
        assert len(resp.json["sale"]["payments"]) == 2

    def test_cheque_requires_number_and_date(self, client, headers_a):
        sale = new_sale(client, headers_a)
        url = f"/api/sales/{sale['id']}/payments"
        resp = client.post(url, json={"payment_type": "cheque", "amount": "10"}, headers=headers_a)
        assert resp.status_code == 400

        resp = client.post(
            url,
            json={"payment_type": "cheque", "amount": "10", "cheque_number": "000123", "cheque_date": "2024-07-01"},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.json["sale"]["payments"][0]["cheque_status"] == "pending"

    def test_refund_cannot_exceed_paid(self, client, headers_a):
        sale = new_sale(client, headers_a)
        url = f"/api/sales/{sale['id']}/payments"
        client.post(url, json={"payment_type": "cash", "amount": "50"}, headers=headers_a)
        resp = client.post(url, json={"payment_type": "refund", "amount": "80"}, headers=headers_a)
        assert resp.status_code == 400

    def test_unknown_payment_type(self, client, headers_a):
        sale = new_sale(client, headers_a)
        resp = client.post(f"/api/sales/{sale['id']}/payments", json={"payment_type": "crypto", "amount": "5"}, headers=headers_a)
        assert resp.status_code == 400


class TestCompletion:
    """Completing a sale."""

    def test_complete_posts_to_customer(self, client, headers_a, db_session):
        customer_id = make_customer(client, headers_a)
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a, customer_id=customer_id)
        add_line(client, headers_a, sale["id"], item_id)
        client.post(f"/api/sales/{sale['id']}/payments", json={"payment_type": "cash", "amount": "300"}, headers=headers_a)

        resp = client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["sale"]["status"] == "completed"
        assert resp.json["sale"]["completed_at"].endswith("Z")
        assert db_session.get(InventoryItem, item_id).status == "sold"

        customer = db_session.get(Customer, customer_id)
        assert customer.current_balance == 700
        assert customer.financial_status == "owes"
        assert customer.total_purchases == 1000

        types = [
            t.transaction_type
            for t in db_session.query(CustomerTransaction).filter_by(customer_id=customer_id).order_by(CustomerTransaction.id)
        ]
        assert types == ["sale", "payment"]

    def test_payment_after_completion_credits_customer(self, client, headers_a, db_session):
        customer_id = make_customer(client, headers_a)
        sale = new_sale(client, headers_a, customer_id=customer_id)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))
        client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)

        client.post(f"/api/sales/{sale['id']}/payments", json={"payment_type": "card", "amount": "1000"}, headers=headers_a)
        customer = db_session.get(Customer, customer_id)
        assert customer.current_balance == 0
        assert customer.financial_status == "paid"

    def test_walk_in_has_no_ledger(self, client, headers_a, db_session):
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))
        resp = client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        assert resp.status_code == 200
        assert db_session.query(CustomerTransaction).count() == 0

    def test_empty_sale(self, client, headers_a):
        sale = new_sale(client, headers_a)
        resp = client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        assert resp.status_code == 400

    def test_stale_version(self, client, headers_a):
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))

        resp = client.post(f"/api/sales/{sale['id']}/complete", json={"version_id": sale["version_id"]}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["error"] == "concurrent_modification"

        current = client.get(f"/api/sales/{sale['id']}", headers=headers_a).json["sale"]
        resp = client.post(f"/api/sales/{sale['id']}/complete", json={"version_id": current["version_id"]}, headers=headers_a)
        assert resp.status_code == 200

    def test_complete_twice(self, client, headers_a):
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))
        client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        resp = client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["details"]["status"] == "completed"


class TestVoid:
    """Voiding pending sales."""

    def test_void_releases_items(self, client, headers_a, db_session):
        item_id = make_item(client, headers_a)
        sale = new_sale(client, headers_a, notes="Gift wrap")
        add_line(client, headers_a, sale["id"], item_id)

        resp = client.post(f"/api/sales/{sale['id']}/void", json={"reason": "Customer left"}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["sale"]["status"] == "returned"
        assert resp.json["sale"]["notes"] == "Gift wrap\n[VOIDED] Customer left"
        assert db_session.get(InventoryItem, item_id).status == "available"

    def test_void_completed_rejected(self, client, headers_a):
        sale = new_sale(client, headers_a)
        add_line(client, headers_a, sale["id"], make_item(client, headers_a))
        client.post(f"/api/sales/{sale['id']}/complete", json={}, headers=headers_a)
        resp = client.post(f"/api/sales/{sale['id']}/void", json={}, headers=headers_a)
        assert resp.status_code == 400

    def test_no_payment_on_voided(self, shop_a, client, headers_a):
        sale = new_sale(client, headers_a)
        client.post(f"/api/sales/{sale['id']}/void", json={}, headers=headers_a)
        with pytest.raises(SaleError):
            sales_service.record_payment(shop_id=shop_a.id, sale_id=sale["id"], payment_type="cash", amount="5")


class TestListSales:
    """Listing with filters."""

    def test_filter_by_status(self, client, headers_a):
        pending = new_sale(client, headers_a)
        voided = new_sale(client, headers_a)
        client.post(f"/api/sales/{voided['id']}/void", json={}, headers=headers_a)

        resp = client.get("/api/sales?status=pending", headers=headers_a)
        assert resp.status_code == 200
        assert [s["id"] for s in resp.json["items"]] == [pending["id"]]

    def test_bad_status_filter(self, client, headers_a):
        resp = client.get("/api/sales?status=bogus", headers=headers_a)
        assert resp.status_code == 400
