# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

SECURITY TESTS: Prove that cross-shop access is denied for core resources.

These tests create two shops with their own owners, then verify that:
1. Owner A cannot read or write shop B's records (404, same as missing)
2. Lists only ever return the caller's own rows
3. Cross-shop references inside a payload are rejected
4. Security events are logged for cross-tenant access attempts
"""

import pytest

from gemledger.models import Customer, SecurityEvent
from gemledger.services.customer_service import get_customer
from gemledger.services.tenant_service import TenantAccessError, require_in_shop, scoped_query


def create(client, headers, path, body):
    resp = client.post(path, json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


class TestTenantServiceHelpers:
    """Test tenant_service helper functions."""

    def test_require_in_shop_same_message(self, client, headers_a, headers_b, shop_a, shop_b):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Foreign Customer"})

        with pytest.raises(TenantAccessError) as foreign:
            require_in_shop(Customer, customer["id"], shop_a.id, label="Customer")
        with pytest.raises(TenantAccessError) as missing:
            require_in_shop(Customer, 987654, shop_a.id, label="Customer")

        assert str(foreign.value) == str(missing.value) == "Customer not found"

    def test_scoped_query(self, client, headers_a, headers_b, shop_a):
        create(client, headers_a, "/api/customers", {"full_name": "Mine"})
        create(client, headers_b, "/api/customers", {"full_name": "Theirs"})
        names = [c.full_name for c in scoped_query(Customer, shop_a.id).all()]
        assert names == ["Mine"]

    def test_cross_tenant_attempt_logged(self, client, headers_b, shop_a, db_session):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Foreign Customer"})
        with pytest.raises(TenantAccessError):
            get_customer(shop_id=shop_a.id, customer_id=customer["id"])

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.shop_id == shop_a.id
        assert event.success is False


class TestCrossShopReads:
    """GET on another shop's record answers 404."""

    @pytest.mark.parametrize("path,body,get_path", [
        ("/api/customers", {"full_name": "Hidden Buyer"}, "/api/customers/{id}"),
        ("/api/suppliers", {"company_name": "Hidden Supplier"}, "/api/suppliers/{id}"),
        ("/api/inventory/items", {"item_name": "Hidden Ring"}, "/api/inventory/items/{id}"),
        ("/api/workshops", {"workshop_name": "Hidden Workshop"}, "/api/workshops/{id}"),
    ])
    def test_read_denied(self, client, headers_a, headers_b, path, body, get_path):
        record = create(client, headers_b, path, body)
        resp = client.get(get_path.format(id=record["id"]), headers=headers_a)
        assert resp.status_code == 404

    def test_sale_read_denied(self, client, headers_a, headers_b):
        sale = create(client, headers_b, "/api/sales", {})["sale"]
        assert client.get(f"/api/sales/{sale['id']}", headers=headers_a).status_code == 404

    def test_customer_ledger_denied(self, client, headers_a, headers_b):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Ledger Owner"})
        resp = client.get(f"/api/customers/{customer['id']}/ledger", headers=headers_a)
        assert resp.status_code == 404


class TestCrossShopWrites:
    """Writes against another shop's records are rejected."""

    def test_patch_customer(self, client, headers_a, headers_b):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Target"})
        resp = client.patch(f"/api/customers/{customer['id']}", json={"notes": "pwned"}, headers=headers_a)
        assert resp.status_code == 404

    def test_charge_customer(self, client, headers_a, headers_b):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Target"})
        resp = client.post(f"/api/customers/{customer['id']}/charges", json={"amount": "10"}, headers=headers_a)
        assert resp.status_code == 404

    def test_change_item_status(self, client, headers_a, headers_b):
        item = create(client, headers_b, "/api/inventory/items", {"item_name": "Their Ring"})
        resp = client.post(f"/api/inventory/items/{item['id']}/status", json={"status": "damaged"}, headers=headers_a)
        assert resp.status_code == 404

    def test_put_foreign_item_on_sale(self, client, headers_a, headers_b):
        item = create(client, headers_b, "/api/inventory/items", {"item_name": "Their Ring", "sale_price": "10"})
        sale = create(client, headers_a, "/api/sales", {})["sale"]
        resp = client.post(f"/api/sales/{sale['id']}/items", json={"inventory_item_id": item["id"]}, headers=headers_a)
        assert resp.status_code == 404

    def test_foreign_customer_on_sale(self, client, headers_a, headers_b):
        customer = create(client, headers_b, "/api/customers", {"full_name": "Their Buyer"})
        resp = client.post("/api/sales", json={"customer_id": customer["id"]}, headers=headers_a)
        assert resp.status_code == 404

    def test_foreign_supplier_on_item(self, client, headers_a, headers_b):
        supplier = create(client, headers_b, "/api/suppliers", {"company_name": "Their Supplier"})
        resp = client.post(
            "/api/inventory/items",
            json={"item_name": "Ring", "supplier_id": supplier["id"]},
            headers=headers_a,
        )
        assert resp.status_code == 404

    def test_bulk_status_ignores_foreign_ids(self, client, headers_a, headers_b):
        item = create(client, headers_b, "/api/inventory/items", {"item_name": "Their Ring"})
        resp = client.post(
            "/api/inventory/items/bulk-status",
            json={"item_ids": [item["id"]], "status": "damaged"},
            headers=headers_a,
        )
        assert resp.status_code == 400
        assert resp.json["details"]["failures"][0]["error"] == "Item not found"


class TestListsAreScoped:
    """List endpoints only return the caller's rows."""

    def test_customer_list(self, client, headers_a, headers_b):
        create(client, headers_a, "/api/customers", {"full_name": "Alpha Buyer"})
        create(client, headers_b, "/api/customers", {"full_name": "Beta Buyer"})

        items = client.get("/api/customers", headers=headers_a).json["items"]
        assert [c["full_name"] for c in items] == ["Alpha Buyer"]

    def test_inventory_list(self, client, headers_a, headers_b):
        create(client, headers_b, "/api/inventory/items", {"item_name": "Beta Ring"})
        assert client.get("/api/inventory/items", headers=headers_a).json["count"] == 0

    def test_activity_ledger(self, client, headers_a, headers_b, shop_a):
        create(client, headers_b, "/api/customers", {"full_name": "Beta Buyer"})
        events = client.get("/api/ledger", headers=headers_a).json["items"]
        assert events
        assert all(e["shop_id"] == shop_a.id for e in events)
