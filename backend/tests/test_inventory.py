# Overview: Pytest coverage for inventory items, status lifecycle, stones and certifications.

"""
Inventory Tests

Covers:
- Item creation with generated SKU and shop currency
- Per-shop SKU uniqueness (409)
- Status transitions, single and bulk (all-or-nothing)
- Stones and certifications on an item
- Optimistic version checks on PATCH
"""

import re

import pytest

from gemledger.models import InventoryItem
from gemledger.services import inventory_service
from gemledger.services.inventory_service import InventoryError, can_transition
from gemledger.services.tenant_service import TenantAccessError
from gemledger.validation import ValidationError


def create_item(client, headers, **fields):
    body = {"item_name": "Gold Ring", "sale_price": "1200.00"}
    body.update(fields)
    resp = client.post("/api/inventory/items", json=body, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


class TestTransitionTable:
    """Status transition rules."""

    @pytest.mark.parametrize("current,new", [
        ("available", "reserved"),
        ("reserved", "sold"),
        ("sold", "returned"),
        ("workshop", "available"),
        ("damaged", "damaged"),
    ])
    def test_allowed(self, current, new):
        assert can_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        ("sold", "available"),
        ("reserved", "workshop"),
        ("transferred", "sold"),
    ])
    def test_denied(self, current, new):
        assert not can_transition(current, new)


class TestItemCrud:
    """Item create / read / update / delete."""

    def test_create_generates_sku(self, client, headers_a):
        item = create_item(client, headers_a, category="Rings")
        assert re.match(r"^ALP-RIN-\d{6}-[A-Z0-9]{4}$", item["sku"])
        assert item["status"] == "available"
        assert item["currency"] == "USD"
        assert item["sale_price"] == "1200.0000"
        assert item["stones"] == []

    def test_status_not_writable_on_create(self, client, headers_a):
        resp = client.post("/api/inventory/items", json={"item_name": "Chain", "status": "sold"}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["error"] == "Field not allowed: status"

    def test_duplicate_sku_conflict(self, client, headers_a):
        create_item(client, headers_a, sku="RING-1")
        resp = client.post("/api/inventory/items", json={"item_name": "Other", "sku": "RING-1"}, headers=headers_a)
        assert resp.status_code == 409

    def test_same_sku_in_other_shop(self, client, headers_a, headers_b):
        create_item(client, headers_a, sku="RING-1")
        create_item(client, headers_b, sku="RING-1")

    def test_weight_precision(self, client, headers_a):
        item = create_item(client, headers_a, weight_grams="4.5678")
        assert item["weight_grams"] == "4.568"

    def test_patch_rejects_status(self, client, headers_a):
        item = create_item(client, headers_a)
        resp = client.patch(f"/api/inventory/items/{item['id']}", json={"status": "sold"}, headers=headers_a)
        assert resp.status_code == 400

    def test_patch_stale_version(self, client, headers_a):
        item = create_item(client, headers_a)
        resp = client.patch(
            f"/api/inventory/items/{item['id']}",
            json={"item_name": "Rose Gold Ring", "version_id": item["version_id"]},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert resp.json["item_name"] == "Rose Gold Ring"

        stale = client.patch(
            f"/api/inventory/items/{item['id']}",
            json={"item_name": "Again", "version_id": item["version_id"]},
            headers=headers_a,
        )
        assert stale.status_code == 409

    def test_list_search(self, client, headers_a):
        create_item(client, headers_a, item_name="Emerald Pendant")
        create_item(client, headers_a, item_name="Gold Chain")
        resp = client.get("/api/inventory/items?search=emerald", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        assert resp.json["items"][0]["item_name"] == "Emerald Pendant"

    def test_delete_available(self, client, headers_a, db_session):
        item = create_item(client, headers_a)
        resp = client.delete(f"/api/inventory/items/{item['id']}", headers=headers_a)
        assert resp.status_code == 200
        assert db_session.get(InventoryItem, item["id"]) is None

    def test_delete_sold_rejected(self, client, headers_a):
        item = create_item(client, headers_a)
        client.post(f"/api/inventory/items/{item['id']}/status", json={"status": "sold"}, headers=headers_a)
        resp = client.delete(f"/api/inventory/items/{item['id']}", headers=headers_a)
        assert resp.status_code == 400

    def test_generate_sku_preview(self, client, headers_a):
        resp = client.post("/api/inventory/generate-sku", json={"category": "Necklaces"}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["sku"].startswith("ALP-NEC-")

    def test_generate_barcode_sequence(self, client, headers_a, headers_b):
        first = client.post("/api/inventory/generate-barcode", headers=headers_a).json["barcode"]
        second = client.post("/api/inventory/generate-barcode", headers=headers_a).json["barcode"]
        assert re.match(r"^ALPHAJ-\d+-0001$", first)
        assert second.endswith("-0002")

        other_shop = client.post("/api/inventory/generate-barcode", headers=headers_b).json["barcode"]
        assert re.match(r"^BETAGE-\d+-0001$", other_shop)


class TestStatusChanges:
    """Single and bulk status changes."""

    def test_single_transition(self, client, headers_a):
        item = create_item(client, headers_a)
        resp = client.post(
            f"/api/inventory/items/{item['id']}/status",
            json={"status": "workshop", "reason": "Resize"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert resp.json["status"] == "workshop"

    def test_invalid_transition(self, client, headers_a):
        item = create_item(client, headers_a)
        client.post(f"/api/inventory/items/{item['id']}/status", json={"status": "sold"}, headers=headers_a)
        resp = client.post(f"/api/inventory/items/{item['id']}/status", json={"status": "available"}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["details"]["from"] == "sold"

    def test_unknown_status(self, client, headers_a):
        item = create_item(client, headers_a)
        resp = client.post(f"/api/inventory/items/{item['id']}/status", json={"status": "lost"}, headers=headers_a)
        assert resp.status_code == 400

    def test_bulk_all_or_nothing(self, client, headers_a, db_session):
        first = create_item(client, headers_a)
        second = create_item(client, headers_a)
        client.post(f"/api/inventory/items/{second['id']}/status", json={"status": "sold"}, headers=headers_a)

        resp = client.post(
            "/api/inventory/items/bulk-status",
            json={"item_ids": [first["id"], second["id"], 999999], "status": "damaged"},
            headers=headers_a,
        )
        assert resp.status_code == 400
        failing = {f["item_id"] for f in resp.json["details"]["failures"]}
        assert failing == {second["id"], 999999}
        assert db_session.get(InventoryItem, first["id"]).status == "available"

    def test_bulk_success(self, client, headers_a):
        ids = [create_item(client, headers_a)["id"] for _ in range(3)]
        resp = client.post(
            "/api/inventory/items/bulk-status",
            json={"item_ids": ids, "status": "transferred"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert resp.json["count"] == 3
        assert {i["status"] for i in resp.json["items"]} == {"transferred"}

    def test_bulk_requires_int_list(self, client, headers_a):
        resp = client.post(
            "/api/inventory/items/bulk-status",
            json={"item_ids": ["1"], "status": "damaged"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_bulk_service_rejects_empty(self, shop_a):
        with pytest.raises(ValidationError):
            inventory_service.bulk_update_status(shop_id=shop_a.id, item_ids=[], new_status="damaged")


class TestStonesAndCertifications:
    """Stones and certifications attached to an item."""

    def test_add_update_remove_stone(self, client, headers_a):
        item = create_item(client, headers_a)
        base = f"/api/inventory/items/{item['id']}/stones"

        resp = client.post(base, json={"stone_type": "diamond", "weight_carats": "0.5", "clarity": "VS1"}, headers=headers_a)
        assert resp.status_code == 201
        stone = resp.json
        assert stone["weight_carats"] == "0.500"
        assert stone["stone_count"] == 1

        resp = client.patch(f"{base}/{stone['id']}", json={"stone_count": 3}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["stone_count"] == 3

        detail = client.get(f"/api/inventory/items/{item['id']}", headers=headers_a).json
        assert len(detail["stones"]) == 1

        assert client.delete(f"{base}/{stone['id']}", headers=headers_a).status_code == 200

    def test_stone_needs_positive_weight(self, client, headers_a):
        item = create_item(client, headers_a)
        resp = client.post(
            f"/api/inventory/items/{item['id']}/stones",
            json={"stone_type": "ruby", "weight_carats": "0"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_stone_on_other_item(self, client, headers_a):
        first = create_item(client, headers_a)
        second = create_item(client, headers_a)
        stone = client.post(
            f"/api/inventory/items/{first['id']}/stones",
            json={"stone_type": "sapphire", "weight_carats": "1.2"},
            headers=headers_a,
        ).json
        resp = client.patch(
            f"/api/inventory/items/{second['id']}/stones/{stone['id']}",
            json={"clarity": "IF"},
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_certification_rules(self, client, headers_a):
        item = create_item(client, headers_a)
        base = f"/api/inventory/items/{item['id']}/certifications"
        cert = {
            "certification_type": "diamond",
            "certificate_number": "GIA-123",
            "issuing_authority": "GIA",
        }

        resp = client.post(base, json={**cert, "appraised_value": "5000"}, headers=headers_a)
        assert resp.status_code == 400

        resp = client.post(
            base,
            json={**cert, "issue_date": "2024-06-01", "expiry_date": "2024-01-01"},
            headers=headers_a,
        )
        assert resp.status_code == 400

        resp = client.post(base, json={**cert, "appraised_value": "5000", "currency": "usd"}, headers=headers_a)
        assert resp.status_code == 201
        assert resp.json["currency"] == "USD"

    def test_stone_on_missing_item(self, shop_a):
        with pytest.raises(TenantAccessError):
            inventory_service.add_stone(shop_id=shop_a.id, item_id=424242, patch={"stone_type": "x"})

    def test_delete_referenced_by_sale(self, client, headers_a):
        item = create_item(client, headers_a)
        sale = client.post("/api/sales", json={}, headers=headers_a).json["sale"]
        client.post(f"/api/sales/{sale['id']}/items", json={"inventory_item_id": item["id"]}, headers=headers_a)
        client.post(f"/api/sales/{sale['id']}/void", json={}, headers=headers_a)

        resp = client.delete(f"/api/inventory/items/{item['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert "referenced by a sale" in resp.json["error"]


class TestInventoryErrorDetails:
    """InventoryError carries structured details."""

    def test_details_default(self):
        assert InventoryError("x").details == {}
