# Overview: Pytest coverage for the shop catalog and the metal price history.

"""
Catalog Tests

Verifies:
- Names unique per shop (purities per metal, sizes per category)
- Entries still used by inventory, purities or prices cannot be deleted
- Metal prices: one per metal/purity/date, latest lookup with as_of
"""

import pytest


def post(client, headers, path, body, status=201):
    resp = client.post(f"/api/catalog/{path}", json=body, headers=headers)
    assert resp.status_code == status, resp.json
    return resp.json


def gold_with_purity(client, headers):
    gold = post(client, headers, "metals", {"name": "Gold", "sort_order": 1})
    k18 = post(client, headers, "purities", {
        "metal_type_id": gold["id"], "name": "18K", "purity_percentage": "75", "fineness": 750,
    })
    return gold, k18


class TestMetalsAndPurities:
    """/api/catalog/metals and /api/catalog/purities"""

    def test_create_and_list(self, client, headers_a):
        gold, k18 = gold_with_purity(client, headers_a)
        post(client, headers_a, "metals", {"name": "Silver", "sort_order": 2})
        post(client, headers_a, "purities", {
            "metal_type_id": gold["id"], "name": "22K", "purity_percentage": "91.6", "fineness": 916,
        })

        metals = client.get("/api/catalog/metals", headers=headers_a).json
        assert [m["name"] for m in metals["items"]] == ["Gold", "Silver"]

        assert k18["purity_percentage"] == "75.00"
        purities = client.get(f"/api/catalog/purities?metal_type_id={gold['id']}", headers=headers_a).json
        assert [p["name"] for p in purities["items"]] == ["22K", "18K"]

    def test_names_unique_per_shop(self, client, headers_a, headers_b):
        gold, _ = gold_with_purity(client, headers_a)
        post(client, headers_a, "metals", {"name": "gold"}, status=409)
        post(client, headers_a, "purities", {
            "metal_type_id": gold["id"], "name": "18k", "purity_percentage": "75", "fineness": 750,
        }, status=409)
        post(client, headers_b, "metals", {"name": "Gold"})

    @pytest.mark.parametrize("body", [
        {"name": "24K", "purity_percentage": "101", "fineness": 999},
        {"name": "24K", "purity_percentage": "99.9", "fineness": 1001},
        {"name": "24K", "purity_percentage": "99.9", "fineness": "999.5"},
        {"name": "", "purity_percentage": "99.9", "fineness": 999},
    ])
    def test_invalid_purity(self, client, headers_a, body):
        gold = post(client, headers_a, "metals", {"name": "Gold"})
        post(client, headers_a, "purities", {"metal_type_id": gold["id"], **body}, status=400)

    def test_purity_needs_own_shop_metal(self, client, headers_a, headers_b):
        foreign = post(client, headers_b, "metals", {"name": "Gold"})
        post(client, headers_a, "purities", {
            "metal_type_id": foreign["id"], "name": "18K", "purity_percentage": "75", "fineness": 750,
        }, status=404)

    def test_delete_blocked_while_in_use(self, client, headers_a):
        gold, k18 = gold_with_purity(client, headers_a)
        item = client.post(
            "/api/inventory/items",
            json={"item_name": "Signet Ring", "metal_type": "Gold", "purity": "18K"},
            headers=headers_a,
        ).json

        resp = client.delete(f"/api/catalog/purities/{k18['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["details"] == {"in_use": 1}

        resp = client.delete(f"/api/catalog/metals/{gold['id']}", headers=headers_a)
        assert resp.status_code == 400

        rename = client.patch(f"/api/catalog/metals/{gold['id']}", json={"name": "Yellow Gold"}, headers=headers_a)
        assert rename.status_code == 400

        client.delete(f"/api/inventory/items/{item['id']}", headers=headers_a)
        assert client.delete(f"/api/catalog/purities/{k18['id']}", headers=headers_a).status_code == 200
        assert client.delete(f"/api/catalog/metals/{gold['id']}", headers=headers_a).status_code == 200
        assert client.get("/api/catalog/metals", headers=headers_a).json["count"] == 0

    def test_metal_with_purities_kept(self, client, headers_a):
        gold, _ = gold_with_purity(client, headers_a)
        resp = client.delete(f"/api/catalog/metals/{gold['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert "purity levels" in resp.json["error"]

    def test_update_purity(self, client, headers_a):
        _, k18 = gold_with_purity(client, headers_a)
        resp = client.patch(f"/api/catalog/purities/{k18['id']}", json={"sort_order": 5}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["sort_order"] == 5


class TestStonesAndSizes:
    """/api/catalog/stones and /api/catalog/sizes"""

    def test_stone_types(self, client, headers_a):
        ruby = post(client, headers_a, "stones", {"name": "Ruby", "category": "precious", "mohs_hardness": "9"})
        post(client, headers_a, "stones", {"name": "Amber", "category": "organic", "mohs_hardness": "2.5"})
        assert ruby["mohs_hardness"] == "9.0"

        precious = client.get("/api/catalog/stones?category=Precious", headers=headers_a).json
        assert [s["name"] for s in precious["items"]] == ["Ruby"]

        post(client, headers_a, "stones", {"name": "Jade", "mohs_hardness": "11"}, status=400)
        post(client, headers_a, "stones", {"name": "RUBY"}, status=409)

    def test_stone_in_use(self, client, headers_a):
        diamond = post(client, headers_a, "stones", {"name": "Diamond"})
        item = client.post("/api/inventory/items", json={"item_name": "Solitaire"}, headers=headers_a).json
        client.post(
            f"/api/inventory/items/{item['id']}/stones",
            json={"stone_type": "Diamond", "weight_carats": "1.02"},
            headers=headers_a,
        )

        resp = client.delete(f"/api/catalog/stones/{diamond['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert resp.json["details"] == {"in_use": 1}

    def test_sizes_per_category(self, client, headers_a):
        post(client, headers_a, "sizes", {"category": "Rings", "size_name": "7", "size_system": "US", "sort_order": 7})
        post(client, headers_a, "sizes", {"category": "Rings", "size_name": "6", "size_system": "US", "sort_order": 6})
        chain = post(client, headers_a, "sizes", {"category": "Chains", "size_name": "45cm"})
        post(client, headers_a, "sizes", {"category": "rings", "size_name": "7"}, status=409)

        rings = client.get("/api/catalog/sizes?category=rings", headers=headers_a).json
        assert [s["size_name"] for s in rings["items"]] == ["6", "7"]

        assert client.delete(f"/api/catalog/sizes/{chain['id']}", headers=headers_a).status_code == 200
        assert client.get("/api/catalog/sizes", headers=headers_a).json["count"] == 2


class TestMetalPrices:
    """/api/catalog/prices"""

    def test_record_and_latest(self, client, headers_a):
        gold, k18 = gold_with_purity(client, headers_a)
        post(client, headers_a, "prices", {"metal_type_id": gold["id"], "price_date": "2024-03-01", "price_per_gram": "64.10"})
        post(client, headers_a, "prices", {"metal_type_id": gold["id"], "price_date": "2024-03-04", "price_per_gram": "65.25", "source": "LBMA"})
        pure = post(client, headers_a, "prices", {
            "metal_type_id": gold["id"], "metal_purity_id": k18["id"],
            "price_date": "2024-03-04", "price_per_gram": "48.90", "sell_price_per_gram": "52",
        })
        assert pure["currency"] == "USD"
        assert pure["sell_price_per_gram"] == "52.0000"

        latest = client.get(f"/api/catalog/prices/latest?metal_type_id={gold['id']}", headers=headers_a).json
        assert latest["price_per_gram"] == "65.2500"
        assert latest["metal_purity_id"] is None

        earlier = client.get(
            f"/api/catalog/prices/latest?metal_type_id={gold['id']}&as_of=2024-03-02", headers=headers_a
        ).json
        assert earlier["price_date"] == "2024-03-01"

        by_purity = client.get(
            f"/api/catalog/prices/latest?metal_type_id={gold['id']}&metal_purity_id={k18['id']}", headers=headers_a
        ).json
        assert by_purity["price_per_gram"] == "48.9000"

        history = client.get(f"/api/catalog/prices?metal_type_id={gold['id']}&start_date=2024-03-02", headers=headers_a).json
        assert history["count"] == 2

    def test_one_price_per_day(self, client, headers_a):
        gold, k18 = gold_with_purity(client, headers_a)
        body = {"metal_type_id": gold["id"], "price_date": "2024-03-04", "price_per_gram": "65"}
        post(client, headers_a, "prices", body)
        post(client, headers_a, "prices", body, status=409)
        post(client, headers_a, "prices", {**body, "metal_purity_id": k18["id"]})

    def test_purity_must_match_metal(self, client, headers_a):
        _, k18 = gold_with_purity(client, headers_a)
        silver = post(client, headers_a, "metals", {"name": "Silver"})
        resp = client.post(
            "/api/catalog/prices",
            json={"metal_type_id": silver["id"], "metal_purity_id": k18["id"], "price_date": "2024-03-04", "price_per_gram": "0.8"},
            headers=headers_a,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "Metal purity does not belong to the metal type"

    @pytest.mark.parametrize("patch", [
        {"price_per_gram": "0"},
        {"price_per_gram": "-3"},
        {"buy_price_per_gram": "-1"},
        {"price_date": "2024-02-30"},
        {"currency": "GOLD"},
    ])
    def test_invalid_price(self, client, headers_a, patch):
        gold = post(client, headers_a, "metals", {"name": "Gold"})
        body = {"metal_type_id": gold["id"], "price_date": "2024-03-04", "price_per_gram": "65", **patch}
        post(client, headers_a, "prices", body, status=400)

    def test_no_price_yet(self, client, headers_a):
        gold = post(client, headers_a, "metals", {"name": "Gold"})
        resp = client.get(f"/api/catalog/prices/latest?metal_type_id={gold['id']}", headers=headers_a)
        assert resp.status_code == 400
        assert client.get("/api/catalog/prices/latest", headers=headers_a).status_code == 400

    def test_priced_metal_kept_until_prices_deleted(self, client, headers_a):
        gold = post(client, headers_a, "metals", {"name": "Gold"})
        price = post(client, headers_a, "prices", {"metal_type_id": gold["id"], "price_date": "2024-03-04", "price_per_gram": "65"})

        assert client.delete(f"/api/catalog/metals/{gold['id']}", headers=headers_a).status_code == 400
        assert client.delete(f"/api/catalog/prices/{price['id']}", headers=headers_a).status_code == 200
        assert client.delete(f"/api/catalog/metals/{gold['id']}", headers=headers_a).status_code == 200

    def test_prices_isolated(self, client, headers_a, headers_b):
        gold = post(client, headers_a, "metals", {"name": "Gold"})
        price = post(client, headers_a, "prices", {"metal_type_id": gold["id"], "price_date": "2024-03-04", "price_per_gram": "65"})
        assert client.get("/api/catalog/prices", headers=headers_b).json["count"] == 0
        assert client.delete(f"/api/catalog/prices/{price['id']}", headers=headers_b).status_code == 404
