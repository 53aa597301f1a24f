# Overview: Pytest coverage for payment reminders.

"""
Reminder Tests

Verifies:
- Reminders point at a supplier, workshop or customer of the same shop
- Snooze pushes the due date and counts, complete is final
- Notes are appended, never overwritten
- Upcoming and overdue windows
"""

from datetime import timedelta

import pytest

from gemledger.services import reminder_service
from gemledger.time_utils import utc_today


def supplier_id(client, headers, name="Antwerp Diamonds"):
    return client.post("/api/suppliers", json={"company_name": name}, headers=headers).json["id"]


def create_reminder(client, headers, entity_id, due_in_days=3, **fields):
    body = {
        "entity_type": "supplier",
        "entity_id": entity_id,
        "reminder_type": "payment_due",
        "due_date": (utc_today() + timedelta(days=due_in_days)).isoformat(),
        **fields,
    }
    return client.post("/api/reminders", json=body, headers=headers)


class TestCreate:
    """POST /api/reminders"""

    def test_create(self, client, headers_a):
        resp = create_reminder(client, headers_a, supplier_id(client, headers_a), amount="1250")
        assert resp.status_code == 201
        body = resp.json
        assert body["status"] == "pending"
        assert body["amount"] == "1250.0000"
        assert body["reminder_count"] == 0
        assert body["days_until_due"] == 3

    def test_customer_and_workshop_targets(self, client, headers_a):
        customer = client.post("/api/customers", json={"full_name": "Omar Saleh"}, headers=headers_a).json["id"]
        workshop = client.post("/api/workshops", json={"workshop_name": "Bench One"}, headers=headers_a).json["id"]
        assert create_reminder(client, headers_a, customer, entity_type="customer").status_code == 201
        assert create_reminder(client, headers_a, workshop, entity_type="workshop").status_code == 201

    @pytest.mark.parametrize("fields", [
        {"entity_type": "bank"},
        {"reminder_type": "nag"},
        {"amount": "0"},
        {"due_date": "soon"},
    ])
    def test_invalid(self, client, headers_a, fields):
        assert create_reminder(client, headers_a, supplier_id(client, headers_a), **fields).status_code == 400

    def test_missing_target(self, client, headers_a):
        assert create_reminder(client, headers_a, 999999).status_code == 404

    def test_foreign_target(self, client, headers_a, headers_b):
        foreign = supplier_id(client, headers_b)
        assert create_reminder(client, headers_a, foreign).status_code == 404


class TestLifecycle:
    """Snooze and complete."""

    def test_snooze(self, client, headers_a):
        reminder = create_reminder(client, headers_a, supplier_id(client, headers_a)).json
        url = f"/api/reminders/{reminder['id']}/snooze"

        resp = client.post(url, json={"days": 10, "reason": "Supplier travelling"}, headers=headers_a)
        assert resp.status_code == 200
        body = resp.json
        assert body["status"] == "snoozed"
        assert body["days_until_due"] == 13
        assert body["reminder_count"] == 1
        assert body["notes"].endswith("Snoozed 10 days: Supplier travelling")

        again = client.post(url, json={}, headers=headers_a).json
        assert again["days_until_due"] == 20
        assert again["reminder_count"] == 2
        assert len(again["notes"].splitlines()) == 2

    @pytest.mark.parametrize("days", [0, 366, "abc", 2.5])
    def test_snooze_bounds(self, client, headers_a, days):
        reminder = create_reminder(client, headers_a, supplier_id(client, headers_a)).json
        resp = client.post(f"/api/reminders/{reminder['id']}/snooze", json={"days": days}, headers=headers_a)
        assert resp.status_code == 400

    def test_complete_is_final(self, client, headers_a):
        reminder = create_reminder(client, headers_a, supplier_id(client, headers_a), notes="Call on Monday").json
        url = f"/api/reminders/{reminder['id']}"

        done = client.post(f"{url}/complete", json={"notes": "Paid by transfer"}, headers=headers_a).json
        assert done["status"] == "completed"
        lines = done["notes"].splitlines()
        assert lines[0] == "Call on Monday"
        assert lines[1].endswith("Completed: Paid by transfer")

        assert client.post(f"{url}/complete", json={}, headers=headers_a).status_code == 400
        assert client.post(f"{url}/snooze", json={"days": 1}, headers=headers_a).status_code == 400
        assert client.patch(url, json={"amount": "5"}, headers=headers_a).status_code == 400

    def test_update_and_delete(self, client, headers_a):
        reminder = create_reminder(client, headers_a, supplier_id(client, headers_a)).json
        url = f"/api/reminders/{reminder['id']}"

        resp = client.patch(url, json={"reminder_type": "follow_up", "version_id": 1}, headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["reminder_type"] == "follow_up"
        assert client.patch(url, json={"amount": "5", "version_id": 1}, headers=headers_a).status_code == 409

        assert client.delete(url, headers=headers_a).status_code == 200
        assert client.get(url, headers=headers_a).status_code == 404


class TestWindows:
    """Upcoming and overdue."""

    def test_upcoming(self, client, headers_a):
        target = supplier_id(client, headers_a)
        create_reminder(client, headers_a, target, due_in_days=2)
        create_reminder(client, headers_a, target, due_in_days=6)
        create_reminder(client, headers_a, target, due_in_days=30)
        create_reminder(client, headers_a, target, due_in_days=-1)

        default = client.get("/api/reminders/upcoming", headers=headers_a).json
        assert [r["days_until_due"] for r in default["items"]] == [2, 6]

        narrow = client.get("/api/reminders/upcoming?days=3", headers=headers_a).json
        assert narrow["count"] == 1

        capped = client.get("/api/reminders/upcoming?days=60&limit=1", headers=headers_a).json
        assert capped["count"] == 1

        assert client.get("/api/reminders/upcoming?days=91", headers=headers_a).status_code == 400

    def test_overdue(self, client, headers_a, shop_a):
        target = supplier_id(client, headers_a)
        late = create_reminder(client, headers_a, target, due_in_days=-4).json
        create_reminder(client, headers_a, target, due_in_days=1)
        finished = create_reminder(client, headers_a, target, due_in_days=-2).json
        client.post(f"/api/reminders/{finished['id']}/complete", json={}, headers=headers_a)

        body = client.get("/api/reminders/overdue", headers=headers_a).json
        assert [r["id"] for r in body["items"]] == [late["id"]]
        assert body["items"][0]["days_until_due"] == -4

        assert [r.id for r in reminder_service.overdue(shop_id=shop_a.id)] == [late["id"]]

    def test_list_filters(self, client, headers_a):
        target = supplier_id(client, headers_a)
        first = create_reminder(client, headers_a, target).json
        create_reminder(client, headers_a, target)
        client.post(f"/api/reminders/{first['id']}/snooze", json={}, headers=headers_a)

        assert client.get("/api/reminders?status=snoozed", headers=headers_a).json["count"] == 1
        assert client.get(f"/api/reminders?entity_type=supplier&entity_id={target}", headers=headers_a).json["count"] == 2
        assert client.get("/api/reminders?status=late", headers=headers_a).status_code == 400
