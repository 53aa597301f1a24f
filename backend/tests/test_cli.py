# Overview: Pytest coverage for the Flask CLI command groups.

"""
CLI Tests

Runs the click commands through Flask's CLI runner against the test
database.
"""

from datetime import timedelta

import pytest

from gemledger.models import Shop, User
from gemledger.services import reminder_service
from gemledger.time_utils import utc_today


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


class TestSystemInit:
    """flask system init"""

    def test_bootstrap(self, runner, db_session):
        result = runner.invoke(args=["system", "init", "--shop", "Atelier Or", "--code", "ATELIER"])
        assert result.exit_code == 0
        assert "DONE GemLedger initialized for shop 'Atelier Or'" in result.output

        shop = db_session.query(Shop).filter_by(code="ATELIER").one()
        usernames = {u.username for u in db_session.query(User).filter_by(shop_id=shop.id)}
        assert usernames == {"owner", "manager", "salesperson", "accountant"}

    def test_idempotent(self, runner, db_session):
        runner.invoke(args=["system", "init"])
        result = runner.invoke(args=["system", "init"])
        assert "Using existing shop" in result.output
        assert "already exists in shop" in result.output
        assert db_session.query(User).count() == 4


class TestShopsAndPermissions:
    """shops and perms groups."""

    def test_create_and_list(self, runner, db_session, setup_permissions):
        result = runner.invoke(args=["shops", "create", "--name", "Gold Souk", "--code", "SOUK", "--currency", "AED"])
        assert "PASS Created shop: Gold Souk" in result.output

        listed = runner.invoke(args=["shops", "list"])
        assert "Gold Souk" in listed.output
        assert "AED" in listed.output

    def test_create_invalid_currency(self, runner, db_session, setup_permissions):
        result = runner.invoke(args=["shops", "create", "--name", "Gold Souk", "--currency", "ZZZ"])
        assert result.output.startswith("FAIL")

    def test_grant_and_check(self, runner, db_session):
        runner.invoke(args=["system", "init"])
        shop_id = db_session.query(Shop).one().id

        denied = runner.invoke(args=["perms", "check", "--shop-id", str(shop_id), "salesperson", "VOID_SALE"])
        assert "DOES NOT HAVE" in denied.output

        granted = runner.invoke(args=["perms", "grant", "--shop-id", str(shop_id), "salesperson", "VOID_SALE"])
        assert "PASS Granted" in granted.output

        allowed = runner.invoke(args=["perms", "check", "--shop-id", str(shop_id), "salesperson", "VOID_SALE"])
        assert "HAS permission" in allowed.output

        revoked = runner.invoke(args=["perms", "revoke", "--shop-id", str(shop_id), "salesperson", "VOID_SALE"])
        assert "PASS Revoked" in revoked.output

    def test_list_catalog(self, runner, db_session):
        full = runner.invoke(args=["perms", "list"])
        assert "CATEGORY SALES" in full.output
        assert "VOID_SALE" in full.output

        sales_only = runner.invoke(args=["perms", "list", "--category", "sales"])
        assert "VOID_SALE" in sales_only.output
        assert "CATEGORY BUDGETS" not in sales_only.output

    def test_list_role(self, runner, db_session):
        runner.invoke(args=["system", "init"])
        result = runner.invoke(args=["perms", "list", "--role", "salesperson", "--category", "budgets"])
        assert "Permissions for role salesperson" in result.output
        assert "Total: 0 permissions" in result.output

    def test_unknown_permission(self, runner, db_session):
        runner.invoke(args=["system", "init"])
        result = runner.invoke(args=["perms", "grant", "salesperson", "FLY"])
        assert "FAIL" in result.output


class TestScheduledJobs:
    """expenses, reminders and maintenance groups."""

    def test_generate_recurring(self, runner, client, headers_a):
        category = client.post("/api/expenses/categories", json={"name": "Rent"}, headers=headers_a).json["id"]
        client.post(
            "/api/expenses/recurring",
            json={
                "category_id": category,
                "description": "Weekly cleaning",
                "amount": "80",
                "frequency": "weekly",
                "day_of_week": 0,
                "start_date": "2024-01-01",
            },
            headers=headers_a,
        )

        result = runner.invoke(args=["expenses", "generate-recurring", "--as-of", "2024-01-15"])
        assert result.exit_code == 0
        assert "DONE Generated 3 expenses" in result.output

    def test_generate_recurring_bad_date(self, runner, db_session):
        result = runner.invoke(args=["expenses", "generate-recurring", "--as-of", "15/01/2024"])
        assert result.output.startswith("FAIL")

    def test_overdue_reminders(self, runner, client, headers_a, shop_a):
        supplier = client.post("/api/suppliers", json={"company_name": "Antwerp Diamonds"}, headers=headers_a).json["id"]
        client.post(
            "/api/reminders",
            json={
                "entity_type": "supplier",
                "entity_id": supplier,
                "reminder_type": "overdue",
                "due_date": (utc_today() - timedelta(days=5)).isoformat(),
            },
            headers=headers_a,
        )
        assert len(reminder_service.overdue(shop_id=shop_a.id)) == 1

        result = runner.invoke(args=["reminders", "overdue", "--shop-id", str(shop_a.id)])
        assert "(5 days overdue)" in result.output
        assert "DONE 1 overdue reminders" in result.output

    def test_no_overdue(self, runner, db_session):
        result = runner.invoke(args=["reminders", "overdue"])
        assert "No overdue reminders" in result.output

    def test_cleanup(self, runner, db_session):
        assert "DONE Deleted 0 expired sessions." in runner.invoke(args=["maintenance", "cleanup-sessions"]).output
        result = runner.invoke(args=["maintenance", "cleanup-security-events", "--retention-days", "30"])
        assert "older than 30 days" in result.output
