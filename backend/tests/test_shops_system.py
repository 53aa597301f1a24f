# Overview: Pytest coverage for shop settings, health checks and locale middleware.

"""
Shop and System Tests

Verifies:
- Shop settings read/update with catalog validation
- Health endpoint reports degraded until permissions are seeded
- Locale detection (path, Accept-Language, cookie, default)
- Content-Language and CORS response headers
"""

import pytest

from gemledger.middleware import (
    detect_locale,
    is_public_route,
    locale_from_accept_language,
    remove_locale_prefix,
    should_bypass,
)
from gemledger.models import Permission

LOCALES = ("en", "fr", "es", "nl", "ar")


class TestShopSettings:
    """GET/PATCH /api/shop/settings"""

    def test_current_shop(self, client, headers_a):
        resp = client.get("/api/shop", headers=headers_a)
        assert resp.status_code == 200
        assert resp.json["shop"]["name"] == "Alpha Jewels"
        assert resp.json["shop"]["code"] == "ALPHA"

    def test_defaults(self, client, headers_a):
        settings = client.get("/api/shop/settings", headers=headers_a).json["settings"]
        assert settings["currency"] == "USD"
        assert settings["timezone"] == "UTC"
        assert settings["language"] == "en"
        assert settings["tax_rate"] == "0.00"

    def test_partial_update(self, client, headers_a):
        resp = client.patch(
            "/api/shop/settings",
            json={"currency": "EUR", "timezone": "Europe/Paris", "language": "fr", "tax_rate": "7.5"},
            headers=headers_a,
        )
        assert resp.status_code == 200
        settings = resp.json["settings"]
        assert settings["currency"] == "EUR"
        assert settings["timezone"] == "Europe/Paris"
        assert settings["language"] == "fr"
        assert settings["tax_rate"] == "7.50"
        assert settings["name"] == "Alpha Jewels"

    @pytest.mark.parametrize("patch", [
        {"currency": "XXX"},
        {"timezone": "Mars/Olympus"},
        {"language": "de"},
        {"invoice_prefix": "WAY-TOO-LONG-PREFIX"},
        {"invoice_prefix": "bad prefix"},
        {"tax_rate": "150"},
        {"code": "NEW"},
        {},
    ])
    def test_invalid_update(self, client, headers_a, patch):
        resp = client.patch("/api/shop/settings", json=patch, headers=headers_a)
        assert resp.status_code == 400

    def test_settings_isolated(self, client, headers_a, headers_b):
        client.patch("/api/shop/settings", json={"currency": "GBP"}, headers=headers_a)
        settings = client.get("/api/shop/settings", headers=headers_b).json["settings"]
        assert settings["currency"] == "USD"

    def test_options(self, client, headers_a):
        options = client.get("/api/shop/options", headers=headers_a).json
        assert "EUR" in options["currencies"]
        assert "Asia/Dubai" in options["timezones"]
        assert options["languages"] == list(LOCALES)


class TestHealth:
    """GET /api/system/health"""

    def test_healthy(self, client, shop_a):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        body = resp.json
        assert body["status"] == "healthy"
        assert set(body["checks"]) == {"database", "session_service", "auth_service"}
        assert body["checks"]["database"]["details"]["shops"] == 1
        assert body["timestamp"].endswith("Z")

    def test_degraded_without_permissions(self, client, db_session):
        resp = client.get("/api/system/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "degraded"
        assert "warning" in resp.json["checks"]["auth_service"]

    def test_degraded_with_partial_catalog(self, client, db_session, setup_permissions):
        db_session.query(Permission).filter_by(code="VOID_SALE").delete()
        db_session.commit()

        check = client.get("/api/system/health").json["checks"]["auth_service"]
        assert check["status"] == "degraded"
        assert check["details"]["missing_count"] == 1


class TestLocaleHelpers:
    """Pure locale helpers."""

    def test_path_wins(self):
        assert detect_locale("/fr/about", "es", "nl", LOCALES, "en") == ("fr", "path")

    def test_exact_locale_path(self):
        assert detect_locale("/ar", None, None, LOCALES, "en") == ("ar", "path")

    def test_header_then_cookie_then_default(self):
        assert detect_locale("/about", "de-DE,nl;q=0.8", "es", LOCALES, "en") == ("nl", "header")
        assert detect_locale("/about", "de-DE", "es", LOCALES, "en") == ("es", "cookie")
        assert detect_locale("/about", None, "zz", LOCALES, "en") == ("en", "default")

    def test_path_skipped_when_bypassed(self):
        assert detect_locale("/fr/about", None, None, LOCALES, "en", use_path=False) == ("en", "default")

    def test_accept_language_prefix(self):
        assert locale_from_accept_language("FR-ca;q=0.9", LOCALES) == "fr"
        assert locale_from_accept_language("", LOCALES) is None

    def test_remove_prefix(self):
        assert remove_locale_prefix("/fr/about", LOCALES) == "/about"
        assert remove_locale_prefix("/fr", LOCALES) == "/"
        assert remove_locale_prefix("/french", LOCALES) == "/french"

    def test_public_routes(self):
        assert is_public_route("/")
        assert is_public_route("/pricing")
        assert is_public_route("/auth/callback/google")
        assert not is_public_route("/dashboard")
        assert not is_public_route("/about-us")

    def test_bypass(self):
        assert should_bypass("/api/sales")
        assert should_bypass("/favicon.ico")
        assert not should_bypass("/fr/about")


class TestLocaleEndpoint:
    """GET /api/system/locale"""

    def test_path_locale(self, client, db_session):
        resp = client.get("/api/system/locale?path=/fr/about")
        body = resp.json
        assert body["locale"] == "fr"
        assert body["source"] == "path"
        assert body["path_without_locale"] == "/about"
        assert body["is_public"] is True
        assert body["request_locale"] == "en"
        assert body["default_locale"] == "en"

    def test_header_locale(self, client, db_session):
        resp = client.get("/api/system/locale?path=/dashboard", headers={"Accept-Language": "es-ES,en;q=0.5"})
        body = resp.json
        assert body["locale"] == "es"
        assert body["source"] == "header"
        assert body["is_public"] is False
        assert body["request_locale"] == "es"


class TestResponseHeaders:
    """after_request hooks."""

    def test_content_language_on_api(self, client, db_session):
        resp = client.get("/api/system/health", headers={"Accept-Language": "nl"})
        assert resp.headers["Content-Language"] == "nl"
        assert "NEXT_LOCALE" not in resp.headers.get("Set-Cookie", "")

    def test_path_locale_sets_cookie(self, client, db_session):
        resp = client.get("/ar/about")
        assert resp.headers["Content-Language"] == "ar"
        assert "NEXT_LOCALE=ar" in resp.headers.get("Set-Cookie", "")

    def test_cors_allowed_origin(self, client, db_session):
        resp = client.get("/api/system/health", headers={"Origin": "http://localhost:3000"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:3000"
        assert resp.headers["Vary"] == "Origin"

    def test_cors_unknown_origin(self, client, db_session):
        resp = client.get("/api/system/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers
