# Overview: Flask API routes for system health and locale diagnostics.

"""
System health and locale endpoints.

/health checks the database, the session table and the permission catalog.
/locale echoes what the request middleware detected for a given path so
frontends can mirror the same routing rules.
"""

import time

from flask import Blueprint, current_app, g, request

from ..extensions import db
from ..middleware import detect_locale, is_public_route, remove_locale_prefix, should_bypass
from ..models import Permission, SessionToken, Shop, User
from ..permissions import get_all_permission_codes
from ..time_utils import to_utc_z, utcnow


system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        shop_count = db.session.query(Shop).count()
        user_count = db.session.query(User).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"shops": shop_count, "users": user_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_session_service_health() -> dict:
    start_time = time.time()
    try:
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        expired_sessions = db.session.query(SessionToken).filter(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(False),
        ).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_sessions": active_sessions,
                "expired_pending_cleanup": expired_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Session service health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Session service error",
        }


def check_permission_catalog_health() -> dict:
    """Degraded when any catalog permission is missing from the database."""
    start_time = time.time()
    try:
        seeded = {code for (code,) in db.session.query(Permission.code).all()}
        missing = [code for code in get_all_permission_codes() if code not in seeded]
        elapsed_ms = (time.time() - start_time) * 1000
        status = "healthy" if not missing else "degraded"
        result = {
            "status": status,
            "latency_ms": round(elapsed_ms, 2),
            "details": {"permission_count": len(seeded), "missing_count": len(missing)},
        }
        if status == "degraded":
            result["warning"] = "Permission catalog incomplete (run: flask system init)"
        return result
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Permission catalog health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Auth service error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded (still operational)
    - 503: one or more checks unhealthy
    """
    start_time = time.time()

    checks = {
        "database": check_database_health(),
        "session_service": check_session_service_health(),
        "auth_service": check_permission_catalog_health(),
    }
    statuses = [c["status"] for c in checks.values()]

    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, http_status


@system_bp.get("/locale")
def locale_info():
    """
    Resolve the locale for an arbitrary page path.

    Query params:
    - path: page path to evaluate (default "/")
    """
    config = current_app.config
    locales = config["SUPPORTED_LOCALES"]
    path = request.args.get("path") or "/"

    locale, source = detect_locale(
        path,
        request.headers.get("Accept-Language"),
        request.cookies.get(config["LOCALE_COOKIE_NAME"]),
        locales,
        config["DEFAULT_LOCALE"],
        use_path=not should_bypass(path),
    )
    path_without_locale = remove_locale_prefix(path, locales)

    return {
        "path": path,
        "locale": locale,
        "source": source,
        "path_without_locale": path_without_locale,
        "is_public": is_public_route(path_without_locale),
        "request_locale": getattr(g, "locale", None),
        "supported_locales": list(locales),
        "default_locale": config["DEFAULT_LOCALE"],
    }, 200
