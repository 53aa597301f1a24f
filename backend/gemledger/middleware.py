# Overview: Per-request locale detection, public-route checks and CORS headers.

"""
Request middleware

Locale detection order:
1. Path prefix (/fr/..., or exactly /fr)
2. Accept-Language entries, first two letters of each, in order
3. NEXT_LOCALE cookie
4. DEFAULT_LOCALE

Bypassed paths (/api, /static, favicon, robots, sitemap, manifest) skip
path-prefix detection, but API handlers still get g.locale from the
header or cookie so they can localize messages.
"""

from flask import current_app, g, request


BYPASS_PREFIXES = (
    "/static",
    "/api",
    "/favicon.ico",
    "/robots.txt",
    "/sitemap.xml",
    "/manifest.json",
)

PUBLIC_ROUTES = (
    "/",
    "/about",
    "/pricing",
    "/contact",
    "/terms",
    "/privacy",
    "/features",
    "/login",
    "/signup",
    "/register",
    "/forgot-password",
    "/reset-password",
    "/verify-email",
    "/auth/callback",
    "/auth/confirm",
)


def should_bypass(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in BYPASS_PREFIXES)


def locale_from_path(path: str, locales) -> str | None:
    for locale in locales:
        if path == f"/{locale}" or path.startswith(f"/{locale}/"):
            return locale
    return None


def locale_from_accept_language(header: str | None, locales) -> str | None:
    if not header:
        return None
    for entry in header.split(","):
        lang = entry.split(";")[0].strip()[:2].lower()
        if lang and lang in locales:
            return lang
    return None


def detect_locale(
    path: str,
    accept_language: str | None,
    cookie_locale: str | None,
    locales,
    default_locale: str,
    *,
    use_path: bool = True,
) -> tuple[str, str]:
    """
    Returns (locale, source) where source is path, header, cookie or default.
    """
    if use_path:
        from_path = locale_from_path(path, locales)
        if from_path:
            return from_path, "path"

    from_header = locale_from_accept_language(accept_language, locales)
    if from_header:
        return from_header, "header"

    if cookie_locale and cookie_locale in locales:
        return cookie_locale, "cookie"

    return default_locale, "default"


def remove_locale_prefix(path: str, locales) -> str:
    for locale in locales:
        if path.startswith(f"/{locale}/"):
            return path[len(locale) + 1:]
        if path == f"/{locale}":
            return "/"
    return path


def is_public_route(path: str) -> bool:
    """Exact match, or a nested path under any public route except '/'."""
    normalized = path or "/"
    for route in PUBLIC_ROUTES:
        if normalized == route:
            return True
        if route != "/" and normalized.startswith(f"{route}/"):
            return True
    return False


def register_request_hooks(app) -> None:
    @app.before_request
    def set_request_locale():
        config = current_app.config
        locales = config["SUPPORTED_LOCALES"]
        locale, source = detect_locale(
            request.path,
            request.headers.get("Accept-Language"),
            request.cookies.get(config["LOCALE_COOKIE_NAME"]),
            locales,
            config["DEFAULT_LOCALE"],
            use_path=not should_bypass(request.path),
        )
        g.locale = locale
        g.locale_source = source

    @app.after_request
    def apply_response_headers(response):
        config = current_app.config
        locale = getattr(g, "locale", None)
        if locale:
            response.headers["Content-Language"] = locale
            if getattr(g, "locale_source", None) == "path":
                response.set_cookie(
                    config["LOCALE_COOKIE_NAME"],
                    locale,
                    max_age=config["LOCALE_COOKIE_MAX_AGE"],
                    samesite="Lax",
                )

        origin = request.headers.get("Origin")
        if origin and origin in config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type, Accept-Language"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response
