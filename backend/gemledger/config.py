# backend/gemledger/config.py
from __future__ import annotations
import os


def _split_env(name: str, default: str) -> set[str]:
    raw = os.environ.get(name, default)
    return {part.strip() for part in raw.split(",") if part.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/gemledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///gemledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _split_env(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173",
    )

    # Locale routing
    DEFAULT_LOCALE = "en"
    SUPPORTED_LOCALES = ("en", "fr", "es", "nl", "ar")
    LOCALE_COOKIE_NAME = "NEXT_LOCALE"
    LOCALE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    LOG_LEVEL = "WARNING"
