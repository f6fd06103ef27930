"""
Application configuration — environment-aware settings.

All environment variables are documented here. Values are read from the
process environment after loading a local .env file.
"""

from __future__ import annotations

import os
import warnings
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).parent


def _gemini_key() -> str:
    # GEMINI_API_KEY wins; GOOGLE_API_KEY is accepted for older .env files.
    return os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY", "")


class BaseConfig:
    # Core Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-key-change-in-production")
    PORT = int(os.environ.get("PORT", "8787"))

    # Session security
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    PERMANENT_SESSION_LIFETIME = 86400

    # Upload limits (image chat)
    MAX_CONTENT_LENGTH = int(os.environ.get("MAX_CONTENT_LENGTH", str(8 * 1024 * 1024)))
    JSON_BODY_LIMIT = 2 * 1024 * 1024

    # Gemini
    GEMINI_API_KEY = _gemini_key()
    GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-flash")
    CHAT_HISTORY_LIMIT = int(os.environ.get("CHAT_HISTORY_LIMIT", "20"))

    # Persisted state: "sqlite" (default), "redis" or "memory"
    STATE_BACKEND = os.environ.get("STATE_BACKEND", "")
    STATE_DATABASE = os.environ.get("STATE_DATABASE", str(BASE_DIR / "study_coach.db"))
    REDIS_URL = os.environ.get("REDIS_URL", "")

    # CORS: comma-separated origins, "*" for any
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Logging
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")  # "json" or "text"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rate limiting (defaults to in-memory; set REDIS_URL for Redis-backed)
    RATELIMIT_STORAGE_URI = os.environ.get("REDIS_URL", "") or "memory://"


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "text")
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "http://localhost:5173")


class ProductionConfig(BaseConfig):
    DEBUG = False
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json")
    SESSION_COOKIE_SECURE = True

    @classmethod
    def validate(cls):
        """Fail fast on missing or insecure configuration in production."""
        errors: list[str] = []

        if cls.SECRET_KEY in ("dev-key-change-in-production", ""):
            errors.append("SECRET_KEY must be set to a secure value in production.")

        if cls.STATE_BACKEND and cls.STATE_BACKEND.lower() not in ("sqlite", "redis", "memory"):
            errors.append(f"STATE_BACKEND must be sqlite, redis or memory (got {cls.STATE_BACKEND!r}).")

        if not cls.GEMINI_API_KEY:
            warnings.warn("GEMINI_API_KEY is not set; the study coach chat will be unavailable.")

        if errors:
            raise RuntimeError(
                "Production configuration errors:\n" + "\n".join(f"  - {e}" for e in errors)
            )


class TestingConfig(BaseConfig):
    TESTING = True
    STATE_BACKEND = "memory"
    LOG_LEVEL = "WARNING"


config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}


def cors_origins(value: str) -> str | list[str]:
    """Parse CORS_ORIGINS into what flask-cors expects."""
    value = (value or "").strip()
    if not value or value == "*":
        return "*"
    return [o.strip() for o in value.split(",") if o.strip()]
