# Overview: Application configuration read from environment variables.
from __future__ import annotations

import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/billtracker.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///billtracker.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Approval
    APPROVAL_BATCH_LIMIT = int(os.environ.get("APPROVAL_BATCH_LIMIT", "50"))

    # 50 Tawi reminder scan (flask reminders scan)
    WHT_REMINDER_MIN_AGE_DAYS = int(os.environ.get("WHT_REMINDER_MIN_AGE_DAYS", "7"))

    # Notifications; LINE push is enabled only when a token is set
    NOTIFICATIONS_ENABLED = _env_bool("NOTIFICATIONS_ENABLED", True)
    LINE_CHANNEL_ACCESS_TOKEN = os.environ.get("LINE_CHANNEL_ACCESS_TOKEN")
    LINE_PUSH_URL = os.environ.get("LINE_PUSH_URL", "https://api.line.me/v2/bot/message/push")

    # Login sessions: hard lifetime and inactivity cut-off
    SESSION_LIFETIME_HOURS = int(os.environ.get("SESSION_LIFETIME_HOURS", "24"))
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", "120"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SECRET_KEY = "test-secret-key"
    LINE_CHANNEL_ACCESS_TOKEN = None
    NOTIFICATIONS_ENABLED = True
    LOG_LEVEL = "DEBUG"
