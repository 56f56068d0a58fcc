# Overview: Unauthenticated health probe for deployments.

"""
GET /health

Reports whether the database answers and which notification channels are
wired. Returns 503 when the database check fails so a load balancer can pull
the instance.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db
from ..services.notification_service import get_dispatcher
from billtracker.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _database_check() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:
        current_app.logger.exception("Health probe could not reach the database")
        db.session.rollback()
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(started), "error": "Database error"}
    return {"status": "healthy", "latency_ms": _elapsed_ms(started)}


def _notifier_check() -> dict:
    dispatcher = get_dispatcher()
    return {
        "status": "healthy",
        "enabled": dispatcher.enabled,
        "channels": [getattr(channel, "name", type(channel).__name__) for channel in dispatcher.channels],
    }


@system_bp.get("/health")
def health():
    database = _database_check()
    healthy = database["status"] == "healthy"
    body = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database,
            "notifications": _notifier_check(),
        },
    }
    return body, 200 if healthy else 503
