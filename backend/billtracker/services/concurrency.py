# Overview: Service-layer operations for concurrency; encapsulates business logic and database work.

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentModificationError
from ..extensions import db
from billtracker.time_utils import utcnow


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def update_where(record, expected: dict, patch: dict):
    """
    Conditional write: apply `patch` only if the row still matches `expected`.

    The UPDATE matches on the primary key, every column in `expected`, and
    the version the caller read (tables without version_id match on the
    expected columns only). It bumps version_id. When no row matched,
    another request changed the record first and ConcurrentModificationError
    is raised; nothing is written.

    This is the read-validate-write boundary for status transitions: two
    racing mark-paid calls both read DRAFT, only one UPDATE matches.

    The record is refreshed from the database on success so callers see the
    committed-to-be state (including the new version_id).
    """
    model = type(record)
    table = model.__table__

    conditions = [table.c.id == record.id]
    versioned = "version_id" in table.c
    if versioned:
        conditions.append(table.c.version_id == record.version_id)
    for column, value in expected.items():
        conditions.append(table.c[column] == value)

    values = dict(patch)
    if versioned:
        values["version_id"] = table.c.version_id + 1
    if "updated_at" in table.c:
        values.setdefault("updated_at", utcnow())

    result = db.session.execute(update(table).where(*conditions).values(**values))
    if result.rowcount != 1:
        db.session.refresh(record)
        raise ConcurrentModificationError()

    db.session.refresh(record)
    return record


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc

