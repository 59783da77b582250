# Overview: Service-layer helpers for transactions, row locks and retries.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the write lock is taken by the first UPDATE/INSERT instead.
    """
    return query.with_for_update()


def apply_lock_timeout() -> None:
    """
    Bound how long the current transaction waits for row locks.

    PostgreSQL: SET LOCAL lock_timeout (scoped to the transaction).
    SQLite: the driver busy timeout configured by create_app covers this.
    """
    bind = db.session.get_bind()
    if bind.dialect.name != "postgresql":
        return
    seconds = int(current_app.config.get("DB_LOCK_TIMEOUT_SECONDS", 10))
    db.session.execute(text(f"SET LOCAL lock_timeout = '{seconds}s'"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, "database is locked")
    and StaleDataError (optimistic locking conflicts). Any other exception is
    rolled back and re-raised unchanged, so a failed operation never leaves a
    half-written session behind.
    """
    if attempts is None:
        attempts = int(current_app.config.get("TRANSACTION_RETRY_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(current_app.config.get("TRANSACTION_RETRY_BACKOFF", 0.1))

    last_exc = None
    for attempt in range(max(attempts, 1)):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Retrying transaction after %s (attempt %d/%d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
