# Overview: Locking and retry helpers shared by the stock, coupon and payment workflows.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for read-modify-write sequences.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def apply_guarded_update(stmt) -> bool:
    """
    Execute a single conditional UPDATE and report whether it matched.

    The WHERE clause carries the guard (stock >= qty, used_count < limit),
    so two concurrent callers can never both succeed past the guard.
    """
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic version_id conflicts). The session is rolled back before
    each retry, so func must redo all of its work.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
