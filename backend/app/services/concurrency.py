# Overview: Transaction helpers shared by the workflow services (row locks, retry, commit).

from __future__ import annotations

import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Deadlocks, lock timeouts and optimistic-version conflicts
RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# Adds unique-constraint races (two writers inserting the same ledger row or
# sequence row at once); the losing transaction is replayed from scratch.
LEDGER_RETRYABLE_ERRORS = RETRYABLE_ERRORS + (IntegrityError,)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on=RETRYABLE_ERRORS):
    """
    Execute a DB operation with retry on concurrency-related failures.

    The whole operation is replayed after a rollback, so ``func`` must be the
    complete unit of work (read, validate, write) and must not commit.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retry_on as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def commit_session():
    """
    Commit the unit of work built by a service call.

    A failed commit is rolled back and re-raised; retrying a bare commit after
    rollback would report success for work that was discarded.
    """
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
