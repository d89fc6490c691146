# Overview: Transaction helpers shared by services that write more than one row.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """
    Take the SQLite write lock up front so the whole unit of work is
    serialized. No-op on databases with real row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def increment_counter(model, row_id: int, column, amount: int) -> int:
    """
    Atomic ``column = column + amount`` for one row, executed in the database.

    Never read-modify-write: concurrent increments must not lose updates.
    Returns the number of rows matched (0 if the row vanished).
    """
    return (
        db.session.query(model)
        .filter(model.id == row_id)
        .update({column: column + amount}, synchronize_session=False)
    )


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). ``func`` must be safe to re-run from
    scratch: the session is rolled back before each retry.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
