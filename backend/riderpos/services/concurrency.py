# Overview: Service-layer helpers for row locking and retrying contended database work.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; callers that need
    serialization there open the transaction with BEGIN IMMEDIATE.
    """
    return query.with_for_update()


def run_with_retry(
    func,
    *,
    attempts: int = 3,
    backoff_base: float = 0.1,
    retry_on: tuple[type[BaseException], ...] = (),
):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks), StaleDataError
    (optimistic locking conflicts) and any extra exception types in
    retry_on. Every failure, including non-retriable ones and interrupts,
    rolls the session back before it propagates.
    """
    retriable = (OperationalError, StaleDataError) + tuple(retry_on)
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return func()
        except retriable:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except BaseException:
            db.session.rollback()
            raise
