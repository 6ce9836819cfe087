# Overview: Transaction helpers shared by every state-changing service.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class ConcurrentInsertError(Exception):
    """Another transaction inserted the same unique row first; retry from scratch."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the StockLevel
    version column catches lost updates instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB unit of work with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, busy database), StaleDataError
    (optimistic locking conflicts) and ConcurrentInsertError (lost race on
    a unique row). Business errors are not retried; they propagate to the
    caller unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError, ConcurrentInsertError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))


def atomic(func):
    """
    Run func, then commit once. Any exception rolls the whole unit of work
    back before propagating, so callers never see partial writes.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
        return result
    return run_with_retry(_op)
