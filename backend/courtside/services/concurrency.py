# Overview: Locking and retry helpers shared by the checkout, payment and shift services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the rows a transaction is about to change.

    SQLite has no row locks and ignores the clause; its single-writer file
    lock plus version_id checks give the same serialization there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one whole transaction, replaying it after lock or version conflicts.

    `func` must do its own reads, writes and commit. Before a replay the
    session is rolled back, so a ledger entry flushed by a failed attempt is
    discarded together with the rest of it. Any other exception rolls back
    and propagates unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Transaction conflict (%s), retry %s/%s in %.2fs",
                type(exc).__name__, attempt, attempts - 1, delay,
            )
            time.sleep(delay)
        except Exception:
            db.session.rollback()
            raise
