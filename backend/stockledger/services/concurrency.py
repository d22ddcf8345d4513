# Overview: Transaction and retry helpers shared by every ledger mutation.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError

logger = logging.getLogger(__name__)

# IntegrityError covers a racing find-or-create on (variant_id, location_id);
# the retry re-reads and finds the row the other transaction created.
RETRYABLE_ERRORS = (OperationalError, StaleDataError, IntegrityError)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id column on InventoryRecord still catches lost updates there.
    """
    return query.with_for_update()


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute func() and commit, as one database transaction.

    - Any exception rolls the whole transaction back before propagating.
    - Concurrency failures (deadlocks, stale versions, racing inserts) retry
      the whole operation; exhausted retries raise ConflictError.
    """
    for attempt in range(attempts):
        try:
            result = func()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Giving up after %d attempts: %s", attempts, exc)
                raise ConflictError(
                    "Inventory was modified by a concurrent request; please retry"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
