# Overview: Transaction scope, row locking and retry helpers shared by all ledger writers.

from __future__ import annotations

import logging
import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import StockRaceDetected

logger = logging.getLogger(__name__)

_TX_DEPTH_KEY = "stockledger.tx_depth"

# Fragments of driver messages that mean "someone else holds the rows".
# Anything else from OperationalError is treated as a storage failure.
_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock wait timeout",
    "could not obtain lock",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite, ledger_transaction() takes the write lock up front instead.
    """
    return query.with_for_update()


def in_ledger_transaction() -> bool:
    return db.session().info.get(_TX_DEPTH_KEY, 0) > 0


@contextmanager
def ledger_transaction():
    """
    Scoped transaction for ledger writers.

    - Outermost scope: on SQLite issues BEGIN IMMEDIATE so concurrent writers
      serialize; commits on normal exit.
    - Any exception (including KeyboardInterrupt / GeneratorExit from an
      abandoned caller) rolls back everything done in the scope and re-raises.
    - Nested scopes join the outer transaction; only the outermost commits.
    """
    session = db.session()
    depth = session.info.get(_TX_DEPTH_KEY, 0)
    if depth:
        session.info[_TX_DEPTH_KEY] = depth + 1
        try:
            yield session
        finally:
            session.info[_TX_DEPTH_KEY] = depth
        return

    session.info[_TX_DEPTH_KEY] = 1
    try:
        if db.engine.dialect.name == "sqlite":
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except BaseException as exc:
        session.rollback()
        logger.info("ledger transaction rolled back: %s", type(exc).__name__)
        raise
    finally:
        session.info.pop(_TX_DEPTH_KEY, None)


def is_contention_error(exc: Exception) -> bool:
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _CONTENTION_MARKERS)
    return False


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a ledger operation with retry on concurrency-related failures.

    Retries on lock contention (OperationalError) and StaleDataError
    (optimistic locking conflicts on stock batches). When attempts are
    exhausted the failure surfaces as StockRaceDetected, which callers may
    retry. Other storage errors propagate on the first failure.

    Inside an already-open ledger_transaction() the operation runs once:
    retrying would discard the outer caller's work.
    """
    if in_ledger_transaction():
        return func()

    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if not is_contention_error(exc):
                raise
            if attempt >= attempts - 1:
                logger.warning("ledger operation gave up after %d attempts: %s", attempts, exc)
                raise StockRaceDetected(reason=type(exc).__name__) from exc
            logger.info("ledger contention (attempt %d/%d): %s", attempt + 1, attempts, exc)
            time.sleep(backoff_base * (2 ** attempt))
