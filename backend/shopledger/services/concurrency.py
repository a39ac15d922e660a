# Overview: Transaction combinator with optimistic-concurrency retries.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import PartialWriteForbidden, StoreConflict

T = TypeVar("T")

# StaleDataError: a versioned UPDATE/DELETE matched no row (someone else won).
# OperationalError: the database refused the write (locked / deadlock).
# IntegrityError: a concurrent first insert of the same unique key.
RETRYABLE_ERRORS = (StaleDataError, OperationalError, IntegrityError)


def _has_staged_changes() -> bool:
    session = db.session
    return bool(session.new or session.deleted or session.dirty)


def run_in_transaction(
    func: Callable[[], T],
    *,
    attempts: int | None = None,
    backoff_base: float | None = None,
    label: str | None = None,
) -> T:
    """
    Run `func` as one atomic unit of work and commit it.

    `func` must do all of its reads and writes through db.session and must
    not commit. On a concurrency failure the session is rolled back and
    `func` is executed again from scratch (fresh reads included), with
    exponential backoff between attempts. Past `attempts` the failure is
    surfaced as StoreConflict. Any other exception rolls back and propagates
    unchanged, so nothing of a failed attempt is ever persisted.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_TXN_ATTEMPTS", 5)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_TXN_BACKOFF", 0.05)
    label = label or getattr(func, "__qualname__", "transaction")

    if _has_staged_changes():
        raise PartialWriteForbidden(
            f"{label}: session holds uncommitted changes from outside this transaction",
            details={"operation": label},
        )

    for attempt in range(1, attempts + 1):
        try:
            result = func()
            db.session.commit()
            return result
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                current_app.logger.error(
                    "%s aborted after %d conflicting attempts: %s", label, attempts, exc.__class__.__name__
                )
                raise StoreConflict(
                    f"{label} could not be committed because of concurrent changes; please retry",
                    details={"operation": label, "attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "%s conflicted on attempt %d/%d (%s); retrying", label, attempt, attempts, exc.__class__.__name__
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise

    # attempts < 1
    raise StoreConflict(f"{label} was not attempted", details={"operation": label, "attempts": attempts})
