# Overview: Named monotonic counters used for invoice numbers and supplier codes.

from __future__ import annotations

from ..extensions import db
from ..models import Counter

SALES_COUNTER = "sales"
SUPPLIER_COUNTER = "supplier"


class SequenceError(Exception):
    """Raised when a counter key is unusable."""
    pass


def next_value(counter_key: str) -> int:
    """
    Allocate the next value of `counter_key` (previous + 1).

    Must be called inside run_in_transaction: the bump is flushed here but
    only becomes visible when the caller's whole unit of work commits. A
    concurrent caller that read the same previous value fails its versioned
    UPDATE (or, for a brand-new key, the unique INSERT) and is retried from
    scratch, so no value is ever handed out twice.
    """
    if not counter_key:
        raise SequenceError("counter_key is required")

    counter = db.session.query(Counter).filter_by(key=counter_key).first()
    if counter is None:
        counter = Counter(key=counter_key, value=0)
        db.session.add(counter)

    counter.value = (counter.value or 0) + 1
    db.session.flush()
    return counter.value


def peek_value(counter_key: str) -> int:
    """Last value handed out for `counter_key` (0 if never used)."""
    value = db.session.query(Counter.value).filter_by(key=counter_key).scalar()
    return value or 0
