"""
Delete traces

WHY: Every destructive operation (adjustment delete, supplier payment bulk
delete, supplier delete, stock write-off) leaves a copy of what it removed.
The trace is staged in the same unit of work as the delete itself, so either
both are committed or neither is.
"""

from __future__ import annotations

from typing import Any

from ..extensions import db
from ..models import DeleteTrace
from shopledger.time_utils import utcnow

TRACE_DELETE = "delete"
TRACE_DUMP_PRODUCT = "dump_product"


def write_delete_trace(
    table_name: str,
    deleted_id: int | None,
    deleted_data: dict[str, Any],
    reason: str,
    actor: str | None,
    trace_type: str = TRACE_DELETE,
) -> DeleteTrace:
    """Stage one trace row. Caller owns the transaction."""
    trace = DeleteTrace(
        table_name=table_name,
        deleted_id=deleted_id,
        trace_type=trace_type,
        deleted_data=deleted_data,
        deleted_by=actor or "Unknown",
        reason=reason,
        deleted_at=utcnow(),
    )
    db.session.add(trace)
    db.session.flush()
    return trace


def list_delete_traces(table_name: str | None = None, trace_type: str | None = None) -> list[DeleteTrace]:
    query = db.session.query(DeleteTrace)
    if table_name:
        query = query.filter_by(table_name=table_name)
    if trace_type:
        query = query.filter_by(trace_type=trace_type)
    return query.order_by(DeleteTrace.deleted_at.desc(), DeleteTrace.id.desc()).all()
