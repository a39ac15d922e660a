# backend/shopledger/routes/system.py
"""
System health endpoint.

Checks database connectivity and reports the ledger sequence counters for
deployment debugging.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Counter, Product, Sale, SupplierBill
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api/system")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        product_count = db.session.query(Product).count()
        bill_count = db.session.query(SupplierBill).count()
        sale_count = db.session.query(Sale).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "bills": bill_count,
                "sales": sale_count,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_sequences() -> dict:
    """Last value handed out by each named counter."""
    try:
        counters = db.session.query(Counter).order_by(Counter.key).all()
        return {
            "status": "healthy",
            "details": {c.key: c.value for c in counters},
        }
    except SQLAlchemyError:
        current_app.logger.exception("Sequence check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Sequence table error"}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: All checks healthy
    - 503: One or more checks unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    sequence_health = check_sequences()

    all_checks = [database_health, sequence_health]
    unhealthy = any(check["status"] == "unhealthy" for check in all_checks)

    response = {
        "status": "unhealthy" if unhealthy else "healthy",
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "sequences": sequence_health,
        }
    }

    return response, 503 if unhealthy else 200
