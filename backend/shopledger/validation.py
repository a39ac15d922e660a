from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from shopledger.time_utils import parse_iso_datetime, to_naive_utc


# Maximum money amount: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_AMOUNT_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate bill number)."""

    code = "CONFLICT"
    http_status = 409

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def require_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion: ints and plain digit strings only.

    Floats, booleans, decimals and scientific notation are rejected so a
    quantity of "2.5" or 1e3 never reaches the ledger.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", details={field: result})
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}", details={field: result})
    return result


def require_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """Money in integer cents, bounded by MAX_AMOUNT_CENTS."""
    return require_int(
        value,
        field,
        minimum=0 if allow_zero else 1,
        maximum=MAX_AMOUNT_CENTS,
    )


def require_percent(value: Any, field: str) -> Decimal:
    """Percentage (0-100) as Decimal; accepts numbers or numeric strings."""
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        pct = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not pct.is_finite():
        raise ValidationError(f"{field} must be a number")
    if pct < 0 or pct > 100:
        raise ValidationError(f"{field} must be between 0 and 100", details={field: str(pct)})
    return pct


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None:
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def optional_text(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return text


def optional_datetime(value: Any, field: str) -> datetime | None:
    """Accept a datetime or an ISO-8601 string; normalize to UTC-naive."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            raise ValidationError(f"{field} must be an ISO-8601 datetime")
    raise ValidationError(f"{field} must be a datetime")
