"""
Sale Transaction Coordinator

WHY: A checkout touches three things that must move together: the "sales"
counter (invoice number), every product in the cart (stock and stock value)
and the new Sale row. They are staged in one unit of work and committed by
run_in_transaction; a concurrent checkout on the same product makes one of
the two retry from scratch with fresh reads, so stock can never be oversold.

The customer profile is refreshed afterwards, outside the transaction. A
failure there is logged and never undoes the sale.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Customer, Sale, SaleLine
from ..validation import (
    ValidationError,
    optional_datetime,
    optional_text,
    require_cents,
    require_int,
    require_percent,
)
from shopledger.time_utils import utcnow
from .concurrency import run_in_transaction
from .errors import RecordNotFound
from .sequence_service import SALES_COUNTER, next_value
from .stock_service import get_product, reserve_stock

PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_MFS = "mfs"
PAYMENT_DUE_SALE = "due_sale"
PAYMENT_METHODS = {PAYMENT_CASH, PAYMENT_CARD, PAYMENT_MFS, PAYMENT_DUE_SALE}

DISCOUNT_PERCENT = "percent"
DISCOUNT_FIXED = "fixed"

MAX_CART_QUANTITY = 1_000_000

_CENT = Decimal("1")
_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    vat_amount_cents: int
    discount_amount_cents: int
    shipping_cents: int
    total_cents: int


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(_CENT, rounding=ROUND_HALF_UP))


def compute_totals(
    subtotal_cents: int,
    *,
    vat_percent: Decimal = Decimal("0"),
    discount_type: str = DISCOUNT_PERCENT,
    discount_value: Decimal | int = 0,
    shipping_cents: int = 0,
) -> SaleTotals:
    """
    Order totals from the line subtotal.

    vat = subtotal x vat% ; discount is either a percentage of the subtotal or
    a fixed amount in cents ; total = subtotal + vat + shipping - discount.
    Percentages are rounded half-up to whole cents.
    """
    if discount_type not in (DISCOUNT_PERCENT, DISCOUNT_FIXED):
        raise ValidationError("discount_type must be 'percent' or 'fixed'")

    vat_amount = _round_cents(Decimal(subtotal_cents) * Decimal(vat_percent) / _HUNDRED)
    if discount_type == DISCOUNT_PERCENT:
        discount_amount = _round_cents(Decimal(subtotal_cents) * Decimal(discount_value) / _HUNDRED)
    else:
        discount_amount = int(discount_value)

    gross = subtotal_cents + vat_amount + shipping_cents
    if discount_amount > gross:
        raise ValidationError(
            "Discount cannot exceed the order amount",
            details={"discount_amount_cents": discount_amount, "order_amount_cents": gross},
        )

    return SaleTotals(
        subtotal_cents=subtotal_cents,
        vat_amount_cents=vat_amount,
        discount_amount_cents=discount_amount,
        shipping_cents=shipping_cents,
        total_cents=gross - discount_amount,
    )


def make_invoice_number(ts: datetime, count: int) -> str:
    """DDMMYYYY-HHmm-NNN; unique because the sequence value is."""
    return f"{ts:%d%m%Y-%H%M}-{count:03d}"


def _normalize_cart(lines: list[dict[str, Any]]) -> list[tuple[dict, int]]:
    if not isinstance(lines, list) or not lines:
        raise ValidationError("Cart is empty")

    normalized = []
    for index, line in enumerate(lines):
        if not isinstance(line, dict):
            raise ValidationError(f"items[{index}] must be an object")
        qty = require_int(line.get("quantity"), f"items[{index}].quantity", minimum=1, maximum=MAX_CART_QUANTITY)
        ref = {}
        if line.get("product_id") is not None:
            ref["product_id"] = require_int(line["product_id"], f"items[{index}].product_id", minimum=1)
        elif line.get("barcode"):
            ref["barcode"] = str(line["barcode"]).strip()
        else:
            raise ValidationError(f"items[{index}] needs product_id or barcode")
        normalized.append((ref, qty))
    return normalized


def checkout(
    lines: list[dict[str, Any]],
    *,
    vat_percent: Any = 0,
    discount_type: str = DISCOUNT_PERCENT,
    discount_value: Any = 0,
    shipping_cents: Any = 0,
    payment_method: str = PAYMENT_CASH,
    customer_name: str | None = None,
    customer_number: str | None = None,
    staff_id: str | None = None,
    sale_date: Any = None,
    paid_cents: Any = None,
) -> Sale:
    """
    Turn a cart into a committed Sale.

    Each cart line is {"product_id": int} or {"barcode": str} plus
    "quantity". Lines naming the same product are summed before the stock
    check. Any shortfall or unknown product aborts the whole checkout with
    nothing written.

    On a due sale `paid_cents` is what the customer paid up front (default 0)
    and the rest is collected later through customer payments.
    """
    cart = _normalize_cart(lines)

    vat = require_percent(vat_percent, "vat_percent")
    if discount_type == DISCOUNT_PERCENT:
        discount = require_percent(discount_value, "discount_value")
    elif discount_type == DISCOUNT_FIXED:
        discount = Decimal(require_cents(discount_value or 0, "discount_value"))
    else:
        raise ValidationError("discount_type must be 'percent' or 'fixed'")
    shipping = require_cents(shipping_cents or 0, "shipping_cents")

    method = (payment_method or "").strip().lower()
    if method not in PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of {sorted(PAYMENT_METHODS)}",
            details={"payment_method": payment_method},
        )

    customer_name = optional_text(customer_name, "customer_name")
    customer_number = optional_text(customer_number, "customer_number", max_length=32)
    staff_id = optional_text(staff_id, "staff_id", max_length=128)
    backdate = optional_datetime(sale_date, "sale_date")

    upfront = None
    if method == PAYMENT_DUE_SALE:
        if not customer_number:
            raise ValidationError("customer_number is required for a due sale")
        upfront = require_cents(paid_cents or 0, "paid_cents")

    def _op() -> Sale:
        count = next_value(SALES_COUNTER)
        sale_ts = backdate or utcnow()

        requested: dict[int, int] = {}
        for ref, qty in cart:
            product = get_product(**ref)
            if product.retail_price_cents is None:
                raise ValidationError(
                    f"Product \"{product.name}\" has no retail price",
                    details={"product_id": product.id},
                )
            requested[product.id] = requested.get(product.id, 0) + qty

        reserved = reserve_stock(requested)

        sale_lines = []
        subtotal = 0
        for product, qty in reserved:
            line_total = product.retail_price_cents * qty
            subtotal += line_total
            sale_lines.append(SaleLine(
                product_id=product.id,
                barcode=product.barcode,
                product_name=product.name,
                quantity=qty,
                retail_price_cents=product.retail_price_cents,
                line_total_cents=line_total,
            ))

        totals = compute_totals(
            subtotal,
            vat_percent=vat,
            discount_type=discount_type,
            discount_value=discount,
            shipping_cents=shipping,
        )

        if upfront is None:
            base_paid = totals.total_cents
        elif upfront > totals.total_cents:
            raise ValidationError(
                "paid_cents cannot exceed the sale total",
                details={"paid_cents": upfront, "total_cents": totals.total_cents},
            )
        else:
            base_paid = upfront

        sale = Sale(
            sale_count=count,
            invoice_number=make_invoice_number(sale_ts, count),
            subtotal_cents=totals.subtotal_cents,
            vat_percent=vat,
            vat_amount_cents=totals.vat_amount_cents,
            discount_type=discount_type,
            discount_value=discount,
            discount_amount_cents=totals.discount_amount_cents,
            shipping_cents=totals.shipping_cents,
            total_cents=totals.total_cents,
            payment_method=method,
            base_paid_cents=base_paid,
            customer_name=customer_name,
            customer_number=customer_number,
            created_at=sale_ts,
            sale_date=backdate,
            recorded_at=utcnow(),
            staff_id=staff_id,
        )
        sale.lines = sale_lines
        db.session.add(sale)
        db.session.flush()
        return sale

    sale = run_in_transaction(_op, label="checkout")
    current_app.logger.info(
        "Sale %s committed: %d line(s), total %d cents, method %s",
        sale.invoice_number, len(sale.lines), sale.total_cents, sale.payment_method,
    )

    if customer_number:
        _refresh_customer_profile(sale.id, customer_name, customer_number)

    return sale


def _refresh_customer_profile(sale_id: int, customer_name: str | None, customer_number: str) -> None:
    """
    Best effort: the sale is already committed whatever happens here.

    Profiles are keyed by customer number; a name alone stays on the sale.
    """
    try:
        customer = db.session.query(Customer).filter_by(customer_number=customer_number).first()
        if customer is None:
            customer = Customer(customer_number=customer_number)
            db.session.add(customer)
        if customer_name:
            customer.customer_name = customer_name
        customer.last_sale_id = sale_id
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.warning("Customer profile refresh failed for sale %s: %s", sale_id, exc)


def get_sale(sale_id: int) -> Sale:
    sale = db.session.get(Sale, sale_id)
    if not sale:
        raise RecordNotFound(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def list_sales(
    customer_number: str | None = None,
    payment_method: str | None = None,
    limit: int = 100,
) -> list[Sale]:
    query = db.session.query(Sale)
    if customer_number:
        query = query.filter_by(customer_number=customer_number)
    if payment_method:
        query = query.filter_by(payment_method=payment_method)
    return query.order_by(Sale.created_at.desc(), Sale.id.desc()).limit(limit).all()
