"""
Bill Adjustment Engine

Supplier returns recorded against one line of a bill.

WHY: A bill_reduction has a live effect on two rows, the matched product
(units returned) and the bill (deal amount owed). Create, edit and delete all
go through _move_effect, which undoes whatever the adjustment currently has
applied and then applies the new effect. Create is the move from nothing,
delete is the move to nothing, so delete is the exact inverse of create and
an edit q1 -> q2 leaves the same state as delete + create(q2).

A return_replacement is an audit record only; its effect is always nothing.
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Product, SupplierAdjustment, SupplierBill
from ..validation import ValidationError, optional_text, require_int, require_text
from shopledger.time_utils import utcnow
from .concurrency import run_in_transaction
from .errors import InvalidAdjustmentQuantity, RecordNotFound, require_reason
from .stock_service import get_bill_product, recompute_total_price
from .trace_service import write_delete_trace

TYPE_RETURN_REPLACEMENT = "return_replacement"
TYPE_BILL_REDUCTION = "bill_reduction"
ADJUSTMENT_TYPES = {TYPE_RETURN_REPLACEMENT, TYPE_BILL_REDUCTION}

MAX_ADJUSTMENT_QUANTITY = 1_000_000


def effective_quantity(adjustment_type: str, quantity: int) -> int:
    """Units an adjustment of this type removes from stock."""
    return quantity if adjustment_type == TYPE_BILL_REDUCTION else 0


def _validate_type(value: Any) -> str:
    adjustment_type = (value or "").strip().lower() if isinstance(value, str) else value
    if adjustment_type not in ADJUSTMENT_TYPES:
        raise ValidationError(
            f"type must be one of {sorted(ADJUSTMENT_TYPES)}",
            details={"type": value},
        )
    return adjustment_type


def _move_effect(
    bill: SupplierBill,
    product: Product,
    unit_price_cents: int,
    old_quantity: int,
    old_reduction_cents: int,
    new_quantity: int,
) -> int:
    """
    Replace an applied effect (old_quantity units, old_reduction_cents off the
    deal) with the effect of new_quantity units. Returns the deal reduction
    now applied.

    Moving to more units than are in stock is refused; the deal amount is
    floored at zero and the floored amount is what gets recorded, so the next
    move restores exactly what was taken.
    """
    diff = new_quantity - old_quantity
    if diff > product.quantity:
        raise InvalidAdjustmentQuantity(
            f"Cannot return {diff} more unit(s) of \"{product.name}\"; only {product.quantity} in stock",
            details={
                "product_id": product.id,
                "bill_number": bill.bill_number,
                "requested_quantity": diff,
                "available_quantity": product.quantity,
            },
        )

    product.quantity = product.quantity - diff
    recompute_total_price(product)

    deal = bill.deal_amount_cents + old_reduction_cents
    wanted = unit_price_cents * new_quantity
    applied = min(wanted, deal) if wanted > 0 else 0
    bill.deal_amount_cents = deal - applied
    return applied


def create_adjustment(
    supplier_id: Any,
    bill_number: Any,
    barcode: Any,
    quantity: Any,
    adjustment_type: Any,
    note: Any = None,
    actor: str | None = None,
) -> SupplierAdjustment:
    """
    Record a return against (bill_number, barcode).

    The unit price is the product's cost at the time of the return and stays
    fixed for the life of the adjustment.
    """
    supplier_id = require_int(supplier_id, "supplier_id", minimum=1)
    bill_number = require_text(bill_number, "bill_number", max_length=64)
    barcode = require_text(barcode, "barcode", max_length=64)
    quantity = require_int(quantity, "quantity", minimum=1, maximum=MAX_ADJUSTMENT_QUANTITY)
    adjustment_type = _validate_type(adjustment_type)
    note = optional_text(note, "note", max_length=2000)

    def _op() -> SupplierAdjustment:
        bill, product = get_bill_product(bill_number, barcode)
        if bill.supplier_id != supplier_id:
            raise ValidationError(
                f"Bill {bill_number} does not belong to supplier {supplier_id}",
                details={"bill_number": bill_number, "supplier_id": supplier_id},
            )

        unit_price = product.unit_price_cents or 0
        applied = _move_effect(
            bill,
            product,
            unit_price,
            old_quantity=0,
            old_reduction_cents=0,
            new_quantity=effective_quantity(adjustment_type, quantity),
        )

        adjustment = SupplierAdjustment(
            supplier_id=supplier_id,
            bill_number=bill_number,
            barcode=barcode,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            unit_price_cents=unit_price,
            total_price_cents=unit_price * quantity,
            type=adjustment_type,
            note=note,
            applied_reduction_cents=applied,
            created_at=utcnow(),
            created_by=actor,
        )
        db.session.add(adjustment)
        db.session.flush()
        return adjustment

    adjustment = run_in_transaction(_op, label="create_adjustment")
    current_app.logger.info(
        "Adjustment %s created: %s x%d on bill %s/%s",
        adjustment.id, adjustment.type, adjustment.quantity, adjustment.bill_number, adjustment.barcode,
    )
    return adjustment


def _load_adjustment(adjustment_id: int) -> SupplierAdjustment:
    adjustment = db.session.get(SupplierAdjustment, adjustment_id)
    if not adjustment:
        raise RecordNotFound(f"Adjustment {adjustment_id} not found", details={"adjustment_id": adjustment_id})
    return adjustment


def edit_adjustment(
    adjustment_id: int,
    *,
    quantity: Any,
    adjustment_type: Any = None,
    note: Any = None,
    reason: str | None = None,
    actor: str | None = None,
) -> SupplierAdjustment:
    """
    Correct quantity (and optionally type or note) of an existing adjustment.

    diff = new effective quantity - old effective quantity. A positive diff
    takes more units out of stock and must fit in the current quantity; a
    negative diff gives units back. The bill deal amount moves by
    unit price x diff.
    """
    reason = require_reason(reason, "edit an adjustment")
    quantity = require_int(quantity, "quantity", minimum=1, maximum=MAX_ADJUSTMENT_QUANTITY)
    new_type = _validate_type(adjustment_type) if adjustment_type is not None else None
    note = optional_text(note, "note", max_length=2000)

    def _op() -> SupplierAdjustment:
        adjustment = _load_adjustment(adjustment_id)
        bill, product = get_bill_product(adjustment.bill_number, adjustment.barcode)
        target_type = new_type or adjustment.type

        adjustment.applied_reduction_cents = _move_effect(
            bill,
            product,
            adjustment.unit_price_cents,
            old_quantity=effective_quantity(adjustment.type, adjustment.quantity),
            old_reduction_cents=adjustment.applied_reduction_cents,
            new_quantity=effective_quantity(target_type, quantity),
        )

        adjustment.quantity = quantity
        adjustment.type = target_type
        adjustment.total_price_cents = adjustment.unit_price_cents * quantity
        if note is not None:
            adjustment.note = note
        adjustment.product_id = product.id
        adjustment.updated_at = utcnow()
        adjustment.updated_by = actor
        adjustment.edit_reason = reason
        db.session.flush()
        return adjustment

    adjustment = run_in_transaction(_op, label="edit_adjustment")
    current_app.logger.info(
        "Adjustment %s edited to %s x%d (%s)", adjustment.id, adjustment.type, adjustment.quantity, reason
    )
    return adjustment


def delete_adjustment(adjustment_id: int, *, reason: str | None = None, actor: str | None = None) -> dict:
    """
    Undo an adjustment completely and remove it.

    Returns the deleted document plus the id of the delete trace written in
    the same transaction.
    """
    reason = require_reason(reason, "delete an adjustment")

    def _op() -> dict:
        adjustment = _load_adjustment(adjustment_id)
        bill, product = get_bill_product(adjustment.bill_number, adjustment.barcode)
        snapshot = adjustment.to_dict()

        _move_effect(
            bill,
            product,
            adjustment.unit_price_cents,
            old_quantity=effective_quantity(adjustment.type, adjustment.quantity),
            old_reduction_cents=adjustment.applied_reduction_cents,
            new_quantity=0,
        )

        trace = write_delete_trace(
            SupplierAdjustment.__tablename__,
            adjustment.id,
            snapshot,
            reason,
            actor,
        )
        db.session.delete(adjustment)
        db.session.flush()
        return {**snapshot, "trace_id": trace.id}

    result = run_in_transaction(_op, label="delete_adjustment")
    current_app.logger.info("Adjustment %s deleted (%s)", adjustment_id, reason)
    return result


def get_adjustment(adjustment_id: int) -> SupplierAdjustment:
    return _load_adjustment(adjustment_id)


def list_adjustments(
    bill_number: str | None = None,
    supplier_id: int | None = None,
    adjustment_type: str | None = None,
) -> list[SupplierAdjustment]:
    query = db.session.query(SupplierAdjustment)
    if bill_number:
        query = query.filter_by(bill_number=bill_number)
    if supplier_id:
        query = query.filter_by(supplier_id=supplier_id)
    if adjustment_type:
        query = query.filter_by(type=adjustment_type)
    return query.order_by(SupplierAdjustment.created_at.desc(), SupplierAdjustment.id.desc()).all()
