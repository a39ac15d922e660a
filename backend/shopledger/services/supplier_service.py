"""
Supplier & bill registry

Supplier master data, bill intake and stock write-offs. Every write goes
through run_in_transaction like the rest of the ledger.
"""

from __future__ import annotations

from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Product, Supplier, SupplierBill
from ..validation import (
    ConflictError,
    ValidationError,
    optional_text,
    require_cents,
    require_int,
    require_text,
)
from .concurrency import run_in_transaction
from .errors import RecordNotFound, require_reason
from .sequence_service import SUPPLIER_COUNTER, next_value
from .stock_service import get_product, recompute_total_price, remove_units
from .trace_service import TRACE_DUMP_PRODUCT, write_delete_trace


def create_supplier(name: Any, address: Any = None, phone: Any = None) -> Supplier:
    name = require_text(name, "name")
    address = optional_text(address, "address")
    phone = optional_text(phone, "phone", max_length=32)

    def _op() -> Supplier:
        supplier = Supplier(
            supplier_code=next_value(SUPPLIER_COUNTER),
            name=name,
            address=address,
            phone=phone,
        )
        db.session.add(supplier)
        db.session.flush()
        return supplier

    supplier = run_in_transaction(_op, label="create_supplier")
    current_app.logger.info("Supplier %s created with code %s", supplier.id, supplier.supplier_code)
    return supplier


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise RecordNotFound(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    return supplier


def list_suppliers() -> list[Supplier]:
    return db.session.query(Supplier).order_by(Supplier.supplier_code.asc()).all()


def delete_supplier(supplier_id: int, reason: str | None = None, actor: str | None = None) -> dict:
    """Delete a supplier that no longer has products on any bill."""
    reason = require_reason(reason, "delete a supplier")

    def _op() -> dict:
        supplier = get_supplier(supplier_id)
        product_count = db.session.query(Product).filter_by(supplier_id=supplier.id).count()
        if product_count:
            raise ConflictError(
                f"Supplier {supplier.name} still has {product_count} product(s)",
                details={"supplier_id": supplier.id, "product_count": product_count},
            )

        snapshot = supplier.to_dict()
        for bill in list(supplier.bills):
            if bill.transactions:
                raise ConflictError(
                    f"Bill {bill.bill_number} still has payments recorded",
                    details={"supplier_id": supplier.id, "bill_number": bill.bill_number},
                )
            db.session.delete(bill)

        trace = write_delete_trace(Supplier.__tablename__, supplier.id, snapshot, reason, actor)
        db.session.delete(supplier)
        db.session.flush()
        return {**snapshot, "trace_id": trace.id}

    result = run_in_transaction(_op, label="delete_supplier")
    current_app.logger.info("Supplier %s deleted (%s)", supplier_id, reason)
    return result


def register_bill(
    supplier_id: int,
    bill_number: Any,
    deal_amount_cents: Any,
    paid_amount_cents: Any = 0,
    lines: Any = None,
) -> SupplierBill:
    """
    Create a bill and its product rows in one transaction.

    Each line is {"barcode", "name", "quantity", "unit_price_cents",
    "retail_price_cents"}. A barcode may appear only once per bill.
    """
    bill_number = require_text(bill_number, "bill_number", max_length=64)
    deal = require_cents(deal_amount_cents, "deal_amount_cents")
    paid = require_cents(paid_amount_cents or 0, "paid_amount_cents")
    if paid > deal:
        raise ValidationError(
            "paid_amount_cents cannot exceed deal_amount_cents",
            details={"deal_amount_cents": deal, "paid_amount_cents": paid},
        )

    parsed = []
    seen = set()
    for index, line in enumerate(lines or []):
        if not isinstance(line, dict):
            raise ValidationError(f"lines[{index}] must be an object")
        barcode = require_text(line.get("barcode"), f"lines[{index}].barcode", max_length=64)
        if barcode in seen:
            raise ValidationError(f"Barcode {barcode} appears twice on bill {bill_number}")
        seen.add(barcode)
        unit = line.get("unit_price_cents")
        retail = line.get("retail_price_cents")
        parsed.append({
            "barcode": barcode,
            "name": require_text(line.get("name"), f"lines[{index}].name"),
            "quantity": require_int(line.get("quantity"), f"lines[{index}].quantity", minimum=0),
            "unit_price_cents": (
                require_cents(unit, f"lines[{index}].unit_price_cents") if unit is not None else None
            ),
            "retail_price_cents": (
                require_cents(retail, f"lines[{index}].retail_price_cents") if retail is not None else None
            ),
        })

    def _op() -> SupplierBill:
        supplier = get_supplier(supplier_id)
        if db.session.query(SupplierBill).filter_by(bill_number=bill_number).first():
            raise ConflictError(f"Bill {bill_number} already exists", details={"bill_number": bill_number})

        bill = SupplierBill(
            bill_number=bill_number,
            supplier_id=supplier.id,
            deal_amount_cents=deal,
            base_paid_amount_cents=paid,
        )
        db.session.add(bill)
        for item in parsed:
            product = Product(supplier_id=supplier.id, bill=bill, **item)
            recompute_total_price(product)
            db.session.add(product)
        db.session.flush()
        return bill

    bill = run_in_transaction(_op, label="register_bill")
    current_app.logger.info("Bill %s registered with %d line(s)", bill.bill_number, len(parsed))
    return bill


def dump_product(product_id: int, quantity: Any, reason: str | None = None, actor: str | None = None) -> Product:
    """Write off damaged stock. The removed units are recorded as a trace."""
    reason = require_reason(reason, "dump stock")
    quantity = require_int(quantity, "quantity", minimum=1)

    def _op() -> Product:
        product = get_product(product_id=product_id)
        before = product.to_dict()
        remove_units(product, quantity)
        write_delete_trace(
            Product.__tablename__,
            product.id,
            {**before, "dumped_quantity": quantity},
            reason,
            actor,
            trace_type=TRACE_DUMP_PRODUCT,
        )
        db.session.flush()
        return product

    product = run_in_transaction(_op, label="dump_product")
    current_app.logger.info("Dumped %d unit(s) of product %s (%s)", quantity, product.id, reason)
    return product
