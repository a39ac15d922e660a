# Overview: Service-layer operations for stock; product lookup and quantity changes.

"""
Stock Ledger

Product lookups and validated quantity changes. Nothing here commits: callers
run these helpers inside run_in_transaction so the quantity change lands
together with the sale, adjustment or trace that caused it.

INVARIANTS:
- quantity never goes below zero
- total_price_cents == quantity x unit price after every change
"""

from __future__ import annotations

from ..extensions import db
from ..models import Product, SupplierBill
from ..validation import ValidationError
from .errors import InsufficientStock, ProductNotFound


def get_product(*, product_id: int | None = None, barcode: str | None = None) -> Product:
    """
    Resolve a product by id, or by barcode when the barcode is on a single bill.

    A barcode delivered on several bills names several rows; the caller has to
    say which one by id.
    """
    if product_id is not None:
        product = db.session.get(Product, product_id)
        if not product:
            raise ProductNotFound(f"Product {product_id} not found", details={"product_id": product_id})
        return product

    if barcode:
        rows = db.session.query(Product).filter_by(barcode=barcode).order_by(Product.id).all()
        if not rows:
            raise ProductNotFound(f"No product with barcode {barcode}", details={"barcode": barcode})
        if len(rows) > 1:
            raise ValidationError(
                f"Barcode {barcode} is on {len(rows)} bills; specify product_id",
                details={"barcode": barcode, "product_ids": [p.id for p in rows]},
            )
        return rows[0]

    raise ValidationError("product_id or barcode is required")


def get_bill_product(bill_number: str, barcode: str) -> tuple[SupplierBill, Product]:
    """The bill and its single line for `barcode`; ProductNotFound if either is gone."""
    bill = db.session.query(SupplierBill).filter_by(bill_number=bill_number).first()
    if not bill:
        raise ProductNotFound(
            f"Bill {bill_number} not found",
            details={"bill_number": bill_number, "barcode": barcode},
        )
    product = db.session.query(Product).filter_by(bill_id=bill.id, barcode=barcode).first()
    if not product:
        raise ProductNotFound(
            f"No product with barcode {barcode} on bill {bill_number}",
            details={"bill_number": bill_number, "barcode": barcode},
        )
    return bill, product


def recompute_total_price(product: Product) -> None:
    unit_price = product.unit_price_cents
    if unit_price is None:
        unit_price = product.retail_price_cents or 0
    product.total_price_cents = product.quantity * unit_price


def reserve_stock(requested: dict[int, int]) -> list[tuple[Product, int]]:
    """
    Validate and stage quantity decrements for several products at once.

    `requested` maps product id -> total units. Every product is read before
    anything is changed; if any of them is short, InsufficientStock lists all
    short items and no product is touched.
    """
    products: list[tuple[Product, int]] = []
    insufficient = []
    for product_id, qty in requested.items():
        product = get_product(product_id=product_id)
        if product.quantity < qty:
            insufficient.append({
                "product_id": product.id,
                "barcode": product.barcode,
                "name": product.name,
                "requested_quantity": qty,
                "available_quantity": product.quantity,
            })
        products.append((product, qty))

    if insufficient:
        first = insufficient[0]
        raise InsufficientStock(
            f"Not enough stock for \"{first['name']}\". "
            f"Available: {first['available_quantity']}, Requested: {first['requested_quantity']}.",
            details={"items": insufficient},
        )

    for product, qty in products:
        product.quantity -= qty
        recompute_total_price(product)
    return products


def remove_units(product: Product, quantity: int) -> None:
    """Take `quantity` units out of stock, refusing to go below zero."""
    if quantity > product.quantity:
        raise InsufficientStock(
            f"Cannot remove {quantity} units of \"{product.name}\"; only {product.quantity} in stock",
            details={
                "product_id": product.id,
                "requested_quantity": quantity,
                "available_quantity": product.quantity,
            },
        )
    product.quantity -= quantity
    recompute_total_price(product)
