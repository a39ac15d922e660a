# Overview: Flask API routes for product lookups and stock write-offs.

"""
Product Routes

Products are created through bill intake (POST /api/suppliers/<id>/bills);
these endpoints read them and write off damaged stock.
"""

from flask import Blueprint, jsonify

from ..extensions import db
from ..models import Product, SupplierBill
from ..services import stock_service, supplier_service
from ..services.errors import RecordNotFound
from .common import CLIENT_ERRORS, error_response, internal_error, json_body


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = stock_service.get_product(product_id=product_id)
        return jsonify(product.to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)


@products_bp.get("/barcode/<barcode>")
def get_product_by_barcode_route(barcode: str):
    """
    Resolve a scanned barcode.

    Returns:
        200: Product
        400: Barcode is on several bills (details.product_ids lists them)
        404: Unknown barcode
    """
    try:
        product = stock_service.get_product(barcode=barcode)
        return jsonify(product.to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)


@products_bp.get("/bills/<bill_number>")
def list_bill_products_route(bill_number: str):
    """All product rows of one bill, with the bill-level figures once."""
    bill = db.session.query(SupplierBill).filter_by(bill_number=bill_number).first()
    if not bill:
        return error_response(RecordNotFound(f"Bill {bill_number} not found", details={"bill_number": bill_number}))

    products = db.session.query(Product).filter_by(bill_id=bill.id).order_by(Product.id).all()
    return jsonify({
        "bill": bill.to_dict(),
        "items": [p.to_dict() for p in products],
        "count": len(products),
    })


@products_bp.post("/<int:product_id>/dump")
def dump_product_route(product_id: int):
    """
    Write off damaged stock.

    Request body:
    {
        "quantity": 2,
        "reason": "Water damage",  // required
        "actor": "staff-7"         // optional
    }
    """
    try:
        data = json_body()
        product = supplier_service.dump_product(
            product_id,
            data.get("quantity"),
            reason=data.get("reason"),
            actor=data.get("actor"),
        )
        return jsonify(product.to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to dump product")
