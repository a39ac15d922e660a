# Overview: Flask API routes for checkout and sale lookups.

"""
Sales Routes

POST /api/sales/checkout turns a cart into a committed sale in one
transaction (stock, invoice counter and sale row together).
"""

from flask import Blueprint, jsonify, request

from ..services import sales_service
from .common import CLIENT_ERRORS, error_response, internal_error, json_body


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
def checkout_route():
    """
    Checkout a cart.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}, {"barcode": "890...", "quantity": 1}],
        "vat_percent": 5,
        "discount_type": "percent",   // percent | fixed
        "discount_value": 10,         // percent, or cents when fixed
        "shipping_cents": 0,
        "payment_method": "cash",     // cash | card | mfs | due_sale
        "paid_cents": 0,              // due_sale only: collected up front
        "customer_name": "...",
        "customer_number": "...",     // required for due_sale
        "staff_id": "...",
        "sale_date": "2024-03-01"     // optional backdate
    }

    Returns:
        201: Sale with items
        400: Invalid input / insufficient stock (details.items lists shortfalls)
        404: Unknown product
        409: Store conflict, retry the request
    """
    try:
        data = json_body()
        sale = sales_service.checkout(
            data.get("items"),
            vat_percent=data.get("vat_percent", 0),
            discount_type=data.get("discount_type", sales_service.DISCOUNT_PERCENT),
            discount_value=data.get("discount_value", 0),
            shipping_cents=data.get("shipping_cents", 0),
            payment_method=data.get("payment_method", sales_service.PAYMENT_CASH),
            customer_name=data.get("customer_name"),
            customer_number=data.get("customer_number"),
            staff_id=data.get("staff_id"),
            sale_date=data.get("sale_date"),
            paid_cents=data.get("paid_cents"),
        )
        return jsonify(sale.to_dict()), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Checkout failed")


@sales_bp.get("/<int:sale_id>")
def get_sale_route(sale_id: int):
    try:
        return jsonify(sales_service.get_sale(sale_id).to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)


@sales_bp.get("/")
def list_sales_route():
    """
    Query params:
    - customer_number
    - payment_method
    - limit (default 100, max 500)
    """
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 500))
    sales = sales_service.list_sales(
        customer_number=request.args.get("customer_number"),
        payment_method=request.args.get("payment_method"),
        limit=limit,
    )
    return jsonify({
        "items": [s.to_dict(include_lines=False) for s in sales],
        "count": len(sales),
    })
