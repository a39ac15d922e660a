# Overview: Flask API routes for supplier-bill and customer-due payments.

# backend/shopledger/routes/payments.py
"""
Payment Routes

Supplier side: payments against a bill, keyed by bill number.
Customer side: payments against one or more due sales of a customer.

Balances in every response are recomputed from the payment log.
"""

from flask import Blueprint, jsonify, request

from ..services import payment_service
from .common import CLIENT_ERRORS, error_response, internal_error, json_body


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


# =============================================================================
# SUPPLIER BILLS
# =============================================================================

@payments_bp.get("/bills/<bill_number>")
def get_bill_payments_route(bill_number: str):
    """Bill balance plus its payments, newest first."""
    try:
        return jsonify({
            "balance": payment_service.get_bill_balance(bill_number),
            "items": payment_service.list_supplier_payments(bill_number),
        })
    except CLIENT_ERRORS as e:
        return error_response(e)


@payments_bp.post("/bills/<bill_number>")
def record_supplier_payment_route(bill_number: str):
    """
    Request body:
    {
        "amount_cents": 10000,
        "payment_method": "Cash",
        "reference": "CHK-001",   // optional
        "paid_at": "...",         // optional ISO-8601
        "actor": "..."
    }

    Returns:
        201: {payment, balance}
        400: amount <= 0 or above the remaining balance
        404: Unknown bill
    """
    try:
        data = json_body()
        txn = payment_service.record_supplier_payment(
            bill_number,
            data.get("amount_cents"),
            data.get("payment_method"),
            reference=data.get("reference"),
            paid_at=data.get("paid_at"),
            actor=data.get("actor"),
        )
        return jsonify({
            "payment": txn.to_dict(),
            "balance": payment_service.get_bill_balance(bill_number),
        }), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record supplier payment")


@payments_bp.delete("/bills/<bill_number>")
def delete_bill_payments_route(bill_number: str):
    """Remove every payment of the bill and reset its base paid amount. Requires reason."""
    try:
        data = request.get_json(silent=True) or {}
        reason = data.get("reason") or request.args.get("reason")
        actor = data.get("actor") or request.args.get("actor")
        result = payment_service.delete_all_supplier_payments(bill_number, reason=reason, actor=actor)
        return jsonify(result)
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete supplier payments")


@payments_bp.patch("/supplier/<int:transaction_id>")
def edit_supplier_payment_route(transaction_id: int):
    """Only amount_cents, payment_method and reference can be changed."""
    try:
        data = json_body()
        txn = payment_service.edit_supplier_payment(
            transaction_id,
            amount_cents=data.get("amount_cents"),
            method=data.get("payment_method"),
            reference=data.get("reference"),
        )
        return jsonify({
            "payment": txn.to_dict(),
            "balance": payment_service.get_bill_balance(txn.bill_number),
        })
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to edit supplier payment")


# =============================================================================
# CUSTOMER DUES
# =============================================================================

@payments_bp.get("/customers/<customer_number>")
def get_customer_payments_route(customer_number: str):
    """
    Query params:
    - outstanding_only: only sales with something left to pay (default: false)
    """
    outstanding_only = request.args.get("outstanding_only", "false").lower() == "true"
    return jsonify({
        "dues": payment_service.get_customer_dues(customer_number, outstanding_only=outstanding_only),
        "items": payment_service.list_customer_payments(customer_number),
    })


@payments_bp.post("/customers/<customer_number>")
def record_customer_payment_route(customer_number: str):
    """
    Request body:
    {
        "sales_paid": [
            {"sale_id": 12, "amount_cents": 5000, "product_ids": [3]},
            {"sale_id": 15, "amount_cents": 2000}
        ],
        "method": "Cash",
        "reference": "...",
        "notes": "...",
        "customer_name": "...",
        "actor": "..."
    }
    """
    try:
        data = json_body()
        txn = payment_service.record_customer_payment(
            customer_number,
            data.get("sales_paid"),
            data.get("method"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor=data.get("actor"),
            customer_name=data.get("customer_name"),
        )
        return jsonify({
            "payment": txn.to_dict(),
            "dues": payment_service.get_customer_dues(customer_number),
        }), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record customer payment")


@payments_bp.patch("/customer/<int:transaction_id>")
def edit_customer_payment_route(transaction_id: int):
    try:
        data = json_body()
        txn = payment_service.edit_customer_payment(
            transaction_id,
            amount_cents=data.get("amount_cents"),
            method=data.get("method"),
            reference=data.get("reference"),
        )
        return jsonify({"payment": txn.to_dict()})
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to edit customer payment")


@payments_bp.get("/sales/<int:sale_id>")
def get_sale_balance_route(sale_id: int):
    try:
        return jsonify(payment_service.get_sale_balance(sale_id))
    except CLIENT_ERRORS as e:
        return error_response(e)
