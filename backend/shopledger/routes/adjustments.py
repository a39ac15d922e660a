# Overview: Flask API routes for supplier return adjustments.

"""
Supplier Adjustment Routes

Edit and delete require a "reason"; both are recorded (edit_reason on the
row, a delete trace on delete).
"""

from flask import Blueprint, jsonify, request

from ..services import adjustment_service
from .common import CLIENT_ERRORS, error_response, internal_error, json_body


adjustments_bp = Blueprint("adjustments", __name__, url_prefix="/api/adjustments")


@adjustments_bp.post("/")
def create_adjustment_route():
    """
    Record a supplier return.

    Request body:
    {
        "supplier_id": 1,
        "bill_number": "B1",
        "barcode": "890...",
        "quantity": 2,
        "type": "bill_reduction",   // bill_reduction | return_replacement
        "note": "...",
        "actor": "..."
    }
    """
    try:
        data = json_body()
        adjustment = adjustment_service.create_adjustment(
            data.get("supplier_id"),
            data.get("bill_number"),
            data.get("barcode"),
            data.get("quantity"),
            data.get("type"),
            note=data.get("note"),
            actor=data.get("actor"),
        )
        return jsonify(adjustment.to_dict()), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create adjustment")


@adjustments_bp.get("/")
def list_adjustments_route():
    """Query params: bill_number, supplier_id, type."""
    adjustments = adjustment_service.list_adjustments(
        bill_number=request.args.get("bill_number"),
        supplier_id=request.args.get("supplier_id", type=int),
        adjustment_type=request.args.get("type"),
    )
    return jsonify({
        "items": [a.to_dict() for a in adjustments],
        "count": len(adjustments),
    })


@adjustments_bp.get("/<int:adjustment_id>")
def get_adjustment_route(adjustment_id: int):
    try:
        return jsonify(adjustment_service.get_adjustment(adjustment_id).to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)


@adjustments_bp.patch("/<int:adjustment_id>")
def edit_adjustment_route(adjustment_id: int):
    """
    Request body:
    {
        "quantity": 3,
        "type": "bill_reduction",   // optional
        "note": "...",              // optional
        "reason": "Counted again",  // required
        "actor": "..."
    }
    """
    try:
        data = json_body()
        adjustment = adjustment_service.edit_adjustment(
            adjustment_id,
            quantity=data.get("quantity"),
            adjustment_type=data.get("type"),
            note=data.get("note"),
            reason=data.get("reason"),
            actor=data.get("actor"),
        )
        return jsonify(adjustment.to_dict())
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to edit adjustment")


@adjustments_bp.delete("/<int:adjustment_id>")
def delete_adjustment_route(adjustment_id: int):
    """Body (or query string): reason (required), actor."""
    try:
        data = request.get_json(silent=True) or {}
        reason = data.get("reason") or request.args.get("reason")
        actor = data.get("actor") or request.args.get("actor")
        deleted = adjustment_service.delete_adjustment(adjustment_id, reason=reason, actor=actor)
        return jsonify({"deleted": deleted})
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete adjustment")
