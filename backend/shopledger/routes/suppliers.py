# Overview: Flask API routes for suppliers, bill intake and delete traces.

from flask import Blueprint, jsonify, request

from ..services import supplier_service, trace_service
from .common import CLIENT_ERRORS, error_response, internal_error, json_body


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.post("/")
def create_supplier_route():
    """
    Request body:
    {
        "name": "Supplier Name",  // required
        "address": "...",
        "phone": "..."
    }
    """
    try:
        data = json_body()
        supplier = supplier_service.create_supplier(
            data.get("name"),
            address=data.get("address"),
            phone=data.get("phone"),
        )
        return jsonify(supplier.to_dict()), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create supplier")


@suppliers_bp.get("/")
def list_suppliers_route():
    suppliers = supplier_service.list_suppliers()
    return jsonify({
        "items": [s.to_dict() for s in suppliers],
        "count": len(suppliers),
    })


@suppliers_bp.delete("/<int:supplier_id>")
def delete_supplier_route(supplier_id: int):
    """Refused with 409 while the supplier still has products."""
    try:
        data = request.get_json(silent=True) or {}
        reason = data.get("reason") or request.args.get("reason")
        actor = data.get("actor") or request.args.get("actor")
        deleted = supplier_service.delete_supplier(supplier_id, reason=reason, actor=actor)
        return jsonify({"deleted": deleted})
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete supplier")


@suppliers_bp.post("/<int:supplier_id>/bills")
def register_bill_route(supplier_id: int):
    """
    Register a delivery.

    Request body:
    {
        "bill_number": "B1",
        "deal_amount_cents": 50000,
        "paid_amount_cents": 10000,
        "lines": [
            {"barcode": "890...", "name": "...", "quantity": 10,
             "unit_price_cents": 2500, "retail_price_cents": 3000}
        ]
    }
    """
    try:
        data = json_body()
        bill = supplier_service.register_bill(
            supplier_id,
            data.get("bill_number"),
            data.get("deal_amount_cents"),
            paid_amount_cents=data.get("paid_amount_cents", 0),
            lines=data.get("lines"),
        )
        body = bill.to_dict()
        body["items"] = [p.to_dict() for p in bill.products]
        return jsonify(body), 201
    except CLIENT_ERRORS as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to register bill")


@suppliers_bp.get("/traces")
def list_traces_route():
    """Query params: table, type."""
    traces = trace_service.list_delete_traces(
        table_name=request.args.get("table"),
        trace_type=request.args.get("type"),
    )
    return jsonify({
        "items": [t.to_dict() for t in traces],
        "count": len(traces),
    })
