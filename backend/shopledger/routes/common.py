# Overview: Shared JSON error mapping for the ledger blueprints.

from flask import current_app, jsonify, request

from ..services.errors import LedgerError
from ..validation import ConflictError, ValidationError

# Errors a client can act on. Anything else is a 500.
CLIENT_ERRORS = (LedgerError, ValidationError, ConflictError)


def error_response(exc: Exception):
    """
    Map a service error to {"error", "code", "retryable", "details"} and its
    HTTP status (400 input, 404 not found, 409 conflict).
    """
    body = {
        "error": str(exc),
        "code": getattr(exc, "code", "ERROR"),
        "retryable": getattr(exc, "retryable", False),
        "details": getattr(exc, "details", {}),
    }
    return jsonify(body), getattr(exc, "http_status", 400)


def internal_error(message: str):
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error", "code": "INTERNAL_ERROR"}), 500


def json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
