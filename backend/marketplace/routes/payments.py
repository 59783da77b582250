# Overview: Flask API routes for product order payments; parses input and returns JSON responses.

"""
Payment Recording API Routes

DESIGN:
- One payment settles a product order in full
- Paying a requested order accepts it
- transaction_ref makes the call safe to retry: a replay returns the
  original payment with 200 instead of 201
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..decorators import require_auth
from ..services import payment_service
from ..validation import coerce_int, require_json_object
from .errors import error_response, internal_error


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.post("/")
@require_auth
def record_payment_route():
    """
    Record a payment for a product order.

    Request body:
    {
        "order_id": 123,
        "amount_cents": 100000,
        "payment_mode": "UPI",          (optional, default MANUAL)
        "transaction_ref": "UPI-98765"  (optional idempotency key)
    }

    Returns:
        201: Payment recorded
        200: Replay of an earlier payment with the same transaction_ref
        400: Invalid input or amount differs from the order total
        404: Order not found
        409: Order cancelled or already paid
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order_id = data.get("order_id")
        if order_id is None:
            return jsonify({"error": "order_id is required", "code": "validation_error"}), 400

        payment, created = payment_service.record_order_payment(
            g.current_user,
            coerce_int("order_id", order_id),
            amount_cents=data.get("amount_cents"),
            payment_mode=data.get("payment_mode"),
            transaction_ref=data.get("transaction_ref"),
        )
        return jsonify({"payment": payment.to_dict(), "replayed": not created}), (201 if created else 200)
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to record payment")


@payments_bp.get("/orders/<int:order_id>")
@require_auth
def list_order_payments_route(order_id: int):
    try:
        payments = payment_service.list_order_payments(g.current_user, order_id)
        return jsonify({"payments": [p.to_dict() for p in payments]}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list payments")
