# Overview: Flask API routes for tailoring orders; parses input and returns JSON responses.

"""
Tailoring API Routes

WORKFLOW (one actor per step):
    customer places      -> PLACED
    tailor quotes        -> QUOTED       (price + delivery date)
    customer confirms    -> CONFIRMED
    customer pays        -> PAID         (payment row, amount = quoted price)
    tailor starts        -> IN_PROGRESS
    tailor completes     -> COMPLETED
    customer confirms    -> DELIVERED
    customer cancels     -> CANCELLED    (while PLACED or QUOTED)

Errors from a step: 404 no such order, 403 not your order, 409 wrong state.

Tailors also keep a measurement template per garment: heads (Chest, Collar
Type) and, for dropdown heads, their allowed options.
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..permissions import ROLE_CUSTOMER, ROLE_TAILOR
from ..decorators import require_auth, require_role
from ..services import tailoring_service
from ..validation import require_json_object
from .errors import error_response, internal_error


tailoring_bp = Blueprint("tailoring", __name__, url_prefix="/api/tailoring")


# =============================================================================
# GARMENTS
# =============================================================================

@tailoring_bp.post("/garments")
@require_auth
@require_role(ROLE_TAILOR)
def create_garment_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        garment = tailoring_service.create_garment(g.current_user, data.get("name"))
        return jsonify({"garment": garment.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create garment")


@tailoring_bp.get("/tailors/<int:tailor_id>/garments")
@require_auth
def list_garments_route(tailor_id: int):
    try:
        garments = tailoring_service.list_garments(tailor_id)
        return jsonify({"garments": [gm.to_dict() for gm in garments]}), 200
    except Exception:
        return internal_error("Failed to list garments")


# =============================================================================
# MEASUREMENTS
# =============================================================================

@tailoring_bp.post("/measurement-heads")
@require_auth
@require_role(ROLE_TAILOR)
def add_measurement_head_route():
    """
    Request body:
    {
        "garment_id": 9,
        "label": "Chest",
        "field_type": "number",   (number | text | dropdown)
        "unit": "inch",           (optional: inch | cm)
        "is_required": true,      (optional, default false)
        "sort_order": 1           (optional, default 0)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        head = tailoring_service.add_measurement_head(g.current_user, data)
        return jsonify({"measurement_head": head.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add measurement head")


@tailoring_bp.post("/measurement-options")
@require_auth
@require_role(ROLE_TAILOR)
def add_measurement_option_route():
    """
    Request body:
    {
        "measurement_head_id": 3,
        "value": "Round"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        option = tailoring_service.add_measurement_option(
            g.current_user, data.get("measurement_head_id"), data.get("value"),
        )
        return jsonify({"measurement_option": option.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add measurement option")


@tailoring_bp.get("/garments/<int:garment_id>/measurement-heads")
@require_auth
@require_role(ROLE_TAILOR)
def list_measurement_heads_route(garment_id: int):
    try:
        heads = tailoring_service.list_measurement_heads(g.current_user, garment_id)
        return jsonify({"measurement_heads": [h.to_dict() for h in heads], "count": len(heads)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list measurement heads")


# =============================================================================
# ORDERS
# =============================================================================

@tailoring_bp.post("/orders")
@require_auth
@require_role(ROLE_CUSTOMER)
def place_tailoring_order_route():
    """
    Request body:
    {
        "tailor_id": 5,
        "garment_id": 9,
        "notes": "Slim fit"  (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = tailoring_service.place_tailoring_order(
            g.current_user,
            tailor_id=data.get("tailor_id"),
            garment_id=data.get("garment_id"),
            notes=data.get("notes"),
        )
        return jsonify({"tailoring_order": order.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to place tailoring order")


@tailoring_bp.get("/orders")
@require_auth
def list_tailoring_orders_route():
    try:
        orders = tailoring_service.list_tailoring_orders(
            g.current_user, status=request.args.get("status"),
        )
        return jsonify({"tailoring_orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list tailoring orders")


@tailoring_bp.get("/orders/<int:order_id>")
@require_auth
def get_tailoring_order_route(order_id: int):
    try:
        order = tailoring_service.get_tailoring_order(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get tailoring order")


# =============================================================================
# TRANSITIONS
# =============================================================================

@tailoring_bp.post("/orders/<int:order_id>/quote")
@require_auth
@require_role(ROLE_TAILOR)
def quote_route(order_id: int):
    """
    Request body:
    {
        "price_cents": 50000,
        "delivery_date": "2025-12-01"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = tailoring_service.quote(
            g.current_user,
            order_id,
            price_cents=data.get("price_cents"),
            delivery_date=data.get("delivery_date"),
        )
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to quote tailoring order")


@tailoring_bp.post("/orders/<int:order_id>/confirm")
@require_auth
@require_role(ROLE_CUSTOMER)
def confirm_route(order_id: int):
    try:
        order = tailoring_service.confirm(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to confirm tailoring order")


@tailoring_bp.post("/orders/<int:order_id>/cancel")
@require_auth
@require_role(ROLE_CUSTOMER)
def cancel_route(order_id: int):
    try:
        order = tailoring_service.cancel(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to cancel tailoring order")


@tailoring_bp.post("/orders/<int:order_id>/pay")
@require_auth
@require_role(ROLE_CUSTOMER)
def pay_route(order_id: int):
    """
    Request body (all optional):
    {
        "payment_mode": "UPI",
        "transaction_ref": "UPI-12345"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order, payment = tailoring_service.pay(
            g.current_user,
            order_id,
            payment_mode=data.get("payment_mode"),
            transaction_ref=data.get("transaction_ref"),
        )
        return jsonify({"tailoring_order": order.to_dict(), "payment": payment.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to pay tailoring order")


@tailoring_bp.post("/orders/<int:order_id>/start")
@require_auth
@require_role(ROLE_TAILOR)
def start_work_route(order_id: int):
    try:
        order = tailoring_service.start_work(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to start tailoring work")


@tailoring_bp.post("/orders/<int:order_id>/complete")
@require_auth
@require_role(ROLE_TAILOR)
def complete_work_route(order_id: int):
    try:
        order = tailoring_service.complete_work(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to complete tailoring work")


@tailoring_bp.post("/orders/<int:order_id>/confirm-delivery")
@require_auth
@require_role(ROLE_CUSTOMER)
def confirm_delivery_route(order_id: int):
    try:
        order = tailoring_service.confirm_delivery(g.current_user, order_id)
        return jsonify({"tailoring_order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to confirm tailoring delivery")
