# Overview: Flask API routes for product orders; parses input and returns JSON responses.

"""
Product Order API Routes

DESIGN:
- Buyers place orders against a seller's tracked inventory
- Retailers record walk-in counter sales
- Every status change goes through the order state machine
  (graph -> capacity -> payment gate -> conditional update)

SECURITY:
- All routes require a bearer token
- Role decorators gate the capacity; services check ownership of the order
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..permissions import BUYER_ROLES, ROLE_RETAILER
from ..decorators import require_auth, require_role
from ..services import order_service
from ..validation import require_json_object
from .errors import error_response, internal_error


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


# =============================================================================
# ORDER CREATION
# =============================================================================

@orders_bp.post("/")
@require_auth
@require_role(*BUYER_ROLES)
def create_order_route():
    """
    Place an order with one seller.

    Request body:
    {
        "seller_id": 7,
        "items": [{"inventory_item_id": 3, "quantity": 2}]
    }

    Returns:
        201: Order created (status=requested)
        400: Invalid input
        404: Seller or item not found
        409: Insufficient stock (includes "available")
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.place_order(
            g.current_user,
            data.get("seller_id"),
            data.get("items"),
        )
        return jsonify({"order": order.to_dict(include_items=True)}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create order")


@orders_bp.post("/walk-in")
@require_auth
@require_role(ROLE_RETAILER)
def create_walk_in_order_route():
    """
    Record a retailer counter sale of own stock.

    Request body:
    {
        "items": [{"inventory_item_id": 3, "quantity": 1}],
        "buyer_id": 12  (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.create_walk_in_order(
            g.current_user,
            data.get("items"),
            buyer_id=data.get("buyer_id"),
        )
        return jsonify({"order": order.to_dict(include_items=True)}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create walk-in order")


# =============================================================================
# ORDER QUERIES
# =============================================================================

@orders_bp.get("/")
@require_auth
def list_orders_route():
    """
    List orders visible to the caller.

    Query params:
    - side: buying | selling | delivering
    - status: order status filter
    """
    try:
        orders = order_service.list_orders(
            g.current_user,
            side=request.args.get("side"),
            status=request.args.get("status"),
        )
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list orders")


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.current_user, order_id)
        return jsonify({"order": order.to_dict(include_items=True)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get order")


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

@orders_bp.post("/<int:order_id>/status")
@require_auth
def change_order_status_route(order_id: int):
    """
    Move an order along its lifecycle.

    Request body:
    {
        "status": "dispatched"
    }

    Returns:
        200: Order updated (a pending payout is created on delivered)
        400: Unknown status
        402: Payment required
        403: Caller's capacity cannot make this transition
        404: Order not found
        409: Invalid transition or concurrent modification
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.change_order_status(g.current_user, order_id, data.get("status"))
        return jsonify({"order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change order status")
