# Overview: Flask API routes for the delivery leg of product orders.

"""
Delivery API Routes

- Sellers (or admins) assign a delivery partner to an order
- The assigned partner advances delivery_status one step at a time:
  ASSIGNED -> PICKED_UP -> IN_TRANSIT -> DELIVERED
- Order.status is never changed here
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..permissions import ADMIN_ROLES, ROLE_DELIVERY, SELLER_ROLES
from ..decorators import require_auth, require_role
from ..services import order_service
from ..validation import require_json_object
from .errors import error_response, internal_error


delivery_bp = Blueprint("delivery", __name__, url_prefix="/api/delivery")


@delivery_bp.post("/orders/<int:order_id>/assign")
@require_auth
@require_role(*(SELLER_ROLES | ADMIN_ROLES))
def assign_delivery_partner_route(order_id: int):
    """
    Request body:
    {
        "delivery_partner_id": 21
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.assign_delivery_partner(
            g.current_user, order_id, data.get("delivery_partner_id"),
        )
        return jsonify({"order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to assign delivery partner")


@delivery_bp.post("/orders/<int:order_id>/status")
@require_auth
@require_role(ROLE_DELIVERY)
def update_delivery_status_route(order_id: int):
    """
    Request body:
    {
        "delivery_status": "PICKED_UP"
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        order = order_service.update_delivery_status(
            g.current_user, order_id, data.get("delivery_status"),
        )
        return jsonify({"order": order.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update delivery status")


@delivery_bp.get("/orders")
@require_auth
@require_role(ROLE_DELIVERY)
def list_assigned_orders_route():
    try:
        orders = order_service.list_orders(g.current_user, side="delivering")
        return jsonify({"orders": [o.to_dict() for o in orders], "count": len(orders)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list assigned orders")
