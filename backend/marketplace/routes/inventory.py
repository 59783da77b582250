# Overview: Flask API routes for seller inventory; parses input and returns JSON responses.

"""
Inventory API Routes

Item owners (supplier, retailer, tailor) manage their own tracked stock.
stock_quantity is set on create and afterwards only moves through restock
(increase) or order placement (conditional decrease).
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..permissions import INVENTORY_OWNER_ROLES
from ..decorators import require_auth, require_role
from ..services import inventory_service
from ..validation import require_json_object
from .errors import error_response, internal_error


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/")
@require_auth
@require_role(*INVENTORY_OWNER_ROLES)
def list_items_route():
    try:
        items = inventory_service.list_items(g.current_user.id)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200
    except Exception:
        return internal_error("Failed to list inventory")


@inventory_bp.get("/low-stock")
@require_auth
@require_role(*INVENTORY_OWNER_ROLES)
def list_low_stock_route():
    try:
        items = inventory_service.list_low_stock(g.current_user.id)
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200
    except Exception:
        return internal_error("Failed to list low-stock inventory")


@inventory_bp.post("/")
@require_auth
@require_role(*INVENTORY_OWNER_ROLES)
def add_item_route():
    """
    Request body:
    {
        "name": "Cotton fabric",
        "unit": "meter",
        "unit_price_cents": 25000,
        "stock_quantity": 40,       (optional, default 0)
        "min_stock_quantity": 10    (optional, default 10)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        item = inventory_service.add_item(g.current_user, data)
        return jsonify({"item": item.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to add inventory item")


@inventory_bp.patch("/<int:item_id>")
@require_auth
@require_role(*INVENTORY_OWNER_ROLES)
def update_item_route(item_id: int):
    """Update name, unit, unit_price_cents or min_stock_quantity."""
    try:
        data = require_json_object(request.get_json(silent=True))
        item = inventory_service.update_item(g.current_user, item_id, data)
        return jsonify({"item": item.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update inventory item")


@inventory_bp.post("/<int:item_id>/restock")
@require_auth
@require_role(*INVENTORY_OWNER_ROLES)
def restock_route(item_id: int):
    """
    Request body:
    {
        "quantity": 25
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        item = inventory_service.restock(g.current_user, item_id, data.get("quantity"))
        return jsonify({"item": item.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to restock inventory item")
