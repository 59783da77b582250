# Overview: Flask API routes for tailoring invoices.

from flask import Blueprint, jsonify, g

from ..errors import MarketplaceError
from ..permissions import ROLE_CUSTOMER
from ..decorators import require_auth, require_role
from ..services import invoice_service
from .errors import error_response, internal_error


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.post("/tailoring-orders/<int:tailoring_order_id>")
@require_auth
@require_role(ROLE_CUSTOMER)
def generate_invoice_route(tailoring_order_id: int):
    """
    Generate the invoice of a delivered and paid tailoring order.

    Returns:
        201: Invoice created
        402: No completed payment
        403: Not the customer of this order
        404: Order not found
        409: Order not delivered, or invoice already generated
    """
    try:
        invoice = invoice_service.generate_invoice(g.current_user, tailoring_order_id)
        return jsonify({"invoice": invoice.to_dict()}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to generate invoice")


@invoices_bp.get("/")
@require_auth
def list_invoices_route():
    try:
        invoices = invoice_service.list_my_invoices(g.current_user)
        return jsonify({"invoices": [i.to_dict() for i in invoices], "count": len(invoices)}), 200
    except Exception:
        return internal_error("Failed to list invoices")


@invoices_bp.get("/<int:invoice_id>")
@require_auth
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(g.current_user, invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get invoice")
