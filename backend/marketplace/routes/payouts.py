# Overview: Flask API routes for payouts and settlement; parses input and returns JSON responses.

"""
Payout API Routes

ADMIN:
- Preview settlement-eligible sources with the computed commission split
- Create a payout over one or many sources of one beneficiary (pending or paid)
- Mark a pending payout as paid
- List all payouts

SELLERS:
- List own payouts
"""

from flask import Blueprint, request, jsonify, g

from ..errors import MarketplaceError
from ..permissions import ADMIN_ROLES, SELLER_ROLES
from ..decorators import require_auth, require_role
from ..services import payout_service
from ..validation import coerce_int, require_json_object
from .errors import error_response, internal_error


payouts_bp = Blueprint("payouts", __name__, url_prefix="/api/payouts")


def _optional_int_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    return coerce_int(name, raw)


@payouts_bp.get("/pending-settlements")
@require_auth
@require_role(*ADMIN_ROLES)
def pending_settlements_route():
    """
    Query params:
    - source_type: order | invoice
    - beneficiary_id: seller user id
    - context: product_order | tailoring_invoice | tailor_batch
    """
    try:
        rows = payout_service.list_pending_settlements(
            g.current_user,
            source_type=request.args.get("source_type"),
            beneficiary_id=_optional_int_arg("beneficiary_id"),
            context=request.args.get("context"),
        )
        return jsonify({"pending": rows, "count": len(rows)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list pending settlements")


@payouts_bp.post("/")
@require_auth
@require_role(*ADMIN_ROLES)
def create_payout_route():
    """
    Request body:
    {
        "source_type": "invoice",
        "source_ids": [4, 5, 6],
        "context": "tailor_batch",     (optional; defaults by source type/count)
        "mark_paid": false,            (optional)
        "payout_mode": "bank",         (optional)
        "transaction_ref": "NEFT-1",   (optional)
        "notes": "March settlement"    (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        payout = payout_service.create_payout(
            g.current_user,
            source_type=data.get("source_type"),
            source_ids=data.get("source_ids"),
            context=data.get("context"),
            mark_paid=data.get("mark_paid", False),
            payout_mode=data.get("payout_mode"),
            transaction_ref=data.get("transaction_ref"),
            notes=data.get("notes"),
        )
        return jsonify({"payout": payout.to_dict(include_sources=True)}), 201
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create payout")


@payouts_bp.post("/<int:payout_id>/mark-paid")
@require_auth
@require_role(*ADMIN_ROLES)
def mark_payout_paid_route(payout_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        payout = payout_service.mark_payout_paid(
            g.current_user,
            payout_id,
            payout_mode=data.get("payout_mode"),
            transaction_ref=data.get("transaction_ref"),
        )
        return jsonify({"payout": payout.to_dict(include_sources=True)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to mark payout paid")


@payouts_bp.get("/")
@require_auth
@require_role(*ADMIN_ROLES)
def list_payouts_route():
    try:
        payouts = payout_service.list_payouts(
            g.current_user,
            status=request.args.get("status"),
            beneficiary_id=_optional_int_arg("beneficiary_id"),
        )
        return jsonify({"payouts": [p.to_dict() for p in payouts], "count": len(payouts)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list payouts")


@payouts_bp.get("/mine")
@require_auth
@require_role(*SELLER_ROLES)
def my_payouts_route():
    try:
        payouts = payout_service.list_payouts_for_user(
            g.current_user, status=request.args.get("status"),
        )
        return jsonify({"payouts": [p.to_dict() for p in payouts], "count": len(payouts)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list payouts")


@payouts_bp.get("/<int:payout_id>")
@require_auth
def get_payout_route(payout_id: int):
    try:
        payout = payout_service.get_payout(g.current_user, payout_id)
        return jsonify({"payout": payout.to_dict(include_sources=True)}), 200
    except MarketplaceError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to get payout")
