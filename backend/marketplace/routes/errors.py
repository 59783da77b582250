# Overview: Shared JSON error responses for API routes.

from flask import current_app, jsonify

from ..errors import MarketplaceError


def error_response(exc: MarketplaceError):
    """Structured JSON for an expected domain failure."""
    return jsonify(exc.to_dict()), exc.status_code


def internal_error(message: str):
    """Log the active exception with traceback and answer a generic 500."""
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500
