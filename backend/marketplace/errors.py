# Overview: Domain error taxonomy shared by services and routes.

"""
Marketplace Errors

Every expected, caller-recoverable failure of the order/payment/settlement core
is a MarketplaceError subclass carrying:
- status_code: HTTP status the API layer answers with
- code: stable machine-readable identifier
- details: extra fields that are safe to expose (never internal state)

Anything that is NOT a MarketplaceError is an internal failure: routes log it
and answer a generic 500.
"""

from __future__ import annotations


class MarketplaceError(Exception):
    status_code = 400
    code = "error"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.details)
        return payload


class ValidationError(MarketplaceError, ValueError):
    """400-level input problem."""
    status_code = 400
    code = "validation_error"


class NotFoundError(MarketplaceError):
    """Referenced entity does not exist or is not visible to the caller."""
    status_code = 404
    code = "not_found"


class ForbiddenError(MarketplaceError):
    """Actor's role or ownership does not permit the operation."""
    status_code = 403
    code = "forbidden"


class InvalidTransitionError(MarketplaceError):
    """Requested status is not reachable from the current status."""
    status_code = 409
    code = "invalid_transition"


class OrderNotDeliveredError(InvalidTransitionError):
    code = "order_not_delivered"


class PaymentRequiredError(MarketplaceError):
    """Transition requires a prior paid payment that is absent."""
    status_code = 402
    code = "payment_required"


class PaymentIncompleteError(PaymentRequiredError):
    code = "payment_incomplete"


class InsufficientStockError(MarketplaceError):
    status_code = 409
    code = "insufficient_stock"

    def __init__(self, message: str, *, available: int, requested: int):
        super().__init__(message, available=available, requested=requested)
        self.available = available
        self.requested = requested


class ConflictError(MarketplaceError):
    """A concurrent transaction already altered the precondition."""
    status_code = 409
    code = "conflict"


class InvalidStateError(ConflictError):
    """Conditional update matched no row: wrong state or wrong owner."""
    code = "invalid_state"


class DuplicateInvoiceError(ConflictError):
    code = "duplicate_invoice"


class PayoutAlreadyPaidError(ConflictError):
    code = "payout_already_paid"
