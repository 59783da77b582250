# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Recording Service

WHY: A product order cannot enter production, be dispatched or be delivered
until it has been paid. This service records that payment and moves the order
from requested to accepted as a side effect.

DESIGN PRINCIPLES:
- One payment settles the whole order: amount must equal total_amount_cents
- The order row is locked while paying, and its payment flag flips with a
  conditional update, so two concurrent payers cannot both succeed
- transaction_ref is a caller idempotency key: replaying the same ref returns
  the original payment instead of writing a second row
- Only payment_status "paid" is written; refunds are outside this service
"""

from __future__ import annotations

from sqlalchemy import exists, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from ..models import Order, Payment, User
from ..models.orders import (
    ORDER_PAYMENT_PAID,
    ORDER_PAYMENT_UNPAID,
    ORDER_STATUS_ACCEPTED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_REQUESTED,
    PAYMENT_STATUS_PAID,
)
from ..permissions import is_admin
from ..validation import require_amount_cents
from marketplace.time_utils import utcnow
from .concurrency import apply_lock_timeout, lock_for_update, run_with_retry


# =============================================================================
# PAYMENT MODES (CONSTANTS)
# =============================================================================

PAYMENT_MODE_CASH = "CASH"
PAYMENT_MODE_CARD = "CARD"
PAYMENT_MODE_UPI = "UPI"
PAYMENT_MODE_BANK_TRANSFER = "BANK_TRANSFER"
PAYMENT_MODE_MANUAL = "MANUAL"

VALID_PAYMENT_MODES = [
    PAYMENT_MODE_CASH,
    PAYMENT_MODE_CARD,
    PAYMENT_MODE_UPI,
    PAYMENT_MODE_BANK_TRANSFER,
    PAYMENT_MODE_MANUAL,
]

MAX_TRANSACTION_REF_LENGTH = 128


def normalize_payment_mode(payment_mode: str | None) -> str:
    if payment_mode is None or str(payment_mode).strip() == "":
        return PAYMENT_MODE_MANUAL
    mode = str(payment_mode).strip().upper()
    if mode not in VALID_PAYMENT_MODES:
        raise ValidationError(f"Invalid payment_mode: {payment_mode}. Must be one of {VALID_PAYMENT_MODES}")
    return mode


def normalize_transaction_ref(transaction_ref) -> str | None:
    if transaction_ref is None:
        return None
    ref = str(transaction_ref).strip()
    if not ref:
        return None
    if len(ref) > MAX_TRANSACTION_REF_LENGTH:
        raise ValidationError(f"transaction_ref exceeds max length {MAX_TRANSACTION_REF_LENGTH}")
    return ref


def _can_pay(actor: User, order: Order) -> bool:
    if is_admin(actor.role):
        return True
    if order.buyer_id is not None and order.buyer_id == actor.id:
        return True
    # Sellers record cash collected on delivery and walk-in sales
    return order.seller_id == actor.id


def _replayed_payment(transaction_ref: str, *, order_id: int, payer_id: int) -> Payment | None:
    existing = db.session.query(Payment).filter_by(transaction_ref=transaction_ref).first()
    if existing is None:
        return None
    if existing.order_id != order_id or existing.payer_id != payer_id:
        raise ConflictError("transaction_ref already used for a different payment")
    return existing


def has_paid_payment(*, order_id: int | None = None, tailoring_order_id: int | None = None) -> bool:
    """True when at least one payment with payment_status 'paid' exists for the order."""
    if (order_id is None) == (tailoring_order_id is None):
        raise ValueError("exactly one of order_id / tailoring_order_id is required")
    if order_id is not None:
        condition = Payment.order_id == order_id
    else:
        condition = Payment.tailoring_order_id == tailoring_order_id
    return bool(
        db.session.query(
            exists().where(condition, Payment.payment_status == PAYMENT_STATUS_PAID)
        ).scalar()
    )


def record_order_payment(
    actor: User,
    order_id: int,
    *,
    amount_cents,
    payment_mode: str | None = None,
    transaction_ref: str | None = None,
) -> tuple[Payment, bool]:
    """
    Record a payment for a product order.

    Returns (payment, created). created is False when transaction_ref matched
    an earlier payment and nothing was written.

    Effects (one transaction):
    - payments row with payment_status 'paid'
    - order.payment_status unpaid -> paid (conditional)
    - order.status requested -> accepted (conditional; later states untouched)
    """
    amount_cents = require_amount_cents("amount_cents", amount_cents)
    payment_mode = normalize_payment_mode(payment_mode)
    transaction_ref = normalize_transaction_ref(transaction_ref)

    def _op():
        apply_lock_timeout()

        if transaction_ref:
            replay = _replayed_payment(transaction_ref, order_id=order_id, payer_id=actor.id)
            if replay is not None:
                return replay, False

        order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
        if order is None or not _can_pay(actor, order):
            raise NotFoundError(f"Order {order_id} not found")
        if order.status == ORDER_STATUS_CANCELLED:
            raise InvalidTransitionError("Cannot pay a cancelled order")
        if order.payment_status == ORDER_PAYMENT_PAID:
            raise ConflictError(f"Order {order_id} is already paid")
        if amount_cents != order.total_amount_cents:
            raise ValidationError(
                "amount_cents must equal the order total",
                expected_amount_cents=order.total_amount_cents,
            )

        now = utcnow()
        flipped = db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.payment_status == ORDER_PAYMENT_UNPAID)
            .values(payment_status=ORDER_PAYMENT_PAID, version_id=Order.version_id + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount == 0:
            raise ConflictError(f"Order {order_id} is already paid")

        db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == ORDER_STATUS_REQUESTED)
            .values(status=ORDER_STATUS_ACCEPTED, version_id=Order.version_id + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )

        payment = Payment(
            order_id=order_id,
            payer_id=actor.id,
            payer_role=actor.role,
            amount_cents=amount_cents,
            payment_mode=payment_mode,
            payment_status=PAYMENT_STATUS_PAID,
            transaction_ref=transaction_ref,
            created_at=now,
        )
        db.session.add(payment)
        db.session.commit()
        db.session.refresh(order)
        return payment, True

    try:
        return run_with_retry(_op)
    except IntegrityError:
        if not transaction_ref:
            raise
        # Lost a race on the same transaction_ref
        replay = _replayed_payment(transaction_ref, order_id=order_id, payer_id=actor.id)
        if replay is None:
            raise
        return replay, False


def list_order_payments(actor: User, order_id: int) -> list[Payment]:
    order = db.session.get(Order, order_id)
    if order is None or not _can_pay(actor, order):
        raise NotFoundError(f"Order {order_id} not found")
    return (
        db.session.query(Payment)
        .filter(Payment.order_id == order_id)
        .order_by(Payment.created_at.asc(), Payment.id.asc())
        .all()
    )
