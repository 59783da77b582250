# Overview: Service-layer operations for invoices; encapsulates business logic and database work.

"""
Tailoring Invoice Service

INVARIANT: exactly one invoice per delivered + paid tailoring order.

Generation runs in one transaction holding a row lock on the tailoring order:
1. order exists                      -> NotFoundError
2. actor is the order's customer     -> ForbiddenError
3. status is DELIVERED               -> OrderNotDeliveredError
4. a 'paid' payment exists           -> PaymentIncompleteError
5. no invoice exists yet             -> DuplicateInvoiceError

The UNIQUE constraint on invoices.tailoring_order_id backs step 5 when the row
lock is not honored (SQLite) or two requests race past the check; the loser's
IntegrityError is reported as DuplicateInvoiceError.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    DuplicateInvoiceError,
    ForbiddenError,
    NotFoundError,
    OrderNotDeliveredError,
    PaymentIncompleteError,
)
from ..models import Invoice, Payment, TailoringOrder, User
from ..models.orders import PAYMENT_STATUS_PAID
from ..models.tailoring import TAILORING_STATUS_DELIVERED
from ..permissions import ROLE_TAILOR, is_admin
from marketplace.time_utils import utcnow
from .concurrency import apply_lock_timeout, lock_for_update, run_with_retry


def format_invoice_no(year: int, tailoring_order_id: int) -> str:
    return f"INV-{year}-{tailoring_order_id}"


def generate_invoice(customer: User, tailoring_order_id: int) -> Invoice:
    def _op():
        apply_lock_timeout()

        order = lock_for_update(
            db.session.query(TailoringOrder).filter_by(id=tailoring_order_id)
        ).populate_existing().first()
        if order is None:
            raise NotFoundError(f"Tailoring order {tailoring_order_id} not found")
        if order.customer_id != customer.id:
            raise ForbiddenError("Only the customer of this order can generate its invoice")
        if order.status != TAILORING_STATUS_DELIVERED:
            raise OrderNotDeliveredError(
                f"Tailoring order is {order.status}; invoice requires DELIVERED",
                current_status=order.status,
            )

        payment = (
            db.session.query(Payment)
            .filter(
                Payment.tailoring_order_id == tailoring_order_id,
                Payment.payment_status == PAYMENT_STATUS_PAID,
            )
            .order_by(Payment.id.asc())
            .first()
        )
        if payment is None:
            raise PaymentIncompleteError("Tailoring order has no completed payment")

        if db.session.query(Invoice.id).filter_by(tailoring_order_id=tailoring_order_id).first():
            raise DuplicateInvoiceError("Invoice already generated for this order")

        now = utcnow()
        invoice = Invoice(
            invoice_no=format_invoice_no(now.year, order.id),
            tailoring_order_id=order.id,
            payment_id=payment.id,
            customer_id=order.customer_id,
            tailor_id=order.tailor_id,
            amount_cents=order.price_cents,
            created_at=now,
        )
        db.session.add(invoice)
        db.session.commit()
        return invoice

    try:
        invoice = run_with_retry(_op)
    except IntegrityError:
        raise DuplicateInvoiceError("Invoice already generated for this order")

    current_app.logger.info(
        "Invoice %s generated for tailoring order %s (amount_cents=%s)",
        invoice.invoice_no, tailoring_order_id, invoice.amount_cents,
    )
    return invoice


def list_my_invoices(actor: User) -> list[Invoice]:
    query = db.session.query(Invoice)
    if actor.role == ROLE_TAILOR:
        query = query.filter(Invoice.tailor_id == actor.id)
    elif not is_admin(actor.role):
        query = query.filter(Invoice.customer_id == actor.id)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def get_invoice(actor: User, invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None or not (
        is_admin(actor.role) or actor.id in (invoice.customer_id, invoice.tailor_id)
    ):
        raise NotFoundError(f"Invoice {invoice_id} not found")
    return invoice
