"""
Invoice generation tests.

Verifies:
- One invoice per delivered + paid tailoring order, numbered INV-<year>-<order id>
- Check order: not found -> not the customer -> not delivered -> unpaid -> duplicate
- Invoices are visible to their customer, their tailor and admins
"""

from datetime import date

import pytest

from marketplace.errors import (
    DuplicateInvoiceError,
    ForbiddenError,
    NotFoundError,
    OrderNotDeliveredError,
    PaymentIncompleteError,
)
from marketplace.models import Invoice, Payment, TailoringOrder
from marketplace.services import invoice_service, tailoring_service
from marketplace.time_utils import utcnow


def _tailoring_order(db_session, customer, tailor, garment, *, order_id=None, status="DELIVERED"):
    order = TailoringOrder(
        id=order_id,
        customer_id=customer.id,
        tailor_id=tailor.id,
        garment_id=garment.id,
        price_cents=None if status == "PLACED" else 50000,
        delivery_date=None if status == "PLACED" else date(2025, 12, 1),
        status=status,
    )
    db_session.add(order)
    db_session.commit()
    return order


def _paid(db_session, order, customer):
    payment = Payment(
        tailoring_order_id=order.id,
        payer_id=customer.id,
        payer_role=customer.role,
        amount_cents=50000,
        payment_mode="UPI",
        payment_status="paid",
    )
    db_session.add(payment)
    db_session.commit()
    return payment


def test_invoice_for_order_42(db_session, customer, tailor, garment):
    _tailoring_order(db_session, customer, tailor, garment, order_id=42, status="PLACED")

    tailoring_service.quote(tailor, 42, price_cents=50000, delivery_date="2025-12-01")
    tailoring_service.confirm(customer, 42)
    _, payment = tailoring_service.pay(customer, 42)
    tailoring_service.start_work(tailor, 42)
    tailoring_service.complete_work(tailor, 42)
    assert tailoring_service.confirm_delivery(customer, 42).status == "DELIVERED"

    invoice = invoice_service.generate_invoice(customer, 42)

    assert invoice.invoice_no == f"INV-{utcnow().year}-42"
    assert invoice.amount_cents == 50000
    assert invoice.payment_id == payment.id
    assert invoice.customer_id == customer.id
    assert invoice.tailor_id == tailor.id

    with pytest.raises(DuplicateInvoiceError):
        invoice_service.generate_invoice(customer, 42)
    assert db_session.query(Invoice).count() == 1


def test_invoice_after_full_flow(customer, delivered_tailoring_order):
    invoice = invoice_service.generate_invoice(customer, delivered_tailoring_order.id)
    assert invoice.tailoring_order_id == delivered_tailoring_order.id
    assert invoice.to_dict()["invoice_no"].startswith("INV-")


def test_format_invoice_no():
    assert invoice_service.format_invoice_no(2025, 7) == "INV-2025-7"


def test_missing_order_not_found(customer):
    with pytest.raises(NotFoundError):
        invoice_service.generate_invoice(customer, 31337)


@pytest.mark.parametrize("actor_name", ["tailor", "other_customer", "admin"])
def test_only_customer_generates(request, customer, delivered_tailoring_order, actor_name):
    actor = request.getfixturevalue(actor_name)
    with pytest.raises(ForbiddenError):
        invoice_service.generate_invoice(actor, delivered_tailoring_order.id)


@pytest.mark.parametrize("status", ["PLACED", "PAID", "IN_PROGRESS", "COMPLETED", "CANCELLED"])
def test_not_delivered(db_session, customer, tailor, garment, status):
    order = _tailoring_order(db_session, customer, tailor, garment, status=status)
    _paid(db_session, order, customer)
    with pytest.raises(OrderNotDeliveredError) as exc_info:
        invoice_service.generate_invoice(customer, order.id)
    assert exc_info.value.details["current_status"] == status


def test_delivered_without_payment(db_session, customer, tailor, garment):
    order = _tailoring_order(db_session, customer, tailor, garment)
    with pytest.raises(PaymentIncompleteError):
        invoice_service.generate_invoice(customer, order.id)
    assert db_session.query(Invoice).count() == 0


def test_forbidden_checked_before_state(db_session, customer, other_customer, tailor, garment):
    order = _tailoring_order(db_session, customer, tailor, garment, status="PLACED")
    with pytest.raises(ForbiddenError):
        invoice_service.generate_invoice(other_customer, order.id)


def test_invoice_visibility(customer, other_customer, tailor, other_tailor, admin, delivered_tailoring_order):
    invoice = invoice_service.generate_invoice(customer, delivered_tailoring_order.id)

    for actor in (customer, tailor, admin):
        assert invoice_service.get_invoice(actor, invoice.id).id == invoice.id
        assert [i.id for i in invoice_service.list_my_invoices(actor)] == [invoice.id]

    for outsider in (other_customer, other_tailor):
        assert invoice_service.list_my_invoices(outsider) == []
        with pytest.raises(NotFoundError):
            invoice_service.get_invoice(outsider, invoice.id)


def test_cancelled_tailoring_order_never_invoiced(customer, tailor, garment):
    order = tailoring_service.place_tailoring_order(customer, tailor_id=tailor.id, garment_id=garment.id)
    tailoring_service.cancel(customer, order.id)
    with pytest.raises(OrderNotDeliveredError):
        invoice_service.generate_invoice(customer, order.id)
