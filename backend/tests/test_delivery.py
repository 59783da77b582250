"""
Delivery leg tests.

Verifies:
- Only the seller (or an admin) assigns a delivery partner
- The assigned partner advances delivery_status one step at a time
- delivery_status never changes Order.status
"""

import pytest

from marketplace.errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from marketplace.services import order_service


@pytest.fixture
def order(db_session, customer, supplier, make_item):
    item = make_item(supplier, price_cents=4000, stock=5)
    return order_service.place_order(customer, supplier.id, [{"inventory_item_id": item.id, "quantity": 1}])


@pytest.fixture
def assigned(supplier, delivery_partner, order):
    return order_service.assign_delivery_partner(supplier, order.id, delivery_partner.id)


def test_seller_assigns_partner(assigned, delivery_partner):
    assert assigned.delivery_partner_id == delivery_partner.id
    assert assigned.delivery_status == "ASSIGNED"
    assert assigned.status == "requested"


def test_admin_assigns_partner(admin, delivery_partner, order):
    updated = order_service.assign_delivery_partner(admin, order.id, delivery_partner.id)
    assert updated.delivery_status == "ASSIGNED"


def test_buyer_cannot_assign(customer, delivery_partner, order):
    with pytest.raises(ForbiddenError):
        order_service.assign_delivery_partner(customer, order.id, delivery_partner.id)


def test_assignee_must_be_delivery_partner(supplier, retailer, order):
    with pytest.raises(NotFoundError):
        order_service.assign_delivery_partner(supplier, order.id, retailer.id)


def test_cancelled_order_cannot_be_assigned(customer, supplier, delivery_partner, order):
    order_service.change_order_status(customer, order.id, "cancelled")
    with pytest.raises(InvalidTransitionError):
        order_service.assign_delivery_partner(supplier, order.id, delivery_partner.id)


def test_partner_walks_delivery_forward(delivery_partner, assigned):
    for step in ("PICKED_UP", "IN_TRANSIT", "DELIVERED"):
        updated = order_service.update_delivery_status(delivery_partner, assigned.id, step)
        assert updated.delivery_status == step
    assert updated.status == "requested"


def test_partner_cannot_skip_steps(delivery_partner, assigned):
    with pytest.raises(InvalidTransitionError) as exc_info:
        order_service.update_delivery_status(delivery_partner, assigned.id, "IN_TRANSIT")
    assert exc_info.value.details["current_delivery_status"] == "ASSIGNED"


def test_partner_cannot_go_back(delivery_partner, assigned):
    order_service.update_delivery_status(delivery_partner, assigned.id, "PICKED_UP")
    with pytest.raises(InvalidTransitionError):
        order_service.update_delivery_status(delivery_partner, assigned.id, "ASSIGNED")


def test_reassign_blocked_after_pickup(supplier, delivery_partner, make_user, assigned):
    order_service.update_delivery_status(delivery_partner, assigned.id, "PICKED_UP")
    replacement = make_user("delivery", "Backup Couriers")
    with pytest.raises(InvalidTransitionError):
        order_service.assign_delivery_partner(supplier, assigned.id, replacement.id)


def test_other_partner_sees_not_found(make_user, assigned):
    stranger = make_user("delivery", "Other Couriers")
    with pytest.raises(NotFoundError):
        order_service.update_delivery_status(stranger, assigned.id, "PICKED_UP")


def test_unknown_delivery_status(delivery_partner, assigned):
    with pytest.raises(ValidationError):
        order_service.update_delivery_status(delivery_partner, assigned.id, "LOST")


def test_partner_lists_assigned_orders(delivery_partner, make_user, assigned):
    assert [o.id for o in order_service.list_orders(delivery_partner)] == [assigned.id]
    assert order_service.list_orders(make_user("delivery", "Idle Couriers")) == []
