# Overview: Service-layer operations for product orders; encapsulates business logic and database work.

"""
Product Order State Machine

STATES:
    requested -> accepted -> in_production -> dispatched -> delivered
    requested | accepted -> cancelled
    accepted -> dispatched (allowed skip)

CHECK ORDER for a status change (first failure wins):
1. Unknown target status                    -> ValidationError
2. Order missing or actor unrelated to it   -> NotFoundError
3. Target not reachable from current status -> InvalidTransitionError (any role)
4. Actor's capacity on this order forbids   -> ForbiddenError
5. Target needs payment and none is paid    -> PaymentRequiredError
6. Conditional UPDATE on the read status    -> ConflictError when 0 rows

Entering delivered settles the order: a pending payout for the seller is
written in the same transaction (payout_service.settle_delivered_order).

Delivery partners never move status. They advance the separate
delivery_status field (ASSIGNED -> PICKED_UP -> IN_TRANSIT -> DELIVERED).
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import or_, update

from ..extensions import db
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    PaymentRequiredError,
    ValidationError,
)
from ..models import InventoryItem, Order, OrderItem, User
from ..models.orders import (
    DELIVERY_STATUS_ASSIGNED,
    DELIVERY_STATUS_DELIVERED,
    DELIVERY_STATUS_IN_TRANSIT,
    DELIVERY_STATUS_PICKED_UP,
    DELIVERY_STATUSES,
    ORDER_STATUS_ACCEPTED,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_IN_PRODUCTION,
    ORDER_STATUS_REQUESTED,
    ORDER_STATUSES,
)
from ..permissions import BUYER_ROLES, ROLE_DELIVERY, ROLE_RETAILER, SELLER_ROLES, is_admin
from ..validation import MAX_AMOUNT_CENTS, coerce_int, require_positive_quantity
from marketplace.time_utils import utcnow
from . import inventory_service, payout_service
from .concurrency import apply_lock_timeout, run_with_retry
from .payment_service import has_paid_payment


# =============================================================================
# TRANSITION TABLES
# =============================================================================

TRANSITIONS = {
    ORDER_STATUS_REQUESTED: frozenset({ORDER_STATUS_ACCEPTED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_ACCEPTED: frozenset({ORDER_STATUS_IN_PRODUCTION, ORDER_STATUS_DISPATCHED, ORDER_STATUS_CANCELLED}),
    ORDER_STATUS_IN_PRODUCTION: frozenset({ORDER_STATUS_DISPATCHED}),
    ORDER_STATUS_DISPATCHED: frozenset({ORDER_STATUS_DELIVERED}),
    ORDER_STATUS_DELIVERED: frozenset(),
    ORDER_STATUS_CANCELLED: frozenset(),
}

SELLER_TRANSITIONS = frozenset({
    (ORDER_STATUS_REQUESTED, ORDER_STATUS_ACCEPTED),
    (ORDER_STATUS_ACCEPTED, ORDER_STATUS_IN_PRODUCTION),
    (ORDER_STATUS_ACCEPTED, ORDER_STATUS_DISPATCHED),
    (ORDER_STATUS_IN_PRODUCTION, ORDER_STATUS_DISPATCHED),
    (ORDER_STATUS_DISPATCHED, ORDER_STATUS_DELIVERED),
})

BUYER_TRANSITIONS = frozenset({
    (ORDER_STATUS_REQUESTED, ORDER_STATUS_CANCELLED),
})

# Entering these requires a paid payment
PAYMENT_GATED_STATUSES = frozenset({
    ORDER_STATUS_IN_PRODUCTION,
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_DELIVERED,
})

# Forward-only delivery leg: target -> required current value
DELIVERY_PREVIOUS = {
    DELIVERY_STATUS_PICKED_UP: DELIVERY_STATUS_ASSIGNED,
    DELIVERY_STATUS_IN_TRANSIT: DELIVERY_STATUS_PICKED_UP,
    DELIVERY_STATUS_DELIVERED: DELIVERY_STATUS_IN_TRANSIT,
}


def is_valid_transition(current_status: str, new_status: str) -> bool:
    return new_status in TRANSITIONS.get(current_status, frozenset())


def role_allows_transition(actor: User, order: Order, current_status: str, new_status: str) -> bool:
    """Capacity check; assumes the transition itself is already valid."""
    if is_admin(actor.role):
        return True
    step = (current_status, new_status)
    if order.seller_id == actor.id and actor.role in SELLER_ROLES and step in SELLER_TRANSITIONS:
        return True
    if order.buyer_id is not None and order.buyer_id == actor.id and step in BUYER_TRANSITIONS:
        return True
    return False


def _is_related(actor: User, order: Order) -> bool:
    if is_admin(actor.role):
        return True
    return actor.id in (order.buyer_id, order.seller_id, order.delivery_partner_id)


# =============================================================================
# ORDER PLACEMENT
# =============================================================================

def _normalize_lines(items) -> list[tuple[int, int]]:
    """[{inventory_item_id, quantity}, ...] -> [(item_id, qty)] merged and sorted by id."""
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")
    merged: dict[int, int] = {}
    for raw in items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")
        item_id = coerce_int("inventory_item_id", raw.get("inventory_item_id"))
        quantity = require_positive_quantity("quantity", raw.get("quantity"))
        merged[item_id] = merged.get(item_id, 0) + quantity
    # Reserve rows in id order so concurrent orders lock consistently
    return sorted(merged.items())


def _create_order(
    *,
    buyer_id: int | None,
    buyer_role: str | None,
    seller: User,
    lines: list[tuple[int, int]],
) -> Order:
    def _op():
        apply_lock_timeout()
        now = utcnow()

        order = Order(
            buyer_id=buyer_id,
            buyer_role=buyer_role,
            seller_id=seller.id,
            seller_role=seller.role,
            total_amount_cents=0,
            status=ORDER_STATUS_REQUESTED,
            created_at=now,
            updated_at=now,
        )
        db.session.add(order)

        total = 0
        for item_id, quantity in lines:
            item = db.session.get(InventoryItem, item_id)
            if item is None or item.owner_id != seller.id:
                raise NotFoundError(f"Inventory item {item_id} not found for this seller")
            unit_price = item.unit_price_cents
            inventory_service.reserve_stock(seller.id, item_id, quantity)
            line_total = unit_price * quantity
            total += line_total
            db.session.add(OrderItem(
                order=order,
                inventory_item_id=item_id,
                quantity=quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total,
            ))

        if total <= 0:
            raise ValidationError("Order total must be > 0")
        if total > MAX_AMOUNT_CENTS:
            raise ValidationError(f"Order total cannot exceed {MAX_AMOUNT_CENTS}")
        order.total_amount_cents = total

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s placed: seller=%s buyer=%s total_cents=%s",
        order.id, order.seller_id, order.buyer_id, order.total_amount_cents,
    )
    return order


def place_order(buyer: User, seller_id, items) -> Order:
    """
    Buyer orders tracked inventory items from one seller.

    Prices are snapshotted from the items; stock for every line is reserved
    with conditional decrements and commits together with the order.
    """
    if buyer.role not in BUYER_ROLES:
        raise ForbiddenError(f"Role {buyer.role} cannot place orders")
    seller_id = coerce_int("seller_id", seller_id)
    if seller_id == buyer.id:
        raise ValidationError("Cannot place an order with yourself")
    lines = _normalize_lines(items)

    seller = db.session.get(User, seller_id)
    if seller is None or seller.role not in SELLER_ROLES or not seller.can_authenticate:
        raise NotFoundError("Seller not found")

    return _create_order(buyer_id=buyer.id, buyer_role=buyer.role, seller=seller, lines=lines)


def create_walk_in_order(seller: User, items, buyer_id=None) -> Order:
    """Retailer records a counter sale of its own stock; the buyer is optional."""
    if seller.role != ROLE_RETAILER:
        raise ForbiddenError("Only retailers can record walk-in orders")
    lines = _normalize_lines(items)

    buyer_role = None
    if buyer_id is not None:
        buyer_id = coerce_int("buyer_id", buyer_id)
        if buyer_id == seller.id:
            raise ValidationError("Cannot place an order with yourself")
        buyer = db.session.get(User, buyer_id)
        if buyer is None or buyer.role not in BUYER_ROLES:
            raise NotFoundError("Buyer not found")
        buyer_role = buyer.role

    return _create_order(buyer_id=buyer_id, buyer_role=buyer_role, seller=seller, lines=lines)


# =============================================================================
# QUERIES
# =============================================================================

def get_order(actor: User, order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None or not _is_related(actor, order):
        raise NotFoundError(f"Order {order_id} not found")
    return order


def list_orders(actor: User, *, side: str | None = None, status: str | None = None) -> list[Order]:
    """
    Orders visible to actor.

    side: "buying" | "selling" | "delivering" narrows a user who acts in more
    than one capacity (e.g. a retailer buys from suppliers and sells to customers).
    """
    query = db.session.query(Order)

    if is_admin(actor.role) and side is None:
        pass
    elif side == "buying":
        query = query.filter(Order.buyer_id == actor.id)
    elif side == "selling":
        query = query.filter(Order.seller_id == actor.id)
    elif side == "delivering" or (side is None and actor.role == ROLE_DELIVERY):
        query = query.filter(Order.delivery_partner_id == actor.id)
    elif side is None:
        query = query.filter(or_(Order.buyer_id == actor.id, Order.seller_id == actor.id))
    else:
        raise ValidationError("side must be one of: buying, selling, delivering")

    if status is not None:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Unknown order status: {status}")
        query = query.filter(Order.status == status)

    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def change_order_status(actor: User, order_id: int, new_status: str) -> Order:
    """Apply one status transition (see module docstring for the check order)."""
    if new_status not in ORDER_STATUSES:
        raise ValidationError(f"Unknown order status: {new_status}")

    def _op():
        apply_lock_timeout()

        order = db.session.get(Order, order_id, populate_existing=True)
        if order is None or not _is_related(actor, order):
            raise NotFoundError(f"Order {order_id} not found")

        current_status = order.status
        if not is_valid_transition(current_status, new_status):
            raise InvalidTransitionError(
                f"Cannot change order from {current_status} to {new_status}",
                current_status=current_status,
            )

        if not role_allows_transition(actor, order, current_status, new_status):
            current_app.logger.warning(
                "Order %s transition %s->%s denied for user %s (%s)",
                order_id, current_status, new_status, actor.id, actor.role,
            )
            raise ForbiddenError(f"Role {actor.role} cannot move this order to {new_status}")

        if new_status in PAYMENT_GATED_STATUSES and not has_paid_payment(order_id=order_id):
            raise PaymentRequiredError(f"Order must be paid before it can be {new_status}")

        result = db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status == current_status)
            .values(status=new_status, version_id=Order.version_id + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Order {order_id} was modified concurrently")

        order = db.session.get(Order, order_id, populate_existing=True)
        if new_status == ORDER_STATUS_DELIVERED:
            payout_service.settle_delivered_order(order)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s moved to %s by user %s", order_id, new_status, actor.id)
    return order


# =============================================================================
# DELIVERY LEG
# =============================================================================

def assign_delivery_partner(actor: User, order_id: int, partner_id) -> Order:
    """Seller (or admin) assigns a delivery partner; delivery_status becomes ASSIGNED."""
    partner_id = coerce_int("delivery_partner_id", partner_id)

    def _op():
        apply_lock_timeout()

        order = db.session.get(Order, order_id, populate_existing=True)
        if order is None or not _is_related(actor, order):
            raise NotFoundError(f"Order {order_id} not found")
        if not is_admin(actor.role) and order.seller_id != actor.id:
            raise ForbiddenError("Only the seller can assign a delivery partner")
        if order.status == ORDER_STATUS_CANCELLED:
            raise InvalidTransitionError("Cannot assign delivery for a cancelled order")
        if order.delivery_status not in (None, DELIVERY_STATUS_ASSIGNED):
            raise InvalidTransitionError(
                f"Delivery already {order.delivery_status}; partner can no longer change",
                current_delivery_status=order.delivery_status,
            )

        partner = db.session.get(User, partner_id)
        if partner is None or partner.role != ROLE_DELIVERY or not partner.can_authenticate:
            raise NotFoundError("Delivery partner not found")

        expected = order.delivery_status
        condition = (
            Order.delivery_status.is_(None) if expected is None
            else Order.delivery_status == expected
        )
        result = db.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.status != ORDER_STATUS_CANCELLED, condition)
            .values(
                delivery_partner_id=partner_id,
                delivery_status=DELIVERY_STATUS_ASSIGNED,
                version_id=Order.version_id + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Order {order_id} was modified concurrently")

        db.session.commit()
        return db.session.get(Order, order_id, populate_existing=True)

    return run_with_retry(_op)


def update_delivery_status(actor: User, order_id: int, new_delivery_status: str) -> Order:
    """Assigned delivery partner advances delivery_status by exactly one step."""
    if new_delivery_status not in DELIVERY_STATUSES:
        raise ValidationError(f"Unknown delivery status: {new_delivery_status}")

    def _op():
        apply_lock_timeout()

        order = db.session.get(Order, order_id, populate_existing=True)
        if order is None or order.delivery_partner_id != actor.id:
            raise NotFoundError(f"Order {order_id} not found")

        required = DELIVERY_PREVIOUS.get(new_delivery_status)
        if required is None or order.delivery_status != required:
            raise InvalidTransitionError(
                f"Cannot change delivery from {order.delivery_status} to {new_delivery_status}",
                current_delivery_status=order.delivery_status,
            )

        result = db.session.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.delivery_partner_id == actor.id,
                Order.delivery_status == required,
            )
            .values(
                delivery_status=new_delivery_status,
                version_id=Order.version_id + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError(f"Order {order_id} was modified concurrently")

        db.session.commit()
        return db.session.get(Order, order_id, populate_existing=True)

    return run_with_retry(_op)
