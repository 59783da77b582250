from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


# Product order lifecycle (see services/order_service.py for the transition graph)
ORDER_STATUS_REQUESTED = "requested"
ORDER_STATUS_ACCEPTED = "accepted"
ORDER_STATUS_IN_PRODUCTION = "in_production"
ORDER_STATUS_DISPATCHED = "dispatched"
ORDER_STATUS_DELIVERED = "delivered"
ORDER_STATUS_CANCELLED = "cancelled"

ORDER_STATUSES = (
    ORDER_STATUS_REQUESTED,
    ORDER_STATUS_ACCEPTED,
    ORDER_STATUS_IN_PRODUCTION,
    ORDER_STATUS_DISPATCHED,
    ORDER_STATUS_DELIVERED,
    ORDER_STATUS_CANCELLED,
)

# Delivery leg, tracked independently of Order.status
DELIVERY_STATUS_ASSIGNED = "ASSIGNED"
DELIVERY_STATUS_PICKED_UP = "PICKED_UP"
DELIVERY_STATUS_IN_TRANSIT = "IN_TRANSIT"
DELIVERY_STATUS_DELIVERED = "DELIVERED"

DELIVERY_STATUSES = (
    DELIVERY_STATUS_ASSIGNED,
    DELIVERY_STATUS_PICKED_UP,
    DELIVERY_STATUS_IN_TRANSIT,
    DELIVERY_STATUS_DELIVERED,
)

ORDER_PAYMENT_UNPAID = "unpaid"
ORDER_PAYMENT_PAID = "paid"

# Payment rows. Only PAID is written today; the column stays explicit so the
# payment gate compares against a real state instead of row existence.
PAYMENT_STATUS_PAID = "paid"


class Order(db.Model):
    """
    Product order between a buyer and a seller (supplier, retailer or tailor).

    WHY: total_amount_cents is fixed at creation from the item snapshot; the
    status column only moves forward along the transition graph via
    conditional updates.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.CheckConstraint("total_amount_cents >= 0", name="ck_orders_total_non_negative"),
        db.Index("ix_orders_seller_status", "seller_id", "status"),
        db.Index("ix_orders_buyer_created", "buyer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Nullable for retailer walk-in sales
    buyer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    buyer_role = db.Column(db.String(32), nullable=True)
    seller_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    seller_role = db.Column(db.String(32), nullable=False)

    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_REQUESTED, index=True)
    payment_status = db.Column(db.String(16), nullable=False, default=ORDER_PAYMENT_UNPAID, index=True)

    delivery_partner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    delivery_status = db.Column(db.String(16), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)

    buyer = db.relationship("User", foreign_keys=[buyer_id])
    seller = db.relationship("User", foreign_keys=[seller_id])
    delivery_partner = db.relationship("User", foreign_keys=[delivery_partner_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "buyer_id": self.buyer_id,
            "buyer_role": self.buyer_role,
            "seller_id": self.seller_id,
            "seller_role": self.seller_role,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "payment_status": self.payment_status,
            "delivery_partner_id": self.delivery_partner_id,
            "delivery_status": self.delivery_status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """Line of a product order; price is a snapshot of the inventory item at order time."""
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "inventory_item_id": self.inventory_item_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }


class Payment(db.Model):
    """
    Payment recorded against a product order OR a tailoring order.

    DESIGN:
    - Exactly one of order_id / tailoring_order_id is set
    - An order may have zero or more payments; one PAID row satisfies the gate
    - transaction_ref is an optional caller idempotency key (unique when present)
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint(
            "(order_id IS NULL) <> (tailoring_order_id IS NULL)",
            name="ck_payments_single_parent",
        ),
        db.CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        db.Index("ix_payments_order_status", "order_id", "payment_status"),
        db.Index("ix_payments_tailoring_order_status", "tailoring_order_id", "payment_status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True)
    tailoring_order_id = db.Column(db.Integer, db.ForeignKey("tailoring_orders.id"), nullable=True)

    payer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    payer_role = db.Column(db.String(32), nullable=False)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_mode = db.Column(db.String(32), nullable=False)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PAID)
    transaction_ref = db.Column(db.String(128), nullable=True, unique=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now(), index=True)

    order = db.relationship("Order", backref=db.backref("payments", lazy=True))
    tailoring_order = db.relationship("TailoringOrder", backref=db.backref("payments", lazy=True))
    payer = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "tailoring_order_id": self.tailoring_order_id,
            "payer_id": self.payer_id,
            "payer_role": self.payer_role,
            "amount_cents": self.amount_cents,
            "payment_mode": self.payment_mode,
            "payment_status": self.payment_status,
            "transaction_ref": self.transaction_ref,
            "created_at": to_utc_z(self.created_at),
        }
