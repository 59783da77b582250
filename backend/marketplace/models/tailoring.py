from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


TAILORING_STATUS_PLACED = "PLACED"
TAILORING_STATUS_QUOTED = "QUOTED"
TAILORING_STATUS_CONFIRMED = "CONFIRMED"
TAILORING_STATUS_PAID = "PAID"
TAILORING_STATUS_IN_PROGRESS = "IN_PROGRESS"
TAILORING_STATUS_COMPLETED = "COMPLETED"
TAILORING_STATUS_DELIVERED = "DELIVERED"
TAILORING_STATUS_CANCELLED = "CANCELLED"

TAILORING_STATUSES = (
    TAILORING_STATUS_PLACED,
    TAILORING_STATUS_QUOTED,
    TAILORING_STATUS_CONFIRMED,
    TAILORING_STATUS_PAID,
    TAILORING_STATUS_IN_PROGRESS,
    TAILORING_STATUS_COMPLETED,
    TAILORING_STATUS_DELIVERED,
    TAILORING_STATUS_CANCELLED,
)


class Garment(db.Model):
    """A garment a tailor offers to stitch."""
    __tablename__ = "garments"
    __table_args__ = (
        db.UniqueConstraint("tailor_id", "name", name="uq_garments_tailor_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    tailor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    tailor = db.relationship("User")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tailor_id": self.tailor_id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


MEASUREMENT_FIELD_NUMBER = "number"
MEASUREMENT_FIELD_TEXT = "text"
MEASUREMENT_FIELD_DROPDOWN = "dropdown"

MEASUREMENT_FIELD_TYPES = (
    MEASUREMENT_FIELD_NUMBER,
    MEASUREMENT_FIELD_TEXT,
    MEASUREMENT_FIELD_DROPDOWN,
)


class MeasurementHead(db.Model):
    """
    One measurement a tailor takes for a garment (Chest, Waist, Collar Type).

    Dropdown heads carry their allowed values as MeasurementOption rows.
    """
    __tablename__ = "measurement_heads"
    __table_args__ = (
        db.UniqueConstraint("garment_id", "label", name="uq_measurement_heads_garment_label"),
        db.CheckConstraint(
            "field_type IN ('number', 'text', 'dropdown')", name="ck_measurement_heads_field_type",
        ),
        db.CheckConstraint("sort_order >= 0", name="ck_measurement_heads_sort_order_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    garment_id = db.Column(db.Integer, db.ForeignKey("garments.id"), nullable=False, index=True)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    label = db.Column(db.String(120), nullable=False)
    field_type = db.Column(db.String(16), nullable=False)

    # inch | cm, or None for text and dropdown heads
    unit = db.Column(db.String(16), nullable=True)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    garment = db.relationship("Garment")
    options = db.relationship(
        "MeasurementOption", back_populates="head", order_by="MeasurementOption.id",
    )

    def to_dict(self, include_options: bool = True) -> dict:
        data = {
            "id": self.id,
            "garment_id": self.garment_id,
            "created_by": self.created_by,
            "label": self.label,
            "field_type": self.field_type,
            "unit": self.unit,
            "is_required": bool(self.is_required),
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
        }
        if include_options:
            data["options"] = [o.to_dict() for o in self.options]
        return data


class MeasurementOption(db.Model):
    """Allowed value of a dropdown measurement head."""
    __tablename__ = "measurement_options"
    __table_args__ = (
        db.UniqueConstraint("measurement_head_id", "value", name="uq_measurement_options_head_value"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    measurement_head_id = db.Column(
        db.Integer, db.ForeignKey("measurement_heads.id"), nullable=False, index=True,
    )
    value = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    head = db.relationship("MeasurementHead", back_populates="options")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "measurement_head_id": self.measurement_head_id,
            "value": self.value,
            "created_at": to_utc_z(self.created_at),
        }


class TailoringOrder(db.Model):
    """
    Custom stitching order between a customer and a tailor.

    STATE MACHINE (linear, one actor per step):
        PLACED -> QUOTED -> CONFIRMED -> PAID -> IN_PROGRESS -> COMPLETED -> DELIVERED
        PLACED | QUOTED -> CANCELLED (customer)

    price_cents and delivery_date are written only by PLACED -> QUOTED.
    Each *_at timestamp is written only by the transition entering its state.
    """
    __tablename__ = "tailoring_orders"
    __table_args__ = (
        db.CheckConstraint("price_cents IS NULL OR price_cents > 0", name="ck_tailoring_orders_price_positive"),
        db.Index("ix_tailoring_orders_tailor_status", "tailor_id", "status"),
        db.Index("ix_tailoring_orders_customer_status", "customer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    tailor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    garment_id = db.Column(db.Integer, db.ForeignKey("garments.id"), nullable=False, index=True)
    notes = db.Column(db.String(500), nullable=True)

    # Set once by the quote
    price_cents = db.Column(db.Integer, nullable=True)
    delivery_date = db.Column(db.Date, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=TAILORING_STATUS_PLACED, index=True)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    quoted_at = db.Column(db.DateTime, nullable=True)
    confirmed_at = db.Column(db.DateTime, nullable=True)
    paid_at = db.Column(db.DateTime, nullable=True)
    work_started_at = db.Column(db.DateTime, nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)
    delivered_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    customer = db.relationship("User", foreign_keys=[customer_id])
    tailor = db.relationship("User", foreign_keys=[tailor_id])
    garment = db.relationship("Garment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "tailor_id": self.tailor_id,
            "garment_id": self.garment_id,
            "notes": self.notes,
            "price_cents": self.price_cents,
            "delivery_date": self.delivery_date.isoformat() if self.delivery_date else None,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "quoted_at": to_utc_z(self.quoted_at),
            "confirmed_at": to_utc_z(self.confirmed_at),
            "paid_at": to_utc_z(self.paid_at),
            "work_started_at": to_utc_z(self.work_started_at),
            "completed_at": to_utc_z(self.completed_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
        }


class Invoice(db.Model):
    """
    Invoice for a delivered and paid tailoring order.

    INVARIANT: at most one invoice per tailoring order. Enforced by the UNIQUE
    constraint, so a lost race between two generators fails deterministically.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("tailoring_order_id", name="uq_invoices_tailoring_order"),
        db.UniqueConstraint("invoice_no", name="uq_invoices_invoice_no"),
        db.Index("ix_invoices_tailor_created", "tailor_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_no = db.Column(db.String(32), nullable=False)
    tailoring_order_id = db.Column(db.Integer, db.ForeignKey("tailoring_orders.id"), nullable=False)
    payment_id = db.Column(db.Integer, db.ForeignKey("payments.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    tailor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Copied from TailoringOrder.price_cents at generation time
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())

    tailoring_order = db.relationship("TailoringOrder", backref=db.backref("invoice", uselist=False))
    payment = db.relationship("Payment")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_no": self.invoice_no,
            "tailoring_order_id": self.tailoring_order_id,
            "payment_id": self.payment_id,
            "customer_id": self.customer_id,
            "tailor_id": self.tailor_id,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
