from __future__ import annotations

from ..extensions import db
from marketplace.time_utils import to_utc_z


DEFAULT_MIN_STOCK_QUANTITY = 10


class InventoryItem(db.Model):
    """
    Tracked stock owned by a seller (supplier, retailer or tailor).

    STOCK RULES:
    - stock_quantity never goes negative (CHECK constraint + conditional decrement)
    - Decreases only through order placement (inventory_service.reserve_stock)
    - Increases only through restock (atomic increment)
    - Low stock: stock_quantity <= min_stock_quantity
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("stock_quantity >= 0", name="ck_inventory_items_stock_non_negative"),
        db.CheckConstraint("min_stock_quantity >= 0", name="ck_inventory_items_min_stock_non_negative"),
        db.CheckConstraint("unit_price_cents >= 0", name="ck_inventory_items_price_non_negative"),
        db.UniqueConstraint("owner_id", "name", name="uq_inventory_items_owner_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(32), nullable=False, default="piece")

    # Authoritative storage in cents
    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)

    stock_quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock_quantity = db.Column(db.Integer, nullable=False, default=DEFAULT_MIN_STOCK_QUANTITY)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    owner = db.relationship("User", backref=db.backref("inventory_items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_quantity

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} owner_id={self.owner_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "unit": self.unit,
            "unit_price_cents": self.unit_price_cents,
            "stock_quantity": self.stock_quantity,
            "min_stock_quantity": self.min_stock_quantity,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
