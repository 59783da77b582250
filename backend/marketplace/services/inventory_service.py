# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Invariants (authoritative)

- stock_quantity is a stored counter guarded by CHECK (stock_quantity >= 0).
- Stock decreases ONLY via reserve_stock: a single conditional UPDATE
  "decrement where owner matches and stock_quantity >= quantity". No
  read-then-write, so concurrent buyers can never oversell.
- Stock increases ONLY via restock (atomic increment).
- update_item edits the closed descriptive field set; never stock_quantity.
- Low stock means stock_quantity <= min_stock_quantity (default 10).
"""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ConflictError, ForbiddenError, InsufficientStockError, NotFoundError
from ..models import InventoryItem, User
from ..permissions import INVENTORY_OWNER_ROLES
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_inventory_item,
    require_positive_quantity,
    validate_payload,
)
from marketplace.time_utils import utcnow
from .concurrency import apply_lock_timeout, run_with_retry


INVENTORY_ITEM_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "unit", "unit_price_cents", "stock_quantity", "min_stock_quantity"}),
    required_on_create=frozenset({"name", "unit_price_cents"}),
)

# stock_quantity is deliberately absent: stock moves only through restock/reserve
INVENTORY_ITEM_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=frozenset({"name", "unit", "unit_price_cents", "min_stock_quantity"}),
)


def _require_inventory_owner(user: User) -> None:
    if user.role not in INVENTORY_OWNER_ROLES:
        raise ForbiddenError(f"Role {user.role} cannot own inventory")


def get_owned_item(owner_id: int, item_id: int) -> InventoryItem:
    item = db.session.get(InventoryItem, item_id)
    if item is None or item.owner_id != owner_id:
        raise NotFoundError("Inventory item not found")
    return item


def add_item(owner: User, payload: dict) -> InventoryItem:
    """Create a tracked item owned by `owner` (supplier, retailer or tailor)."""
    _require_inventory_owner(owner)
    patch = validate_payload(
        model=InventoryItem,
        payload=payload,
        policy=INVENTORY_ITEM_CREATE_POLICY,
        partial=False,
    )
    enforce_rules_inventory_item(patch)

    def _op():
        item = InventoryItem(owner_id=owner.id, **patch)
        db.session.add(item)
        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"Inventory item {patch.get('name')!r} already exists")


def update_item(owner: User, item_id: int, payload: dict) -> InventoryItem:
    """Patch descriptive fields of an owned item."""
    _require_inventory_owner(owner)
    patch = validate_payload(
        model=InventoryItem,
        payload=payload,
        policy=INVENTORY_ITEM_UPDATE_POLICY,
        partial=True,
    )
    enforce_rules_inventory_item(patch)

    def _op():
        item = get_owned_item(owner.id, item_id)
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError(f"Inventory item {patch.get('name')!r} already exists")


def restock(owner: User, item_id: int, quantity) -> InventoryItem:
    """Atomically add `quantity` units to an owned item."""
    _require_inventory_owner(owner)
    quantity = require_positive_quantity("quantity", quantity)

    def _op():
        apply_lock_timeout()
        result = db.session.execute(
            update(InventoryItem)
            .where(InventoryItem.id == item_id, InventoryItem.owner_id == owner.id)
            .values(
                stock_quantity=InventoryItem.stock_quantity + quantity,
                version_id=InventoryItem.version_id + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Inventory item not found")
        db.session.commit()
        return db.session.get(InventoryItem, item_id, populate_existing=True)

    return run_with_retry(_op)


def reserve_stock(owner_id: int, item_id: int, quantity: int) -> None:
    """
    Conditionally decrement stock inside the CALLER's transaction.

    Does not commit. Zero rows updated -> diagnostic read:
    - item missing or owned by someone else -> NotFoundError
    - otherwise -> InsufficientStockError carrying the available quantity
    """
    result = db.session.execute(
        update(InventoryItem)
        .where(
            InventoryItem.id == item_id,
            InventoryItem.owner_id == owner_id,
            InventoryItem.stock_quantity >= quantity,
        )
        .values(
            stock_quantity=InventoryItem.stock_quantity - quantity,
            version_id=InventoryItem.version_id + 1,
            updated_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 1:
        return

    item = db.session.get(InventoryItem, item_id, populate_existing=True)
    if item is None or item.owner_id != owner_id:
        raise NotFoundError("Inventory item not found")
    raise InsufficientStockError(
        f"Insufficient stock for {item.name}",
        available=item.stock_quantity,
        requested=quantity,
    )


def deduct_stock(owner_id: int, item_id: int, quantity) -> InventoryItem:
    """Standalone reservation in its own transaction."""
    quantity = require_positive_quantity("quantity", quantity)

    def _op():
        apply_lock_timeout()
        reserve_stock(owner_id, item_id, quantity)
        db.session.commit()
        return db.session.get(InventoryItem, item_id, populate_existing=True)

    return run_with_retry(_op)


def list_items(owner_id: int) -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter(InventoryItem.owner_id == owner_id)
        .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .all()
    )


def list_low_stock(owner_id: int) -> list[InventoryItem]:
    """Items at or below their low-stock threshold, emptiest first."""
    return (
        db.session.query(InventoryItem)
        .filter(
            InventoryItem.owner_id == owner_id,
            InventoryItem.stock_quantity <= InventoryItem.min_stock_quantity,
        )
        .order_by(InventoryItem.stock_quantity.asc(), InventoryItem.id.asc())
        .all()
    )
