"""
Inventory tests.

Verifies:
- Item creation and patching go through the writable field policy
- stock_quantity changes only through restock and reservation
- Reservation never oversells and reports the available quantity
- A multi-line order is all-or-nothing
- Low stock threshold is inclusive
"""

import pytest

from marketplace.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from marketplace.models import InventoryItem, Order
from marketplace.services import inventory_service, order_service


# =============================================================================
# ITEM CRUD
# =============================================================================


def test_add_item_defaults(supplier):
    item = inventory_service.add_item(supplier, {"name": "Linen", "unit_price_cents": 45000})

    assert item.owner_id == supplier.id
    assert item.stock_quantity == 0
    assert item.min_stock_quantity == 10
    assert item.is_low_stock


def test_add_item_requires_fields(supplier):
    with pytest.raises(ValidationError, match="unit_price_cents"):
        inventory_service.add_item(supplier, {"name": "Linen"})


def test_add_item_rejects_unknown_field(supplier):
    with pytest.raises(ValidationError, match="Field not allowed"):
        inventory_service.add_item(supplier, {"name": "Linen", "unit_price_cents": 1, "owner_id": 99})


def test_add_item_rejects_negative_stock(supplier):
    with pytest.raises(ValidationError):
        inventory_service.add_item(supplier, {"name": "Linen", "unit_price_cents": 1, "stock_quantity": -1})


def test_duplicate_item_name_conflicts(supplier, make_item):
    make_item(supplier, name="Denim")
    with pytest.raises(ConflictError):
        inventory_service.add_item(supplier, {"name": "Denim", "unit_price_cents": 100})


def test_customer_cannot_own_inventory(customer):
    with pytest.raises(ForbiddenError):
        inventory_service.add_item(customer, {"name": "Linen", "unit_price_cents": 1})


def test_update_item_patches_descriptive_fields(supplier, make_item):
    item = make_item(supplier, price_cents=1000, stock=5)
    updated = inventory_service.update_item(
        supplier, item.id, {"unit_price_cents": 1500, "min_stock_quantity": 2},
    )

    assert updated.unit_price_cents == 1500
    assert updated.min_stock_quantity == 2
    assert updated.stock_quantity == 5


def test_update_item_cannot_set_stock(supplier, make_item):
    item = make_item(supplier, stock=5)
    with pytest.raises(ValidationError, match="stock_quantity"):
        inventory_service.update_item(supplier, item.id, {"stock_quantity": 500})


def test_update_foreign_item_not_found(supplier, retailer, make_item):
    item = make_item(supplier)
    with pytest.raises(NotFoundError):
        inventory_service.update_item(retailer, item.id, {"unit": "roll"})


# =============================================================================
# STOCK MOVEMENT
# =============================================================================


def test_restock_increments(supplier, make_item):
    item = make_item(supplier, stock=3)
    restocked = inventory_service.restock(supplier, item.id, 7)
    assert restocked.stock_quantity == 10


@pytest.mark.parametrize("quantity", [0, -5, 1.5, "x"])
def test_restock_rejects_bad_quantity(supplier, make_item, quantity):
    item = make_item(supplier, stock=3)
    with pytest.raises(ValidationError):
        inventory_service.restock(supplier, item.id, quantity)


def test_restock_foreign_item_not_found(supplier, tailor, make_item):
    item = make_item(supplier, stock=3)
    with pytest.raises(NotFoundError):
        inventory_service.restock(tailor, item.id, 1)


def test_deduct_exact_stock_reaches_zero(supplier, make_item):
    item = make_item(supplier, stock=4)
    assert inventory_service.deduct_stock(supplier.id, item.id, 4).stock_quantity == 0


def test_deduct_more_than_available(supplier, make_item, db_session):
    item = make_item(supplier, stock=4)
    with pytest.raises(InsufficientStockError) as exc_info:
        inventory_service.deduct_stock(supplier.id, item.id, 5)

    assert exc_info.value.available == 4
    assert exc_info.value.requested == 5
    assert exc_info.value.to_dict()["code"] == "insufficient_stock"
    assert db_session.get(InventoryItem, item.id, populate_existing=True).stock_quantity == 4


def test_deduct_wrong_owner_not_found(supplier, retailer, make_item):
    item = make_item(supplier, stock=4)
    with pytest.raises(NotFoundError):
        inventory_service.deduct_stock(retailer.id, item.id, 1)


# =============================================================================
# ORDER PLACEMENT
# =============================================================================


def test_order_reserves_stock_and_snapshots_price(customer, supplier, make_item, db_session):
    item = make_item(supplier, price_cents=3000, stock=10)
    order = order_service.place_order(
        customer, supplier.id,
        [{"inventory_item_id": item.id, "quantity": 2}, {"inventory_item_id": item.id, "quantity": 1}],
    )

    assert order.total_amount_cents == 9000
    assert len(order.items) == 1
    assert order.items[0].quantity == 3
    assert order.items[0].unit_price_cents == 3000
    assert db_session.get(InventoryItem, item.id, populate_existing=True).stock_quantity == 7

    inventory_service.update_item(supplier, item.id, {"unit_price_cents": 9999})
    assert db_session.get(Order, order.id).items[0].unit_price_cents == 3000


def test_multi_line_order_is_atomic(customer, supplier, make_item, db_session):
    plenty = make_item(supplier, name="Cotton", stock=10)
    scarce = make_item(supplier, name="Silk", stock=1)

    with pytest.raises(InsufficientStockError) as exc_info:
        order_service.place_order(
            customer, supplier.id,
            [{"inventory_item_id": plenty.id, "quantity": 5}, {"inventory_item_id": scarce.id, "quantity": 2}],
        )

    assert exc_info.value.available == 1
    assert db_session.get(InventoryItem, plenty.id, populate_existing=True).stock_quantity == 10
    assert db_session.get(InventoryItem, scarce.id, populate_existing=True).stock_quantity == 1
    assert db_session.query(Order).count() == 0


def test_order_for_foreign_item_not_found(customer, supplier, retailer, make_item):
    item = make_item(retailer)
    with pytest.raises(NotFoundError):
        order_service.place_order(customer, supplier.id, [{"inventory_item_id": item.id, "quantity": 1}])


def test_zero_total_order_rejected(customer, supplier, make_item):
    item = make_item(supplier, price_cents=0, stock=5)
    with pytest.raises(ValidationError):
        order_service.place_order(customer, supplier.id, [{"inventory_item_id": item.id, "quantity": 1}])


@pytest.mark.parametrize("items", [[], None, [{"inventory_item_id": 1, "quantity": 0}], ["x"]])
def test_order_rejects_malformed_items(customer, supplier, items):
    with pytest.raises(ValidationError):
        order_service.place_order(customer, supplier.id, items)


def test_walk_in_order_without_buyer(retailer, make_item):
    item = make_item(retailer, stock=5)
    order = order_service.create_walk_in_order(retailer, [{"inventory_item_id": item.id, "quantity": 2}])

    assert order.buyer_id is None
    assert order.seller_role == "retailer"
    assert order.status == "requested"


def test_walk_in_requires_retailer(supplier, make_item):
    item = make_item(supplier, stock=5)
    with pytest.raises(ForbiddenError):
        order_service.create_walk_in_order(supplier, [{"inventory_item_id": item.id, "quantity": 1}])


# =============================================================================
# LOW STOCK
# =============================================================================


def test_low_stock_threshold_is_inclusive(supplier, make_item):
    at_threshold = make_item(supplier, name="A", stock=10, min_stock=10)
    empty = make_item(supplier, name="B", stock=0, min_stock=10)
    make_item(supplier, name="C", stock=11, min_stock=10)

    low = inventory_service.list_low_stock(supplier.id)
    assert [item.id for item in low] == [empty.id, at_threshold.id]


def test_list_items_only_own(supplier, retailer, make_item):
    make_item(supplier, name="Mine")
    make_item(retailer, name="Theirs")
    assert [i.name for i in inventory_service.list_items(supplier.id)] == ["Mine"]
