"""
Pytest fixtures for marketplace backend tests.

Provides an in-memory application, per-test table cleanup, user factories,
bearer-token headers and a file-backed application for threaded tests.
"""

import itertools
import os

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.models import Garment, InventoryItem, User
from marketplace.permissions import (
    APPROVAL_APPROVED,
    ROLE_ADMIN,
    ROLE_CUSTOMER,
    ROLE_DELIVERY,
    ROLE_RETAILER,
    ROLE_SUPPLIER,
    ROLE_TAILOR,
)
from marketplace.services import session_service, tailoring_service


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'TRANSACTION_RETRY_BACKOFF': 0.0,
    'LOG_LEVEL': 'WARNING',
}

_mobiles = itertools.count(9000000000)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture
def make_user(db_session):
    """Factory: make_user(role, name=None, approved=True, active=True) -> User."""
    def _make(role, name=None, approved=True, active=True):
        user = User(
            name=name or f"{role} user",
            mobile=str(next(_mobiles)),
            role=role,
            approval_status=APPROVAL_APPROVED if approved else "pending",
            is_active=active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def admin(make_user):
    return make_user(ROLE_ADMIN, "Platform Admin")


@pytest.fixture
def customer(make_user):
    return make_user(ROLE_CUSTOMER, "Meera")


@pytest.fixture
def other_customer(make_user):
    return make_user(ROLE_CUSTOMER, "Ravi")


@pytest.fixture
def supplier(make_user):
    return make_user(ROLE_SUPPLIER, "Loom Mills")


@pytest.fixture
def retailer(make_user):
    return make_user(ROLE_RETAILER, "City Fabrics")


@pytest.fixture
def tailor(make_user):
    return make_user(ROLE_TAILOR, "Stitch Studio")


@pytest.fixture
def other_tailor(make_user):
    return make_user(ROLE_TAILOR, "Needle Point")


@pytest.fixture
def delivery_partner(make_user):
    return make_user(ROLE_DELIVERY, "Swift Couriers")


@pytest.fixture
def make_item(db_session):
    """Factory: make_item(owner, name, price_cents, stock, min_stock=10) -> InventoryItem."""
    def _make(owner, name="Cotton fabric", price_cents=10000, stock=50, min_stock=10):
        item = InventoryItem(
            owner_id=owner.id,
            name=name,
            unit="meter",
            unit_price_cents=price_cents,
            stock_quantity=stock,
            min_stock_quantity=min_stock,
        )
        db_session.add(item)
        db_session.commit()
        return item
    return _make


@pytest.fixture
def garment(db_session, tailor):
    garment = Garment(tailor_id=tailor.id, name="Sherwani")
    db_session.add(garment)
    db_session.commit()
    return garment


@pytest.fixture
def headers_for(db_session):
    """Factory: headers_for(user) -> Authorization headers with a fresh session token."""
    def _headers(user):
        _, token = session_service.create_session(user.id)
        return auth_headers(token)
    return _headers


@pytest.fixture
def delivered_tailoring_order(customer, tailor, garment):
    """Tailoring order walked through to DELIVERED with a paid payment."""
    order = tailoring_service.place_tailoring_order(
        customer, tailor_id=tailor.id, garment_id=garment.id,
    )
    tailoring_service.quote(tailor, order.id, price_cents=50000, delivery_date="2025-12-01")
    tailoring_service.confirm(customer, order.id)
    tailoring_service.pay(customer, order.id, payment_mode="UPI")
    tailoring_service.start_work(tailor, order.id)
    tailoring_service.complete_work(tailor, order.id)
    return tailoring_service.confirm_delivery(customer, order.id)


@pytest.fixture
def file_app(tmp_path):
    """
    Application bound to a temporary SQLite file.

    Threads each push their own app context and therefore get their own
    connection, which an in-memory database cannot provide.
    """
    db_path = os.path.join(str(tmp_path), "concurrency.db")
    app = create_app({
        **TEST_CONFIG,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'TRANSACTION_RETRY_ATTEMPTS': 10,
        'TRANSACTION_RETRY_BACKOFF': 0.01,
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.session.remove()
        db.engine.dispose()


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
