"""
Pytest fixtures for TableSync backend tests.

Provides test database setup, business/table fixtures, and test client.
"""

from datetime import datetime

import pytest
from tablesync import create_app
from tablesync.extensions import db
from tablesync.models import Business, DiningTable, Order, OrderItem


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'RECONCILE_MAX_FIXES': 25,
    })

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
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def business(db_session):
    """Create the business most tests run against."""
    biz = Business(id="biz-1", name="Casa Pepe", code="PEPE", is_active=True)
    db_session.add(biz)
    db_session.commit()
    return biz


@pytest.fixture(scope='function')
def other_business(db_session):
    """Second tenant, for isolation checks."""
    biz = Business(id="biz-2", name="Beta Bistro", code="BETA", is_active=True)
    db_session.add(biz)
    db_session.commit()
    return biz


def make_table(session, business_id: str, table_id: str, *, status="available", current_order_id=None):
    """Insert a table row exactly as given (no consistency rules applied)."""
    table = DiningTable(
        id=table_id,
        business_id=business_id,
        name=table_id,
        status=status,
        current_order_id=current_order_id,
    )
    session.add(table)
    session.commit()
    return table


def make_order(
    session,
    business_id: str,
    order_id: str,
    *,
    table_id=None,
    status="open",
    opened_at: datetime | None = None,
    items: int = 0,
):
    """Insert an order row exactly as given (no consistency rules applied)."""
    order = Order(
        id=order_id,
        business_id=business_id,
        table_id=table_id,
        status=status,
        opened_at=opened_at or datetime(2026, 10, 18, 12, 0, 0),
    )
    session.add(order)
    session.flush()
    for n in range(items):
        session.add(OrderItem(order_id=order.id, product_name=f"Item {n + 1}", quantity=1, unit_price_cents=1000))
    session.commit()
    return order
