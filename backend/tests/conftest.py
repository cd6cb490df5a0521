"""
Pytest fixtures for warehouse core tests.

Provides test database setup, item/order factories, actor headers and the
Flask test client.
"""

import pytest

from wms import create_app
from wms.extensions import db
from wms.models import (
    FulfillmentMethod,
    Item,
    ItemCategory,
    PurchaseOrder,
    PurchaseOrderStatus,
)
from wms.permissions import Role
from wms.services import fulfillment_service, shipping_service
from wms.services.concurrency import unit_of_work


ADMIN_ID = 1
STAFF_ID = 2
DRIVER_ID = 7


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'QTY_TOLERANCE': 0.01,
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


@pytest.fixture
def admin_headers():
    return {"X-Actor-Id": str(ADMIN_ID), "X-Actor-Role": Role.WAREHOUSE_ADMIN}


@pytest.fixture
def staff_headers():
    return {"X-Actor-Id": str(STAFF_ID), "X-Actor-Role": Role.WAREHOUSE_STAFF}


# =============================================================================
# FACTORIES
# =============================================================================


@pytest.fixture
def make_item(db_session):
    """Create an Item with opening stock (set directly; fixtures only)."""
    counter = {"n": 0}

    def _make(name="Widget", current=100.0, reserved=0.0, category=ItemCategory.FINISHED_GOOD,
              unit="PCS", unit_price=None, code=None):
        counter["n"] += 1
        item = Item(
            code=code or f"IT-{counter['n']:03d}",
            name=name,
            category=category,
            unit=unit,
            unit_price=unit_price,
            current_stock=current,
            reserved_stock=reserved,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _make


@pytest.fixture
def make_order(db_session):
    """Create a work order through the fulfillment service."""

    def _make(items, customer_name="PT Maju Bersama"):
        with unit_of_work() as uow:
            order = fulfillment_service.create_work_order(
                uow,
                customer_name=customer_name,
                items=items,
                actor_id=ADMIN_ID,
            )
            order_id = order.id
        return fulfillment_service.get_order(order_id)

    return _make


@pytest.fixture
def approve_purchase_order(db_session):
    def _approve(order, status=PurchaseOrderStatus.APPROVED):
        po = PurchaseOrder(po_number=f"PO-{order.id:04d}", order_id=order.id, status=status)
        db_session.add(po)
        db_session.commit()
        return po

    return _approve


@pytest.fixture
def stock_order(make_item, make_order):
    """FROM_STOCK order for 50 units of an item holding 100."""
    item = make_item(name="Storage rack", current=100.0)
    order = make_order([
        {"item_id": item.id, "qty": 50, "fulfillment_method": FulfillmentMethod.FROM_STOCK.value},
    ])
    return item, order


@pytest.fixture
def dispatched(stock_order):
    """The stock_order approved in full and loaded on one truck."""
    item, order = stock_order
    order_item = order.items[0]
    with unit_of_work() as uow:
        fulfillment_service.approve_items(
            uow, order.id, [{"order_item_id": order_item.id, "qty": 50}], ADMIN_ID
        )
    with unit_of_work() as uow:
        result = shipping_service.dispatch_shipment(
            uow,
            order_ids=[order.id],
            driver_id=DRIVER_ID,
            lines=[{"order_item_id": order_item.id, "qty": 50}],
            actor_id=ADMIN_ID,
        )
    return item, order, result["shipment"]
