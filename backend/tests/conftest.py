"""
Pytest fixtures for shopledger backend tests.

Provides the application on an in-memory database, a test client, a fresh
database per test, and supplier / bill factories.
"""

import pytest
from shopledger import create_app
from shopledger.extensions import db
from shopledger.models import Product, SupplierBill
from shopledger.services import supplier_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_TXN_BACKOFF': 0.001,
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
        db.session.remove()


@pytest.fixture(scope='function')
def supplier(db_session):
    """Create a supplier."""
    return supplier_service.create_supplier("Acme Traders", address="12 Market Road", phone="01700000000")


@pytest.fixture(scope='function')
def make_bill(supplier):
    """Factory: register a bill for `supplier` with the given lines."""
    def _make(bill_number="B1", deal_amount_cents=50000, paid_amount_cents=0, lines=None):
        if lines is None:
            lines = [
                {"barcode": "A-001", "name": "Product A", "quantity": 10,
                 "unit_price_cents": 5000, "retail_price_cents": 6000},
                {"barcode": "B-001", "name": "Product B", "quantity": 8,
                 "unit_price_cents": 2500, "retail_price_cents": 3000},
            ]
        return supplier_service.register_bill(
            supplier.id, bill_number, deal_amount_cents, paid_amount_cents, lines=lines
        )
    return _make


@pytest.fixture(scope='function')
def bill_b1(make_bill):
    """Bill B1: deal 500.00, products A (10 @ 50.00) and B (8 @ 25.00)."""
    return make_bill()


def get_line(bill_number: str, barcode: str) -> Product:
    """Fresh read of one product row of a bill."""
    db.session.expire_all()
    return (
        db.session.query(Product)
        .join(SupplierBill, Product.bill_id == SupplierBill.id)
        .filter(SupplierBill.bill_number == bill_number, Product.barcode == barcode)
        .one()
    )


def get_bill(bill_number: str) -> SupplierBill:
    db.session.expire_all()
    return db.session.query(SupplierBill).filter_by(bill_number=bill_number).one()
