"""
Pytest fixtures for stock ledger backend tests.

Provides test database setup, catalog fixtures, and test client.
"""

import pytest
from stockledger import create_app
from stockledger.config import TestConfig
from stockledger.extensions import db
from stockledger.models import Category, Product, StockBatch
from stockledger.services import inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
def category(db_session):
    """Create the default category."""
    category = Category(name="Snacks", emoji="S")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, category):
    """Factory: create a product with a price, no stock."""
    def _make(barcode: str, *, price_cents: int = 100, name: str | None = None) -> Product:
        product = Product(
            barcode=barcode,
            category_id=category.id,
            name=name or f"Product {barcode}",
            emoji="P",
            price_cents=price_cents,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def stocked_product(make_product):
    """Factory: create a product and receive stock batches for it."""
    def _make(barcode: str, *quantities: int, price_cents: int = 100, unit_cost_cents: int = 50) -> Product:
        product = make_product(barcode, price_cents=price_cents)
        for qty in quantities:
            inventory_service.receive_stock(barcode, qty, unit_cost_cents)
        return product
    return _make


def live_batch_sum(barcode: str) -> int:
    """Independent recomputation of on-hand straight from batch rows."""
    batches = db.session.query(StockBatch).filter_by(product_barcode=barcode).all()
    assert all(b.quantity_remaining >= 0 for b in batches)
    return sum(b.quantity_remaining for b in batches if b.quantity_remaining > 0)


def batch_remaining(barcode: str) -> list[int]:
    """quantity_remaining of every batch for a product, in sequence order."""
    db.session.expire_all()
    batches = db.session.query(StockBatch).filter_by(product_barcode=barcode).order_by(StockBatch.sequence).all()
    return [b.quantity_remaining for b in batches]
