"""
Pytest fixtures for stockledger backend tests.

Provides test database setup, catalog fixtures, a sync-event recorder and the test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db, sync_notifier
from stockledger.models import Location, Product, Variant
from stockledger.services.bulk_service import create_movement
from stockledger.services.sync_notifier import log_sink


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        # Deliver sync events inline so tests can assert on them
        'SYNC_NOTIFIER_ASYNC': False,
        'SYNC_WEBHOOK_URL': '',
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
def sync_events():
    """Record every sync event delivered during the test."""
    events = []
    sync_notifier.set_sink(events.append)
    yield events
    sync_notifier.set_sink(log_sink)


@pytest.fixture(scope='function')
def permission_checker(app):
    """Install a PERMISSION_CHECKER granting only the keys in the yielded set."""
    granted = set()
    app.config['PERMISSION_CHECKER'] = lambda key: key in granted
    yield granted
    app.config['PERMISSION_CHECKER'] = None


@pytest.fixture(scope='function')
def warehouse(db_session):
    """Create the first stock location."""
    location = Location(name="Main Warehouse", city="Austin", state="TX")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def storefront(db_session):
    """Create a second stock location."""
    location = Location(name="Storefront", city="Dallas", state="TX")
    db_session.add(location)
    db_session.commit()
    return location


@pytest.fixture(scope='function')
def product(db_session):
    product = Product(name="Blue Shirt", status="ACTIVE")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def make_variant(db_session, product):
    """Factory for variants of the shared product."""
    def _make(sku: str, name: str = "Default", **kwargs):
        variant = Variant(product_id=product.id, sku=sku, name=name, regular_price_cents=1999, **kwargs)
        db_session.add(variant)
        db_session.commit()
        return variant
    return _make


@pytest.fixture(scope='function')
def variant(make_variant):
    return make_variant("BS-M", "Medium")


@pytest.fixture(scope='function')
def stock():
    """Receive stock through the ledger (PURCHASE movement); returns the record."""
    def _stock(variant, location, quantity: int):
        result = create_movement(variant.id, location.id, quantity, "PURCHASE", "Initial stock")
        return result.record
    return _stock
