"""
Pytest fixtures for riderpos backend tests.

Provides an in-memory database, a test client, riders, products and a
helper for putting stock in a rider's hands.
"""

import pytest

from riderpos import create_app
from riderpos.extensions import db
from riderpos.models import Product, Profile, ROLE_ADMIN, ROLE_RIDER
from riderpos.services import inventory_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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
        db.session.remove()
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
def admin(db_session):
    profile = Profile(email="admin@test.local", full_name="Admin", role=ROLE_ADMIN)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def rider(db_session):
    profile = Profile(email="rider@test.local", full_name="Rider One", role=ROLE_RIDER)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def other_rider(db_session):
    profile = Profile(email="rider2@test.local", full_name="Rider Two", role=ROLE_RIDER)
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture(scope='function')
def product_a(db_session):
    """SKU "A" priced at 1000."""
    product = Product(sku="A", name="Product A", cost=600, price=1000)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    """SKU "B" priced at 2500."""
    product = Product(sku="B", name="Product B", cost=1500, price=2500)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def give_stock(db_session):
    """Distribute stock to a rider: give_stock(rider, product, quantity)."""
    def _give(rider, product, quantity):
        return inventory_service.distribute_to_rider(
            rider_id=rider.id,
            product_id=product.id,
            quantity=quantity,
        )
    return _give
