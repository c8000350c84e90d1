"""
Pytest fixtures for NumberFlow backend tests.

Provides an in-memory database, admin/employee identities, a live
InventoryState, lifecycle engines and a test client.
"""

from datetime import datetime

import pytest
from numberflow import create_app
from numberflow.extensions import db
from numberflow.models import Document
from numberflow.services.app_state import InventoryState
from numberflow.services.lifecycle_service import LifecycleEngine
from numberflow.services.user_service import create_user


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SWEEPS_ENABLED': False,
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
    """Empty every collection before each test."""
    db.session.query(Document).delete()
    db.session.commit()
    app.extensions["recently_promoted"].clear()

    yield db.session

    db.session.rollback()


@pytest.fixture(scope='function')
def doc_store(app, db_session):
    return app.extensions["document_store"]


@pytest.fixture(scope='function')
def admin(doc_store):
    """Admin user document + identity."""
    return create_user(doc_store, "admin-1", "Asha Admin", "asha@numberflow.local", "admin")


@pytest.fixture(scope='function')
def employee(doc_store):
    """Employee user document + identity."""
    return create_user(doc_store, "emp-1", "Ravi", "ravi@numberflow.local", "employee")


@pytest.fixture(scope='function')
def state(doc_store):
    """Live state subscribed for the duration of one test."""
    live = InventoryState(doc_store).start()
    yield live
    live.stop()


@pytest.fixture(scope='function')
def engine(doc_store, state, admin):
    return LifecycleEngine(doc_store, state, admin)


@pytest.fixture(scope='function')
def employee_engine(doc_store, state, employee):
    return LifecycleEngine(doc_store, state, employee)


def number_payload(mobile, /, **overrides):
    """Attributes of a plain RTS prepaid number owned individually."""
    payload = {
        'mobile': mobile,
        'status': 'RTS',
        'number_type': 'Prepaid',
        'ownership_type': 'Individual',
        'purchase_from': 'Airtel Store',
        'purchase_price': 150,
        'purchase_date': datetime(2024, 1, 5),
        'current_location': 'Main Shop',
        'location_type': 'Store',
    }
    payload.update(overrides)
    return payload


def import_row(mobile, **overrides):
    """One structured import row with the required headers."""
    row = {
        'Mobile': mobile,
        'NumberType': 'Prepaid',
        'PurchaseFrom': 'Vodafone',
        'PurchasePrice': '200',
        'PurchaseDate': '05-01-2024',
        'CurrentLocation': 'Main Shop',
        'LocationType': 'Store',
        'Status': 'RTS',
        'OwnershipType': 'Individual',
    }
    row.update(overrides)
    return row


@pytest.fixture(scope='function')
def make_number(engine):
    """Add a number through the engine; returns its id."""
    def _make(mobile, **overrides):
        return engine.add_number(number_payload(mobile, **overrides))
    return _make


@pytest.fixture(scope='function')
def sale_details():
    return {'sold_to': 'numberwale', 'sale_price': 999, 'sale_date': datetime(2024, 3, 1)}


def user_headers(uid: str) -> dict:
    """Helper to create identity headers."""
    return {'X-User-Id': uid}
