"""
Pytest fixtures for shopledger backend tests.

Provides the app on an in-memory database, per-test table cleanup, one user
per role and helpers for logging in through the API.
"""

import pytest
from flask import g

from shopledger import create_app
from shopledger.config import TestConfig
from shopledger.extensions import db
from shopledger.services import auth_service, products_service, settings_service


PASSWORD = "Password123"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Empty every table before each test; the schema is kept."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    settings_service.invalidate_cache()
    g.pop("current_user", None)

    yield db.session

    db.session.rollback()
    db.session.remove()
    settings_service.invalidate_cache()


def _make_user(username: str, role: str):
    # Low bcrypt cost keeps the suite fast
    return auth_service.create_user(
        username=username,
        password=PASSWORD,
        name=username.title(),
        role=role,
        rounds=4,
    )


@pytest.fixture
def admin_user(db_session):
    return _make_user("admin", "admin")


@pytest.fixture
def manager_user(db_session):
    return _make_user("manager", "manager")


@pytest.fixture
def staff_user(db_session):
    return _make_user("staff", "staff")


@pytest.fixture
def make_product(db_session):
    """Factory: create an active product, optionally with opening stock."""
    counter = {"n": 0}

    def _make(name=None, *, stock=0, selling_price_cents=500, purchase_price_cents=300,
              min_stock=10, category_id=None, barcode=None):
        counter["n"] += 1
        patch = {
            "name": name or f"Product {counter['n']}",
            "selling_price_cents": selling_price_cents,
            "purchase_price_cents": purchase_price_cents,
            "min_stock": min_stock,
            "category_id": category_id,
            "barcode": barcode,
            "initial_stock": stock,
        }
        data = products_service.create_product(patch=patch, actor_id=None)
        return products_service.get_product(data["id"])

    return _make


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture
def manager_headers(client, manager_user):
    return auth_headers(get_auth_token(client, manager_user.username))


@pytest.fixture
def staff_headers(client, staff_user):
    return auth_headers(get_auth_token(client, staff_user.username))
