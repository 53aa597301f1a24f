"""
Pytest fixtures for GemLedger backend tests.

Provides test database setup, two-shop tenant fixtures, and test client.
"""

import pytest

from gemledger import create_app
from gemledger.config import TestingConfig
from gemledger.extensions import db
from gemledger.services import permission_service, shop_service
from gemledger.services.auth_service import assign_role, create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
    """Clear all rows but keep the schema."""
    with app.app_context():
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def setup_permissions(db_session):
    """Seed the permission catalog."""
    permission_service.initialize_permissions()


@pytest.fixture(scope='function')
def shop_a(db_session, setup_permissions):
    """Shop A with its default roles."""
    return shop_service.create_shop(name="Alpha Jewels", code="ALPHA")


@pytest.fixture(scope='function')
def shop_b(db_session, setup_permissions):
    """Shop B with its default roles."""
    return shop_service.create_shop(name="Beta Gems", code="BETA")


def make_user(shop, username: str, role: str = "owner"):
    """Create a user in a shop and give it one role."""
    user = create_user(
        username=username,
        email=f"{username}@example.com",
        password=PASSWORD,
        shop_id=shop.id,
    )
    assign_role(user.id, role)
    return user


@pytest.fixture(scope='function')
def user_a(shop_a):
    """Owner of shop A."""
    return make_user(shop_a, "owner_a")


@pytest.fixture(scope='function')
def user_b(shop_b):
    """Owner of shop B."""
    return make_user(shop_b, "owner_b")


@pytest.fixture(scope='function')
def headers_a(client, user_a):
    return auth_headers(get_auth_token(client, user_a.username, PASSWORD))


@pytest.fixture(scope='function')
def headers_b(client, user_b):
    return auth_headers(get_auth_token(client, user_b.username, PASSWORD))


def get_auth_token(client, username: str, password: str, shop_id: int | None = None) -> str:
    """Helper to get auth token for a user."""
    body = {'username': username, 'password': password}
    if shop_id is not None:
        body['shop_id'] = shop_id
    response = client.post('/api/auth/login', json=body)
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
