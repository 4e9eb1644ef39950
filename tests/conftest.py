"""
Pytest configuration and shared fixtures.

Provides a test application, database session, and test client that
all test modules can use. Uses the ``testing`` configuration, which
points at an in-memory SQLite database unless TEST_DATABASE_URL is set.

The services commit as part of their contract, so tests cannot run
inside an outer transaction that is rolled back. Instead the schema is
created before every test and dropped after it.
"""

import pytest
from helpers import make_business, make_service, make_user

from app import create_app
from app.extensions import db as _db
from app.services import template_service


@pytest.fixture(scope="session")
def app():
    """
    Create a Flask application configured for testing.

    The app is created once per test session; each test pushes its own
    application context through ``db_session``.
    """
    return create_app("testing")


@pytest.fixture(scope="session")
def database(app):  # pylint: disable=redefined-outer-name,unused-argument
    """Provide the SQLAlchemy database instance."""
    yield _db


@pytest.fixture(scope="function")
def db_session(app, database):  # pylint: disable=redefined-outer-name
    """
    Provide a clean database session for each test function.

    The full schema is created inside a fresh application context and
    dropped once the test completes.
    """
    with app.app_context():
        database.create_all()
        yield database.session
        database.session.remove()
        database.drop_all()


@pytest.fixture(scope="function")
def client(app, db_session):  # pylint: disable=redefined-outer-name,unused-argument
    """
    Provide a Flask test client for making HTTP requests.

    Usage in tests::

        def test_health(client):
            response = client.get("/health")
            assert response.status_code == 200
    """
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture()
def login(client):  # pylint: disable=redefined-outer-name
    """
    Sign the test client in as a user through the dev-login route.

    Usage::

        def test_mine(client, login, owner):
            login(owner)
            client.get("/businesses/mine")
    """

    def _login(user):
        response = client.post(f"/auth/dev-login?user_id={user.id}")
        assert response.status_code == 200
        return response

    return _login


# =========================================================================
# Common rows
# =========================================================================


@pytest.fixture()
def owner(db_session):  # pylint: disable=redefined-outer-name
    return make_user(db_session, "owner@example.com", "owner")


@pytest.fixture()
def other_owner(db_session):  # pylint: disable=redefined-outer-name
    return make_user(db_session, "rival@example.com", "owner")


@pytest.fixture()
def client_user(db_session):  # pylint: disable=redefined-outer-name
    return make_user(db_session, "client@example.com", "client")


@pytest.fixture()
def admin(db_session):  # pylint: disable=redefined-outer-name
    return make_user(db_session, "admin@example.com", "admin")


@pytest.fixture()
def universal_template(db_session):  # pylint: disable=redefined-outer-name,unused-argument
    template, _ = template_service.ensure_universal_template()
    return template


@pytest.fixture()
def business(db_session, owner, universal_template):  # pylint: disable=redefined-outer-name
    """An active business owned by ``owner``."""
    return make_business(db_session, owner, universal_template.id)


@pytest.fixture()
def service(db_session, business):  # pylint: disable=redefined-outer-name
    """An active 30-minute service priced at 5000 CRC."""
    return make_service(db_session, business)
