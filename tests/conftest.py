# =============================================================================
# tests/conftest.py - Pytest Configuration
# =============================================================================
# Environment is set BEFORE importing the app: app.py reads config and
# creates tables at import time.
# =============================================================================

import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SEED_DEFAULT_DATA"] = "false"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-with-enough-length-for-hs256")

import pytest

from app import app as flask_app
from auth import seed_roles
from contact_service import ContactSubmission, create_contact
from models import db, User, Role


@pytest.fixture(autouse=True)
def app_context():
    """Fresh tables (with built-in roles) for every test."""
    flask_app.config["TESTING"] = True
    with flask_app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        seed_roles()
        yield flask_app
        db.session.remove()


@pytest.fixture
def client():
    return flask_app.test_client()


@pytest.fixture
def user_factory():
    def _create(email="someone@example.com", password="Secret#123", roles=("User",)):
        user = User(email=email, first_name="Test", last_name="User")
        user.set_password(password)
        user.roles = Role.query.filter(Role.name.in_(roles)).all()
        db.session.add(user)
        db.session.commit()
        return user
    return _create


@pytest.fixture
def auth_headers(client, user_factory):
    """Log in a fresh user holding `role` and return bearer headers."""
    def _headers(role="User"):
        email = f"{role.lower()}@example.com"
        user_factory(email=email, password="Secret#123", roles=(role,))
        resp = client.post("/auth/login", json={"email": email, "password": "Secret#123"})
        assert resp.status_code == 200, resp.get_json()
        return {"Authorization": f"Bearer {resp.get_json()['access_token']}"}
    return _headers


@pytest.fixture
def contact_factory():
    def _create(first_name="Ada", last_name="Lovelace", **arrays):
        return create_contact(ContactSubmission(first_name=first_name, last_name=last_name, **arrays))
    return _create
