"""
Pytest fixtures for Bill Tracker backend tests.

Provides test database setup, company / user / access fixtures, auth
helpers and a recording notification channel.
"""

from decimal import Decimal

import pytest

from billtracker import create_app
from billtracker.config import TestConfig
from billtracker.extensions import db
from billtracker.models import Company, User
from billtracker.services import notification_service, permission_service, session_service
from billtracker.services.auth_service import hash_password


PASSWORD = "Password123!"


class RecordingChannel:
    """Notification channel that remembers every message it was given."""

    name = "recording"

    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)

    def kinds(self):
        return [m.kind for m in self.messages]


class FailingChannel:
    name = "failing"

    def send(self, message):
        raise RuntimeError("channel down")


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """bcrypt is slow on purpose; hash the shared test password once."""
    return hash_password(PASSWORD)


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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def notifications(app):
    """Capture notifications; the default channels keep running."""
    recorder = RecordingChannel()
    dispatcher = notification_service.get_dispatcher()
    original = list(dispatcher.channels)
    dispatcher.add_channel(recorder)
    yield recorder
    dispatcher.channels = original


@pytest.fixture(scope='function')
def company(db_session):
    """Company A with an approval threshold of 10,000 THB."""
    company = Company(name="Acme Trading", code="ACME", approval_threshold=Decimal("10000.00"), is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def other_company(db_session):
    """Company B (second tenant), no approval policy."""
    company = Company(name="Beta Services", code="BETA", is_active=True)
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """
    Factory: make_user("somchai", company, preset="staff").

    Without a company the user exists but has no access anywhere.
    """
    def _make(username, company=None, *, preset=None, permissions=None, is_owner=False, display_name=None):
        user = User(
            username=username,
            email=f"{username}@example.com",
            display_name=display_name,
            password_hash=password_hash,
        )
        db_session.add(user)
        db_session.commit()
        if company is not None:
            permission_service.grant_access(
                user_id=user.id,
                company_id=company.id,
                permissions=permissions,
                preset=preset,
                is_owner=is_owner,
            )
        return user

    return _make


@pytest.fixture(scope='function')
def owner(make_user, company):
    return make_user("owner", company, is_owner=True, display_name="Owner")


@pytest.fixture(scope='function')
def clerk(make_user, company):
    """Can record and settle, cannot approve."""
    return make_user(
        "clerk", company,
        preset="staff",
        permissions=["expenses:mark-paid", "incomes:mark-received", "expenses:change-status",
                     "incomes:change-status"],
        display_name="Clerk",
    )


@pytest.fixture(scope='function')
def manager(make_user, company):
    return make_user("manager", company, preset="manager", display_name="Manager")


@pytest.fixture(scope='function')
def outsider(make_user, other_company):
    """Owner of company B, no access to company A."""
    return make_user("outsider", other_company, is_owner=True)


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """auth_headers(user) -> Authorization header for a fresh session."""
    def _headers(user):
        _, token = session_service.create_session(user_id=user.id, user_agent="pytest")
        return {'Authorization': f'Bearer {token}'}

    return _headers


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.get_json()['data']['token']
    return None
