"""
Pytest fixtures for storefront backend tests.

Provides test database setup, user/store/product factories, a recording
notifier and auth-header helpers.
"""

import re

import pytest

from storefront import create_app
from storefront.errors import DependencyError
from storefront.extensions import db
from storefront.models import ROLE_ADMIN, ROLE_STORE_OWNER, Product, Store, User
from storefront.services import session_service
from storefront.services.auth_service import hash_password

TEST_PASSWORD = "Password123!"


class RecordingNotifier:
    """Collects outgoing messages; set ``fail = True`` to simulate an outage."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to, subject, body, html=None):
        if self.fail:
            raise DependencyError("There was an error sending the email. Try again later.")
        self.sent.append({"to": to, "subject": subject, "body": body, "html": html})

    def reset(self):
        self.sent.clear()
        self.fail = False

    def last_token(self, kind: str) -> str:
        """Raw token from the most recent ``verify-email`` or ``reset-password`` link."""
        for message in reversed(self.sent):
            match = re.search(rf"{kind}/([0-9a-f]{{64}})", message["body"])
            if match:
                return match.group(1)
        raise AssertionError(f"No {kind} link was sent")


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app(
        {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
            'BCRYPT_ROUNDS': 4,
            'NOTIFICATION_BACKEND': 'log',
            'PUBLIC_BASE_URL': 'http://testserver',
            'UPLOAD_ROOT': str(tmp_path_factory.mktemp('uploads')),
            'MAX_IMAGE_BYTES': 1024,
        },
        notifier=RecordingNotifier(),
    )

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
def settings(app):
    return app.extensions['storefront']['settings']


@pytest.fixture(scope='function')
def notifier(app):
    recorder = app.extensions['storefront']['notifier']
    recorder.reset()
    yield recorder
    recorder.reset()


@pytest.fixture(scope='function')
def make_user(db_session):
    """Factory: make_user("a@example.com", role=..., verified=..., active=...)."""
    def _make(email, *, name=None, role=ROLE_STORE_OWNER, verified=True, active=True):
        user = User(
            name=name or email.split("@")[0],
            email=email,
            phone="0700000000",
            role=role,
            password_hash=hash_password(TEST_PASSWORD, rounds=4),
            email_verified=verified,
            is_active=active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def make_store(db_session):
    def _make(owner, name="Main Street Shop", **fields):
        store = Store(owner_id=owner.id, name=name, hero_image="hero.jpg", **fields)
        db_session.add(store)
        db_session.commit()
        return store
    return _make


@pytest.fixture(scope='function')
def make_product(db_session):
    def _make(store, name="T-Shirt", price_cents=1000, sizes=None, **fields):
        product = Product(
            store_id=store.id,
            owner_id=store.owner_id,
            name=name,
            price_cents=price_cents,
            available_sizes=list(sizes or []),
            **fields,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def owner(make_user):
    """Owns the `store` fixture."""
    return make_user("owner@example.com")


@pytest.fixture(scope='function')
def other_owner(make_user):
    """A second store owner; owns `other_store` when that fixture is used."""
    return make_user("other@example.com")


@pytest.fixture(scope='function')
def admin(make_user):
    return make_user("admin@example.com", role=ROLE_ADMIN)


@pytest.fixture(scope='function')
def store(make_store, owner):
    return make_store(owner, name="Store S")


@pytest.fixture(scope='function')
def other_store(make_store, other_owner):
    return make_store(other_owner, name="Other Store")


@pytest.fixture(scope='function')
def auth_headers(settings):
    """auth_headers(user) -> Authorization header for a fresh session."""
    def _headers(user):
        _, token = session_service.create_session(user, settings)
        return {"Authorization": f"Bearer {token}"}
    return _headers
