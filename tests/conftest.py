"""
Shared pytest fixtures for the task engine test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test app context + table recreate (autouse)
    - client: Flask test client
    - make_user / make_tenant / add_member: identity row factories
    - startup: owner + startup + one extra member, ready to use
    - make_task: create a task through task_service
    - auth_headers: Bearer JWT headers for a user
    - clock: controllable "now" for the timer engine
"""

from datetime import datetime, timedelta, timezone
from itertools import count
from unittest.mock import patch

import pytest

from app import create_app
from app.models import db as _db
from app.models.auth import Tenant, TenantMember, User
from app.services import task_service
from app.services.jwt_service import generate_access_token


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield _db.session
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Identity factories ───────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    seq = count(1)

    def _make(full_name=None, email=None, points=0):
        n = next(seq)
        user = User(
            email=email or f"user{n}@example.com",
            full_name=full_name or f"User {n}",
            points=points,
            level=points // 100 + 1,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_tenant():
    seq = count(1)

    def _make(owner, name=None):
        n = next(seq)
        tenant = Tenant(name=name or f"Startup {n}", slug=f"startup-{n}", owner_id=owner.id)
        _db.session.add(tenant)
        _db.session.commit()
        return tenant

    return _make


@pytest.fixture()
def add_member():
    def _add(tenant, user, role="member"):
        link = TenantMember(tenant_id=tenant.id, user_id=user.id, role=role)
        _db.session.add(link)
        _db.session.commit()
        return link

    return _add


@pytest.fixture()
def startup(make_user, make_tenant, add_member):
    """Owner, a second member and an outsider around one startup."""
    owner = make_user("Olivia Owner")
    member = make_user("Mo Member")
    outsider = make_user("Oscar Outsider")
    tenant = make_tenant(owner, name="Acme Labs")
    add_member(tenant, member)

    class _Startup:
        pass

    s = _Startup()
    s.tenant, s.owner, s.member, s.outsider = tenant, owner, member, outsider
    return s


@pytest.fixture()
def make_task(startup):
    """Create a task in ``startup.tenant`` via the service; returns its dict."""

    def _make(creator=None, assignees=(), **data):
        data.setdefault("title", "Write landing page")
        creator = creator or startup.owner
        return task_service.create_task(
            startup.tenant.id, creator.id, data, [u.id for u in assignees],
        )

    return _make


@pytest.fixture()
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id)}"}

    return _headers


# ── Clock ────────────────────────────────────────────────────────────────


class FakeClock:
    """Callable stand-in for timer_service._utcnow."""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture()
def clock():
    fake = FakeClock(datetime(2026, 3, 2, 9, 0, 0, tzinfo=timezone.utc))
    with patch("app.services.timer_service._utcnow", fake):
        yield fake
