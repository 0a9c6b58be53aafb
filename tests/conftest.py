import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SITE_URL", "http://library.test")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from library_admin.main import app
from library_admin.core.database import get_session
from library_admin.core.security import create_access_token, get_password_hash
from library_admin.models.users import User
from library_admin.services.email_services import email_service
from library_admin.services.login_guard import login_guards
from library_admin.services.redis_service import redis_service
from library_admin.utils.seed_data import create_admin


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def outbox(monkeypatch):
    """Collect outgoing emails instead of talking to an SMTP server."""
    sent = []

    def fake_send(to_email, subject, html_content, from_email=None):
        sent.append({"to": to_email, "subject": subject, "html": html_content})

    monkeypatch.setattr(email_service, "send_email", fake_send)
    return sent


@pytest.fixture(autouse=True)
def revoked_tokens(monkeypatch):
    revoked = {}
    monkeypatch.setattr(
        redis_service, "add_to_blacklist",
        lambda token, expires_in: revoked.__setitem__(token, expires_in),
    )
    monkeypatch.setattr(redis_service, "is_blacklisted", lambda token: token in revoked)
    return revoked


@pytest.fixture
def client(session, outbox):
    app.dependency_overrides[get_session] = lambda: session
    test_client = TestClient(app)
    try:
        yield test_client
    finally:
        app.dependency_overrides.clear()
        login_guards.close()


@pytest.fixture
def admin(session):
    return create_admin(session, "admin@library.com", "admin-pass", "Head Librarian")


@pytest.fixture
def member(session):
    user = User(
        email="reader@library.com",
        password_hash=get_password_hash("reader-pass"),
        is_verified=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def bearer(user):
    return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}


@pytest.fixture
def admin_headers(admin):
    return bearer(admin)


@pytest.fixture
def member_headers(member):
    return bearer(member)
