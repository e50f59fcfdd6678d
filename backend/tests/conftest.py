import os
import sys

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "0123456789abcdef0123456789abcdef0123456789abcdef0123456789abcdef")

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import models  # noqa: E402,F401
from app.api import auth, deps, users  # noqa: E402
from app.api.errors import register_exception_handlers  # noqa: E402
from app.database import Base  # noqa: E402
from app.services import mailer  # noqa: E402


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox(monkeypatch):
    """Capture outgoing email instead of talking to SMTP."""
    sent = []

    def fake_send_email(to_address, subject, body, html_body=None):
        sent.append({"to": to_address, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(mailer, "send_email", fake_send_email)
    return sent


@pytest.fixture
def client(session_factory, outbox):
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(auth.router, prefix="/api")
    app.include_router(users.router, prefix="/api")

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    return TestClient(app)
