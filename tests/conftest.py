import os

os.environ["RAKNAGO_DATABASE_URL"] = "sqlite://"
os.environ.pop("EMAIL_USER", None)
os.environ.pop("EMAIL_PASSWORD", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config import MailSettings
from database import Base, get_db
from mailer import OtpEmailService
from main import app
from routers.functions import get_otp_service
from store import USERS, DocumentStore


class FakeRelay:
    def __init__(self):
        self.sent = []
        self.verified = 0
        self.error = None

    def verify(self):
        self.verified += 1
        if self.error:
            raise self.error

    def send(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def relay():
    return FakeRelay()


@pytest.fixture()
def otp_service(relay):
    settings = MailSettings(user="noreply@example.com", password="abcd efgh ijkl mnop")
    return OtpEmailService(settings, relay=relay)


@pytest.fixture()
def client(session_factory, otp_service):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_otp_service] = lambda: otp_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def store_session(session_factory):
    """Runs a callable against a fresh store so committed API writes are visible."""
    def run(fn):
        db = session_factory()
        try:
            return fn(DocumentStore(db))
        finally:
            db.close()
    return run


# --- API helpers ---

def register(client, email, password="correct-horse-1"):
    response = client.post("/auth/register", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return body["uid"], {"Authorization": f"Bearer {body['token']}"}


def create_profile(client, uid, headers, email, name="Test User", completed=True):
    response = client.post(f"/users/{uid}", json={"email": email, "name": name}, headers=headers)
    assert response.status_code == 201, response.text
    if completed:
        response = client.patch(f"/users/{uid}", json={"profileCompleted": True}, headers=headers)
        assert response.status_code == 200, response.text
    return response.json()


def make_admin(store_session, uid):
    def promote(store):
        store.update(USERS, uid, {"role": "admin"})
        store.commit()
    store_session(promote)


@pytest.fixture()
def user(client):
    uid, headers = register(client, "driver@example.com")
    create_profile(client, uid, headers, "driver@example.com", name="Driver")
    return uid, headers


@pytest.fixture()
def other_user(client):
    uid, headers = register(client, "other@example.com")
    create_profile(client, uid, headers, "other@example.com", name="Other")
    return uid, headers


@pytest.fixture()
def admin(client, store_session):
    uid, headers = register(client, "admin@example.com")
    create_profile(client, uid, headers, "admin@example.com", name="Admin")
    make_admin(store_session, uid)
    return uid, headers
