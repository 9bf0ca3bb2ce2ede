"""
Shared fixtures.

Every app/service gets a fresh in-memory SQLite store, token blacklist and
OTP map, and a mailer that records messages instead of sending them.
"""
from __future__ import annotations

from datetime import timedelta

import pytest

from api import create_app
from models.db_storage import DBStorage
from services.auth_service import AuthService
from utils.otp import OtpManager
from utils.security import TokenIssuer, make_hasher

STRONG_PASSWORD = "Abc12345!"


def cheap_hasher():
    return make_hasher(time_cost=1, memory_cost=1024, parallelism=1)


class RecordingMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    def send(self, to: str, subject: str, body: str) -> bool:
        if self.fail:
            return False
        self.sent.append((to, subject, body))
        return True


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def storage():
    store = DBStorage("sqlite:///:memory:")
    store.reload()
    yield store
    store.dispose()


@pytest.fixture
def issuer():
    return TokenIssuer(
        secret="test-secret",
        issuer="campus-app-test",
        access_ttl=timedelta(hours=1),
        refresh_ttl=timedelta(days=7),
    )


@pytest.fixture
def service(storage, issuer, mailer):
    otp = OtpManager(mailer, ttl_seconds=300, code_generator=lambda: "123456")
    return AuthService(
        storage, issuer, otp=otp, institution_domain="northeastern.edu", hasher=cheap_hasher()
    )


@pytest.fixture
def app(mailer):
    app = create_app("testing", mailer=mailer)
    yield app
    app.extensions["storage"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


def register_payload(email="jane@northeastern.edu", password=STRONG_PASSWORD):
    return {"firstName": "Jane", "lastName": "Doe", "email": email, "password": password}
