"""
Test configuration and fixtures.

The API runs against an in-memory mongomock database patched in as
``database.db``; tokens are minted with the same secret the app verifies.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import create_access_token
from main import app


@pytest.fixture
def db(monkeypatch):
    """Fresh in-memory database for each test."""
    mock_db = mongomock.MongoClient().get_database("docdor_test")
    monkeypatch.setattr(database, "db", mock_db)
    return mock_db


@pytest.fixture
def client(db) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(name="Ana Patient", email="ana@clinic.org"):
        return str(db["user"].insert_one({"name": name, "email": email}).inserted_id)
    return _make


@pytest.fixture
def make_doctor(db):
    def _make(name="Dr. Rao", specialization="Cardiology", available_slots=None):
        return str(db["doctor"].insert_one({
            "name": name,
            "email": None,
            "specialization": specialization,
            "available_slots": available_slots or [],
        }).inserted_id)
    return _make


def bearer(user_id: str, role: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}


@pytest.fixture
def headers_for():
    return bearer


@pytest.fixture
def user_headers(make_user):
    return bearer(make_user(), "user")


@pytest.fixture
def doctor_headers(make_doctor):
    return bearer(make_doctor(), "doctor")
