"""
Shared test fixtures and configuration for pytest.
"""

import os
import tempfile

import pytest

# Set test environment before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["JWT_SECRET"] = "test-secret-key-for-testing-only"
os.environ["MONGO_URI"] = "mongodb://localhost:27017"
os.environ["MONGO_DB_NAME"] = "flatmates_test"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="flatmates-uploads-")
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("CLOUDINARY_CLOUD_NAME", None)

import mongomock
from fastapi.testclient import TestClient

from flatmates import config
from flatmates.db import ensure_indexes, get_db
from flatmates.main import app
from flatmates.repositories.users import UserRepository
from flatmates.utils.security import create_access_token, get_password_hash


@pytest.fixture
def db():
    """In-memory MongoDB with the application indexes in place."""
    database = mongomock.MongoClient()["flatmates_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    """Test client whose routes talk to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Keep every saved upload inside the test's temporary directory."""
    monkeypatch.setattr(config, "UPLOAD_DIR", str(tmp_path))
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", None)
    return tmp_path


# ============ User Fixtures ============

@pytest.fixture
def make_user(db):
    """Factory creating local users straight in the store."""

    def _make_user(name="Test User", email="test@example.com", password="password123",
                   user_type="room_seeker", **extra):
        return UserRepository(db).create({
            "name": name,
            "email": email,
            "password": get_password_hash(password),
            "userType": user_type,
            "socialProvider": "local",
            **extra,
        })

    return _make_user


@pytest.fixture
def test_user(make_user):
    return make_user()


@pytest.fixture
def auth_headers(test_user) -> dict:
    """Authorization headers with test user token."""
    return _bearer(test_user)


def _bearer(user: dict) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def headers_for():
    """Build Authorization headers for any stored user."""
    return _bearer


@pytest.fixture
def provider(make_user):
    """A room provider who can publish room_in_flat listings."""
    return make_user(name="Priya Provider", email="provider@example.com", user_type="room_provider")


@pytest.fixture
def listing_data():
    return {
        "title": "Sunny room in Indiranagar",
        "description": "Large room with balcony in a 3BHK",
        "propertyType": "room",
        "listingType": "room_in_flat",
        "address": {"street": "12th Main", "city": "Bangalore", "country": "India"},
        "price": {"amount": 18000, "brokerage": 5000},
        "availability": {"availableFrom": "2026-11-01"},
        "features": {"bedrooms": 1, "bathrooms": 1, "furnishing": "furnished", "amenities": ["wifi", "parking"]},
        "preferences": {"gender": "any", "smoking": False},
    }


@pytest.fixture
def listing(client, provider, listing_data):
    """A listing created through the API by ``provider``."""
    response = client.post("/api/properties/", json=listing_data, headers=_bearer(provider))
    assert response.status_code == 200, response.text
    return response.json()
