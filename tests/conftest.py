"""Shared pytest fixtures for the application tests."""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest
from flask import Flask
from flask.testing import FlaskClient

ROOT_DIR = Path(__file__).resolve().parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import create_app  # noqa: E402
from config import Config  # noqa: E402
from flask_jwt_extended import create_access_token  # noqa: E402
from models import db  # noqa: E402
from models.user import User  # noqa: E402
from utils.timeutils import utcnow  # noqa: E402


class _BaseTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SWEEP_SCHEDULER_ENABLED = False
    JWT_SECRET_KEY = "test-jwt-secret-key-with-enough-length"


@pytest.fixture()
def app(tmp_path) -> Flask:
    """Create a Flask application instance for tests."""

    upload_dir = tmp_path / "uploads"

    class TestConfig(_BaseTestConfig):
        UPLOAD_DIR = str(upload_dir)

    application = create_app(TestConfig)

    with application.app_context():
        db.create_all()

    yield application

    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app: Flask) -> FlaskClient:
    """Return a test client for the Flask app."""

    return app.test_client()


def _create_user(
    email: str,
    role: str = "volunteer",
    password: str = "secret123",
    name: str = "Test User",
    location: str = "North Campus",
) -> int:
    """Persist a user and return its id. Call inside an app context."""

    user = User(name=name, email=email, role=role, location=location)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user.id


def _listing_payload(**overrides) -> dict:
    payload = {
        "food_type": "VEG",
        "quantity": 25,
        "name": "Dal and rice",
        "description": "Leftover lunch from the mess",
        "location": "Hostel B kitchen",
        "available_until": (utcnow() + timedelta(hours=6)).isoformat(),
    }
    payload.update(overrides)
    return payload


@pytest.fixture()
def accounts(app: Flask) -> dict[str, int]:
    """Create a hostel, a second hostel and two volunteers."""

    with app.app_context():
        return {
            "hostel": _create_user("hostel@example.com", role="hostel", name="Hostel B"),
            "other_hostel": _create_user(
                "other-hostel@example.com", role="hostel", name="Hostel C"
            ),
            "v1": _create_user("v1@example.com", name="Volunteer One"),
            "v2": _create_user("v2@example.com", name="Volunteer Two"),
        }


@pytest.fixture()
def make_user(app: Flask):
    """Return a factory persisting users; usable outside an app context."""

    def _make(email: str, role: str = "volunteer", **kwargs) -> int:
        with app.app_context():
            return _create_user(email, role=role, **kwargs)

    return _make


@pytest.fixture()
def auth_header(app: Flask):
    """Return a factory building bearer headers for a user id."""

    def _header(user_id: int) -> dict[str, str]:
        with app.app_context():
            token = create_access_token(identity=str(user_id))
        return {"Authorization": f"Bearer {token}"}

    return _header


@pytest.fixture()
def listing_payload():
    """Return a factory for valid listing request bodies."""

    return _listing_payload
