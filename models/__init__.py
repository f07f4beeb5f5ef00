"""Database initialization and model exports."""

from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()

# Import models to register them with SQLAlchemy metadata.
from .user import User  # noqa: E402,F401
from .listing import Listing, ReservationHistory  # noqa: E402,F401

__all__ = [
    "db",
    "User",
    "Listing",
    "ReservationHistory",
]
