"""Authentication blueprint providing register, login and account deletion."""

from __future__ import annotations
from http import HTTPStatus

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import create_access_token, get_jwt_identity, jwt_required
from werkzeug.exceptions import BadRequest, Conflict, Forbidden, NotFound, Unauthorized
from sqlalchemy import func

from models import db
from models.user import ROLE_VOLUNTEER, USER_ROLES, User
from storage.local_storage import LocalStorage
from utils.request_validation import parse_json_request

auth_bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 6


def _normalize_email(raw_email: str | None) -> str:
    """Normalize an email string by stripping whitespace and lowering case."""
    return (raw_email or "").strip().lower()


def _extract_role(raw_role: str | None) -> str:
    """Return a valid role string, defaulting to volunteer."""
    role = (raw_role or "").strip().lower() or ROLE_VOLUNTEER
    return role if role in USER_ROLES else ""


def _current_user_id() -> int | None:
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        return None


@auth_bp.route("/register", methods=["POST"])
def register() -> tuple:
    """Register a hostel or volunteer account."""
    payload = parse_json_request(request)
    name = (payload.get("name") or "").strip()
    email = _normalize_email(payload.get("email"))
    password = (payload.get("password") or "").strip()
    location = (payload.get("location") or "").strip()
    role = _extract_role(payload.get("role"))

    if not name or not email or not password or not location:
        raise BadRequest("Name, email, password and location are required.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise BadRequest(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
        )
    if not role:
        raise BadRequest("Role must be one of: hostel, volunteer.")

    # Case-insensitive unique check
    existing = User.query.filter(func.lower(User.email) == email).first()
    if existing is not None:
        raise Conflict("A user with that email already exists.")

    user = User(name=name, email=email, role=role, location=location)
    user.set_password(password)

    db.session.add(user)
    db.session.commit()

    return (
        jsonify({"message": "User registered successfully.", "user": user.to_dict()}),
        HTTPStatus.CREATED,
    )


@auth_bp.route("/login", methods=["POST"])
def login() -> tuple:
    """Authenticate a user and return a JWT access token."""
    payload = parse_json_request(request)
    email = _normalize_email(payload.get("email"))
    password = (payload.get("password") or "").strip()

    if not email or not password:
        raise BadRequest("Email and password are required.")

    user = User.query.filter(func.lower(User.email) == email).first()
    if user is None or not user.check_password(password):
        raise Unauthorized("Invalid email or password.")

    token = create_access_token(identity=str(user.id), additional_claims={"role": user.role})
    return (
        jsonify({"access_token": token, "user": user.to_dict()}),
        HTTPStatus.OK,
    )


@auth_bp.route("/user/<int:user_id>", methods=["DELETE"])
@jwt_required()
def delete_account(user_id: int) -> tuple:
    """Delete the caller's own account after confirming the password.

    A hostel's listings are deleted with it; a volunteer's open reservations
    are released back to AVAILABLE.
    """
    if _current_user_id() != user_id:
        raise Forbidden("You can only delete your own account.")

    payload = parse_json_request(request)
    password = payload.get("password")
    if not password:
        raise BadRequest("Password is required to delete account.")

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found.")
    if not user.check_password(password):
        raise Unauthorized("Invalid password.")

    role = user.role
    released = 0
    image_paths = []
    if user.is_volunteer:
        manager = current_app.extensions["listing_lifecycle"]
        released = manager.release_reservations_held_by(user.id)
    else:
        image_paths = [listing.image_path for listing in user.listings if listing.image_path]

    db.session.delete(user)
    db.session.commit()

    storage = LocalStorage(current_app.config.get("UPLOAD_DIR"))
    for path in image_paths:
        storage.delete(path)
    current_app.logger.info("Account %s (%s) deleted", user_id, role)

    return (
        jsonify(
            {
                "message": "Account deleted successfully.",
                "released_reservations": released,
            }
        ),
        HTTPStatus.OK,
    )
