"""Listings blueprint: browsing, creation and the reservation lifecycle."""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Iterable

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_jwt_extended import get_jwt_identity, jwt_required
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest, NotFound, Unauthorized

from services.errors import LifecycleError
from services.lifecycle import ListingLifecycleManager
from storage.local_storage import LocalStorage
from utils.request_validation import parse_form_or_json_request

listings_bp = Blueprint("listings", __name__)

MAX_UPLOAD_SIZE_DEFAULT = 5 * 1024 * 1024  # 5 MB
ALLOWED_IMAGE_TYPES_DEFAULT = {"jpg", "jpeg", "png", "webp"}
IMAGE_MIMETYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
}


def _manager() -> ListingLifecycleManager:
    return current_app.extensions["listing_lifecycle"]


def _current_user_id() -> int:
    identity = get_jwt_identity()
    try:
        return int(identity)
    except (TypeError, ValueError):
        raise Unauthorized("Invalid token identity.")


def _storage() -> LocalStorage:
    return LocalStorage(current_app.config.get("UPLOAD_DIR"))


def _allowed_image_types() -> set[str]:
    configured = current_app.config.get("ALLOWED_IMAGE_TYPES")
    if not configured:
        return set(ALLOWED_IMAGE_TYPES_DEFAULT)
    if isinstance(configured, str):
        values: Iterable[str] = configured.split(",")
    else:
        values = configured

    normalized = {
        raw.strip().lower().lstrip(".") for raw in values if isinstance(raw, str)
    }
    normalized.discard("")
    return normalized or set(ALLOWED_IMAGE_TYPES_DEFAULT)


def _validate_image(file: FileStorage) -> str:
    if file.filename is None or file.filename.strip() == "":
        raise BadRequest("An image file is required.")

    extension = file.filename.rsplit(".", 1)[-1].lower() if "." in file.filename else ""
    if extension not in _allowed_image_types():
        allowed = ", ".join(sorted(_allowed_image_types()))
        raise BadRequest(f"Image type not allowed. Allowed types: {allowed}.")

    max_size = int(current_app.config.get("MAX_UPLOAD_SIZE", MAX_UPLOAD_SIZE_DEFAULT))
    file.stream.seek(0, os.SEEK_END)
    size = file.stream.tell()
    file.stream.seek(0)
    if size > max_size:
        raise BadRequest("Image exceeds the maximum upload size.")
    return extension


@listings_bp.route("", methods=["GET"])
def list_available():
    """Return listings currently open for reservation."""

    listings = _manager().list_available()
    payload = [listing.to_dict() for listing in listings]
    return jsonify({"results": payload, "count": len(payload)})


@listings_bp.route("", methods=["POST"])
@jwt_required()
def create_listing():
    """Create a listing for the calling hostel, optionally with an image."""

    hostel_id = _current_user_id()
    data, image = parse_form_or_json_request(request, file_field="image")
    data.pop("image_path", None)

    storage = None
    stored_path = None
    if image is not None:
        extension = _validate_image(image)
        storage = _storage()
        stored_path = storage.save(image, f"{uuid.uuid4().hex}.{extension}")
        data["image_path"] = stored_path

    try:
        listing = _manager().create_listing(hostel_id, data)
    except LifecycleError:
        if storage is not None and stored_path:
            storage.delete(stored_path)
        raise

    return jsonify(listing.to_dict()), 201


@listings_bp.route("/<int:listing_id>", methods=["GET"])
def get_listing(listing_id: int):
    listing = _manager().get_listing(listing_id)
    return jsonify(listing.to_dict())


@listings_bp.route("/<int:listing_id>/image", methods=["GET"])
def get_listing_image(listing_id: int):
    """Stream the stored image of a listing."""

    listing = _manager().get_listing(listing_id)
    if not listing.image_path:
        raise NotFound("Listing has no image.")

    storage = _storage()
    try:
        if not storage.exists(listing.image_path):
            raise NotFound("Stored image could not be found.")
        image = storage.open(listing.image_path)
    except ValueError:
        raise NotFound("Stored image could not be found.")

    extension = Path(listing.image_path).suffix.lstrip(".").lower()
    return send_file(
        image,
        mimetype=IMAGE_MIMETYPES.get(extension, "application/octet-stream"),
        download_name=Path(listing.image_path).name,
    )


@listings_bp.route("/hostel/<int:hostel_id>", methods=["GET"])
def list_by_hostel(hostel_id: int):
    """Return every listing of a hostel, whatever its status."""

    listings = _manager().list_by_hostel(hostel_id)
    payload = [listing.to_dict() for listing in listings]
    return jsonify({"results": payload, "count": len(payload)})


@listings_bp.route("/reservations", methods=["GET"])
@jwt_required()
def list_my_reservations():
    """Return the listings the calling volunteer currently holds."""

    listings = _manager().list_reserved_by(_current_user_id())
    payload = [listing.to_dict() for listing in listings]
    return jsonify({"results": payload, "count": len(payload)})


@listings_bp.route("/<int:listing_id>/reserve", methods=["POST"])
@jwt_required()
def reserve_listing(listing_id: int):
    listing = _manager().reserve(listing_id, _current_user_id())
    return jsonify(listing.to_dict())


@listings_bp.route("/<int:listing_id>/cancel", methods=["POST"])
@jwt_required()
def cancel_reservation(listing_id: int):
    listing = _manager().cancel(listing_id, _current_user_id())
    return jsonify(listing.to_dict())


@listings_bp.route("/<int:listing_id>/collect", methods=["POST"])
@jwt_required()
def mark_collected(listing_id: int):
    """Hostel confirms the reserving volunteer picked the food up."""

    listing = _manager().mark_collected(listing_id, _current_user_id())
    return jsonify(listing.to_dict())
