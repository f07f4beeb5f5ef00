"""HTTP tests for the listings blueprint."""

from __future__ import annotations

from datetime import timedelta
from io import BytesIO

from models import db
from models.listing import Listing, ReservationHistory
from utils.timeutils import utcnow


def _create_listing(client, auth_header, hostel_id, payload) -> int:
    response = client.post("/listings", json=payload, headers=auth_header(hostel_id))
    assert response.status_code == 201
    return response.get_json()["id"]


def _backdate_reservation(app, listing_id: int, **delta) -> None:
    with app.app_context():
        listing = db.session.get(Listing, listing_id)
        listing.reserved_at = utcnow() - timedelta(**delta)
        db.session.commit()


def test_hostel_creates_listing(client, accounts, auth_header, listing_payload):
    response = client.post(
        "/listings",
        json=listing_payload(),
        headers=auth_header(accounts["hostel"]),
    )

    assert response.status_code == 201
    payload = response.get_json()
    assert payload["status"] == "AVAILABLE"
    assert payload["hostel_id"] == accounts["hostel"]
    assert payload["reserved_by"] is None
    assert payload["reservation_history"] == []
    assert payload["has_image"] is False


def test_create_listing_requires_jwt(client, listing_payload):
    response = client.post("/listings", json=listing_payload())

    assert response.status_code == 401


def test_volunteer_cannot_create_listing(client, accounts, auth_header, listing_payload):
    response = client.post(
        "/listings",
        json=listing_payload(),
        headers=auth_header(accounts["v1"]),
    )

    assert response.status_code == 403
    payload = response.get_json()
    assert payload["kind"] == "INVALID_ROLE"
    assert payload["code"] == "INVALID_HOSTEL"
    assert payload["request_id"]


def test_create_listing_validation_error_shape(client, accounts, auth_header, listing_payload):
    response = client.post(
        "/listings",
        json=listing_payload(quantity=-3, food_type="FISH"),
        headers=auth_header(accounts["hostel"]),
    )

    assert response.status_code == 400
    payload = response.get_json()
    assert payload["error"] == "Bad Request"
    assert payload["kind"] == "VALIDATION"
    assert "quantity must be at least 1" in payload["detail"]
    assert "food_type must be one of VEG, NON_VEG" in payload["detail"]


def test_create_listing_with_image(app, client, accounts, auth_header, listing_payload, tmp_path):
    form = listing_payload(quantity="4")
    form["image"] = (BytesIO(b"\x89PNG fake image"), "biryani.png")

    response = client.post(
        "/listings",
        data=form,
        headers=auth_header(accounts["hostel"]),
        content_type="multipart/form-data",
    )

    assert response.status_code == 201
    payload = response.get_json()
    assert payload["has_image"] is True
    assert payload["quantity"] == 4

    image_response = client.get(f"/listings/{payload['id']}/image")
    assert image_response.status_code == 200
    assert image_response.mimetype == "image/png"
    assert image_response.data == b"\x89PNG fake image"

    stored = list((tmp_path / "uploads").iterdir())
    assert len(stored) == 1


def test_rejected_listing_discards_uploaded_image(
    client, accounts, auth_header, listing_payload, tmp_path
):
    form = listing_payload(food_type="UNKNOWN", quantity="2")
    form["image"] = (BytesIO(b"jpeg bytes"), "meal.jpg")

    response = client.post(
        "/listings",
        data=form,
        headers=auth_header(accounts["hostel"]),
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert list((tmp_path / "uploads").iterdir()) == []


def test_image_type_is_checked(client, accounts, auth_header, listing_payload):
    form = listing_payload(quantity="2")
    form["image"] = (BytesIO(b"MZ"), "menu.exe")

    response = client.post(
        "/listings",
        data=form,
        headers=auth_header(accounts["hostel"]),
        content_type="multipart/form-data",
    )

    assert response.status_code == 400
    assert "Image type not allowed" in response.get_json()["detail"]


def test_listing_without_image_returns_404(client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())

    response = client.get(f"/listings/{listing_id}/image")

    assert response.status_code == 404


def test_browse_only_available(client, accounts, auth_header, listing_payload):
    first = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    second = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    client.post(f"/listings/{first}/reserve", headers=auth_header(accounts["v1"]))

    response = client.get("/listings")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["count"] == 1
    assert [item["id"] for item in payload["results"]] == [second]


def test_list_by_hostel_includes_every_status(client, accounts, auth_header, listing_payload):
    first = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    second = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    _create_listing(client, auth_header, accounts["other_hostel"], listing_payload())
    client.post(f"/listings/{first}/reserve", headers=auth_header(accounts["v1"]))

    response = client.get(f"/listings/hostel/{accounts['hostel']}")

    assert response.status_code == 200
    payload = response.get_json()
    assert payload["count"] == 2
    assert {item["id"] for item in payload["results"]} == {first, second}


def test_get_unknown_listing(client):
    response = client.get("/listings/999")

    assert response.status_code == 404
    assert response.get_json()["kind"] == "NOT_FOUND"


def test_reserve_and_collect_flow(client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())

    reserve = client.post(
        f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"])
    )
    assert reserve.status_code == 200
    assert reserve.get_json()["status"] == "RESERVED"
    assert reserve.get_json()["reserved_by"] == accounts["v1"]

    mine = client.get("/listings/reservations", headers=auth_header(accounts["v1"]))
    assert [item["id"] for item in mine.get_json()["results"]] == [listing_id]

    collect = client.post(
        f"/listings/{listing_id}/collect", headers=auth_header(accounts["hostel"])
    )
    assert collect.status_code == 200
    payload = collect.get_json()
    assert payload["status"] == "COLLECTED"
    assert payload["collected_by"] == accounts["v1"]
    assert payload["reserved_by"] is None


def test_second_reservation_conflicts(client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    client.post(f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"]))

    response = client.post(
        f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v2"])
    )

    assert response.status_code == 409
    payload = response.get_json()
    assert payload["kind"] == "STATE_CONFLICT"
    assert payload["code"] == "NOT_AVAILABLE"


def test_cancel_by_owner_and_non_owner(client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    client.post(f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"]))

    denied = client.post(
        f"/listings/{listing_id}/cancel", headers=auth_header(accounts["v2"])
    )
    assert denied.status_code == 403
    assert denied.get_json()["kind"] == "NOT_OWNER"

    cancelled = client.post(
        f"/listings/{listing_id}/cancel", headers=auth_header(accounts["v1"])
    )
    assert cancelled.status_code == 200
    assert cancelled.get_json()["status"] == "AVAILABLE"
    assert cancelled.get_json()["reservation_history"] == []


def test_collect_after_window_reports_expiry(app, client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    client.post(f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"]))
    _backdate_reservation(app, listing_id, hours=3)

    response = client.post(
        f"/listings/{listing_id}/collect", headers=auth_header(accounts["hostel"])
    )

    assert response.status_code == 409
    assert response.get_json()["kind"] == "RESERVATION_EXPIRED"

    listing = client.get(f"/listings/{listing_id}").get_json()
    assert listing["status"] == "AVAILABLE"
    assert len(listing["reservation_history"]) == 1
    assert listing["reservation_history"][0]["user_id"] == accounts["v1"]
    assert listing["reservation_history"][0]["expired"] is True

    banned = client.post(
        f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"])
    )
    assert banned.status_code == 403
    assert banned.get_json()["kind"] == "PREVIOUSLY_EXPIRED"

    other = client.post(
        f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v2"])
    )
    assert other.status_code == 200

    with app.app_context():
        assert ReservationHistory.query.count() == 1


def test_collect_by_other_hostel(client, accounts, auth_header, listing_payload):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    client.post(f"/listings/{listing_id}/reserve", headers=auth_header(accounts["v1"]))

    response = client.post(
        f"/listings/{listing_id}/collect", headers=auth_header(accounts["other_hostel"])
    )

    assert response.status_code == 403
    assert response.get_json()["kind"] == "NOT_OWNER"


def test_image_path_outside_upload_dir_is_not_served(
    app, client, accounts, auth_header, listing_payload, tmp_path
):
    listing_id = _create_listing(client, auth_header, accounts["hostel"], listing_payload())
    (tmp_path / "secret.png").write_bytes(b"not for download")
    with app.app_context():
        db.session.get(Listing, listing_id).image_path = "../secret.png"
        db.session.commit()

    response = client.get(f"/listings/{listing_id}/image")

    assert response.status_code == 404
