"""Listing lifecycle: AVAILABLE -> RESERVED -> COLLECTED, with expiry back to AVAILABLE.

Every state change is issued as a conditional ``UPDATE`` guarded on the
status (and reservation holder) the caller observed. The row count decides
whether the transition happened, so two concurrent transitions on the same
listing cannot both succeed.

Expired reservations are reclaimed in two places: lazily when the hostel
tries to mark the listing collected, and eagerly by the periodic sweep.
Both go through :meth:`ListingLifecycleManager._expire_snapshot`.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.listing import (
    FOOD_TYPES,
    STATUS_AVAILABLE,
    STATUS_COLLECTED,
    STATUS_RESERVED,
    Listing,
    ReservationHistory,
)
from models.user import ROLE_HOSTEL, ROLE_VOLUNTEER
from utils.timeutils import parse_timestamp, utcnow

from .accounts import AccountDirectory
from .errors import ErrorKind, LifecycleError

logger = logging.getLogger(__name__)

RESERVATION_WINDOW = timedelta(hours=2)

LISTING_TEXT_FIELDS = ("name", "description")


def reservation_expired(reserved_at: datetime | None, now: datetime) -> bool:
    """Return True once a reservation has outlived the reservation window."""

    if reserved_at is None:
        return False
    return now - reserved_at > RESERVATION_WINDOW


def validate_listing_attributes(data: dict, now: datetime):
    """Validate listing attributes, returning ``(errors, cleaned)``."""

    errors = []
    cleaned: dict[str, Any] = {}

    food_type = data.get("food_type")
    if not food_type:
        errors.append("food_type is required")
    elif food_type not in FOOD_TYPES:
        errors.append("food_type must be one of VEG, NON_VEG")
    else:
        cleaned["food_type"] = food_type

    quantity = data.get("quantity")
    if quantity in (None, ""):
        errors.append("quantity is required")
    else:
        try:
            if isinstance(quantity, bool):
                raise ValueError(quantity)
            if isinstance(quantity, float) and not quantity.is_integer():
                raise ValueError(quantity)
            quantity_int = int(quantity)
        except (TypeError, ValueError):
            errors.append("quantity must be a whole number")
        else:
            if quantity_int < 1:
                errors.append("quantity must be at least 1")
            else:
                cleaned["quantity"] = quantity_int

    location = data.get("location")
    if not isinstance(location, str) or not location.strip():
        errors.append("location is required")
    else:
        cleaned["location"] = location.strip()

    available_until = data.get("available_until")
    if not available_until:
        errors.append("available_until is required")
    elif not isinstance(available_until, str):
        errors.append("available_until must be ISO 8601 format")
    else:
        try:
            deadline = parse_timestamp(available_until)
        except ValueError:
            errors.append("available_until must be ISO 8601 format")
        else:
            if deadline <= now:
                errors.append("available_until must be in the future")
            else:
                cleaned["available_until"] = deadline

    for field in LISTING_TEXT_FIELDS:
        value = data.get(field)
        if value in (None, ""):
            continue
        if not isinstance(value, str):
            errors.append(f"{field} must be text")
        else:
            cleaned[field] = value.strip()

    image_path = data.get("image_path")
    if image_path:
        cleaned["image_path"] = image_path

    return errors, cleaned


class ListingLifecycleManager:
    """Apply lifecycle transitions to food listings."""

    def __init__(
        self,
        accounts: AccountDirectory,
        clock: Callable[[], datetime] | None = None,
    ):
        self.accounts = accounts
        self.clock = clock or utcnow

    # Queries

    def get_listing(self, listing_id: int) -> Listing:
        listing = db.session.get(Listing, listing_id)
        if listing is None:
            raise LifecycleError(ErrorKind.NOT_FOUND, "Listing not found.")
        return listing

    def list_available(self) -> list[Listing]:
        return (
            Listing.query.filter_by(status=STATUS_AVAILABLE)
            .order_by(Listing.created_at.desc(), Listing.id.desc())
            .all()
        )

    def list_by_hostel(self, hostel_id: int) -> list[Listing]:
        return (
            Listing.query.filter_by(hostel_id=hostel_id)
            .order_by(Listing.created_at.desc(), Listing.id.desc())
            .all()
        )

    def list_reserved_by(self, volunteer_id: int) -> list[Listing]:
        return (
            Listing.query.filter_by(status=STATUS_RESERVED, reserved_by=volunteer_id)
            .order_by(Listing.reserved_at.asc())
            .all()
        )

    def has_expired_reservation(self, listing_id: int, volunteer_id: int) -> bool:
        """Return True if the volunteer once let a reservation on this listing lapse."""

        entry = ReservationHistory.query.filter_by(
            listing_id=listing_id, user_id=volunteer_id, expired=True
        ).first()
        return entry is not None

    # Transitions

    def create_listing(self, hostel_id: int, attributes: dict) -> Listing:
        """Create an AVAILABLE listing owned by ``hostel_id``."""

        self._require_account(hostel_id, ROLE_HOSTEL, "INVALID_HOSTEL")

        now = self.clock()
        errors, cleaned = validate_listing_attributes(attributes, now)
        if errors:
            raise LifecycleError(ErrorKind.VALIDATION, "; ".join(errors))

        listing = Listing(
            hostel_id=hostel_id,
            status=STATUS_AVAILABLE,
            created_at=now,
            updated_at=now,
            **cleaned,
        )
        db.session.add(listing)
        db.session.commit()
        logger.info("Listing %s created by hostel %s", listing.id, hostel_id)
        return listing

    def reserve(self, listing_id: int, volunteer_id: int) -> Listing:
        """Give ``volunteer_id`` an exclusive claim on an AVAILABLE listing."""

        self._require_account(volunteer_id, ROLE_VOLUNTEER, "INVALID_VOLUNTEER")
        listing = self.get_listing(listing_id)

        if listing.status != STATUS_AVAILABLE:
            raise self._not_available()
        if self.has_expired_reservation(listing.id, volunteer_id):
            raise LifecycleError(
                ErrorKind.PREVIOUSLY_EXPIRED,
                "Your earlier reservation of this listing expired; "
                "it cannot be reserved again.",
            )

        now = self.clock()
        changed = self._transition(
            listing_id,
            [Listing.status == STATUS_AVAILABLE],
            status=STATUS_RESERVED,
            reserved_by=volunteer_id,
            reserved_at=now,
            updated_at=now,
        )
        if not changed:
            raise self._not_available()

        db.session.commit()
        logger.info("Listing %s reserved by volunteer %s", listing_id, volunteer_id)
        return self.get_listing(listing_id)

    def cancel(self, listing_id: int, volunteer_id: int) -> Listing:
        """Release the caller's reservation. No history entry is written."""

        self._require_account(volunteer_id, ROLE_VOLUNTEER, "INVALID_VOLUNTEER")
        listing = self.get_listing(listing_id)

        if listing.status != STATUS_RESERVED:
            raise self._not_reserved()
        if listing.reserved_by != volunteer_id:
            raise LifecycleError(
                ErrorKind.NOT_OWNER, "Only the reserving volunteer can cancel."
            )

        now = self.clock()
        changed = self._transition(
            listing_id,
            [
                Listing.status == STATUS_RESERVED,
                Listing.reserved_by == volunteer_id,
            ],
            status=STATUS_AVAILABLE,
            reserved_by=None,
            reserved_at=None,
            updated_at=now,
        )
        if not changed:
            raise self._not_reserved()

        db.session.commit()
        logger.info("Listing %s reservation cancelled by volunteer %s", listing_id, volunteer_id)
        return self.get_listing(listing_id)

    def mark_collected(self, listing_id: int, hostel_id: int) -> Listing:
        """Confirm pickup of a reserved listing by its owning hostel.

        If the reservation window has already lapsed the listing is reclaimed
        instead and ``RESERVATION_EXPIRED`` is raised.
        """

        self._require_account(hostel_id, ROLE_HOSTEL, "INVALID_HOSTEL")
        listing = self.get_listing(listing_id)

        if listing.hostel_id != hostel_id:
            raise LifecycleError(
                ErrorKind.NOT_OWNER, "Only the owning hostel can mark collection."
            )
        if listing.status != STATUS_RESERVED:
            raise self._not_reserved()

        volunteer_id = listing.reserved_by
        reserved_at = listing.reserved_at
        now = self.clock()
        if reservation_expired(reserved_at, now):
            if not self._expire_snapshot(listing_id, volunteer_id, reserved_at, now):
                raise self._not_reserved()
            raise LifecycleError(
                ErrorKind.RESERVATION_EXPIRED,
                "The reservation expired before collection; the listing is available again.",
            )

        changed = self._transition(
            listing_id,
            [
                Listing.status == STATUS_RESERVED,
                Listing.reserved_by == volunteer_id,
                Listing.reserved_at == reserved_at,
            ],
            status=STATUS_COLLECTED,
            collected_by=volunteer_id,
            collected_at=now,
            reserved_by=None,
            reserved_at=None,
            updated_at=now,
        )
        if not changed:
            raise self._not_reserved()

        db.session.commit()
        logger.info("Listing %s collected by volunteer %s", listing_id, volunteer_id)
        return self.get_listing(listing_id)

    def sweep(self) -> int:
        """Reclaim every reservation older than the window; return how many."""

        now = self.clock()
        cutoff = now - RESERVATION_WINDOW
        candidates = (
            Listing.query.filter(
                Listing.status == STATUS_RESERVED,
                Listing.reserved_at < cutoff,
            )
            .order_by(Listing.reserved_at.asc())
            .all()
        )
        # Snapshot before iterating: every commit or rollback expires the objects.
        snapshots = [(item.id, item.reserved_by, item.reserved_at) for item in candidates]

        reclaimed = 0
        for listing_id, reserved_by, reserved_at in snapshots:
            try:
                if self._expire_snapshot(listing_id, reserved_by, reserved_at, now):
                    reclaimed += 1
            except SQLAlchemyError:
                db.session.rollback()
                logger.exception(
                    "Failed to reclaim expired reservation on listing %s", listing_id
                )

        if snapshots:
            logger.info(
                "Sweep reclaimed %s of %s expired reservations", reclaimed, len(snapshots)
            )
        return reclaimed

    def release_reservations_held_by(self, volunteer_id: int) -> int:
        """Return every listing reserved by ``volunteer_id`` to AVAILABLE.

        Used when a volunteer account is deleted. No history is written and
        the caller owns the commit.
        """

        now = self.clock()
        result = db.session.execute(
            update(Listing)
            .where(
                Listing.status == STATUS_RESERVED,
                Listing.reserved_by == volunteer_id,
            )
            .values(
                status=STATUS_AVAILABLE,
                reserved_by=None,
                reserved_at=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        released = result.rowcount or 0
        if released:
            logger.info(
                "Released %s reservation(s) held by volunteer %s", released, volunteer_id
            )
        return released

    # Internals

    def _expire_snapshot(
        self,
        listing_id: int,
        reserved_by: int | None,
        reserved_at: datetime | None,
        now: datetime,
    ) -> bool:
        """Reclaim a lapsed reservation still held as read; shared by collect and sweep."""

        if reserved_by is None or not reservation_expired(reserved_at, now):
            return False

        changed = self._transition(
            listing_id,
            [
                Listing.status == STATUS_RESERVED,
                Listing.reserved_by == reserved_by,
                Listing.reserved_at == reserved_at,
            ],
            status=STATUS_AVAILABLE,
            reserved_by=None,
            reserved_at=None,
            updated_at=now,
        )
        if not changed:
            return False

        db.session.add(
            ReservationHistory(
                listing_id=listing_id,
                user_id=reserved_by,
                reserved_at=reserved_at,
                expired=True,
                recorded_at=now,
            )
        )
        db.session.commit()
        logger.info(
            "Reservation on listing %s by volunteer %s expired", listing_id, reserved_by
        )
        return True

    def _transition(self, listing_id: int, conditions: list, **values) -> bool:
        """Apply ``values`` only if the listing still matches ``conditions``.

        Rolls back and returns False when another writer got there first.
        """

        result = db.session.execute(
            update(Listing)
            .where(Listing.id == listing_id, *conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.session.rollback()
            return False
        return True

    def _require_account(self, account_id: int, role: str, code: str) -> None:
        account = self.accounts.find_account(account_id)
        if not account.exists:
            raise LifecycleError(ErrorKind.NOT_FOUND, f"Unknown {role} account.", code)
        if account.role != role:
            raise LifecycleError(
                ErrorKind.INVALID_ROLE, f"Account is not a {role} account.", code
            )

    @staticmethod
    def _not_available() -> LifecycleError:
        return LifecycleError(
            ErrorKind.STATE_CONFLICT, "Listing is not available.", "NOT_AVAILABLE"
        )

    @staticmethod
    def _not_reserved() -> LifecycleError:
        return LifecycleError(
            ErrorKind.STATE_CONFLICT, "Listing is not reserved.", "NOT_RESERVED"
        )
