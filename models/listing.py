"""Food listing and reservation history models."""

from utils.timeutils import utcnow

from . import db

FOOD_TYPES = ("VEG", "NON_VEG")

STATUS_AVAILABLE = "AVAILABLE"
STATUS_RESERVED = "RESERVED"
STATUS_COLLECTED = "COLLECTED"
LISTING_STATUSES = (STATUS_AVAILABLE, STATUS_RESERVED, STATUS_COLLECTED)


def _isoformat(value):
    return value.isoformat() if value else None


class Listing(db.Model):
    """One unit of surplus food offered by a hostel."""

    __tablename__ = "listings"

    id = db.Column(db.Integer, primary_key=True)
    hostel_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    food_type = db.Column(db.Enum(*FOOD_TYPES, name="food_type_enum"), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(200), nullable=True)
    description = db.Column(db.Text, nullable=True)
    location = db.Column(db.String(255), nullable=False)
    available_until = db.Column(db.DateTime, nullable=False)
    image_path = db.Column(db.String(512), nullable=True)
    status = db.Column(
        db.Enum(*LISTING_STATUSES, name="listing_status_enum"),
        nullable=False,
        default=STATUS_AVAILABLE,
        index=True,
    )
    # Volunteer references carry no foreign key: collected_by outlives the account.
    reserved_by = db.Column(db.Integer, nullable=True, index=True)
    reserved_at = db.Column(db.DateTime, nullable=True)
    collected_by = db.Column(db.Integer, nullable=True)
    collected_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_listings_quantity_positive"),
    )

    hostel = db.relationship("User", back_populates="listings")
    reservation_history = db.relationship(
        "ReservationHistory",
        back_populates="listing",
        cascade="all, delete-orphan",
        order_by="ReservationHistory.id",
    )

    def to_dict(self) -> dict:
        """Serialize the listing to a dictionary."""

        return {
            "id": self.id,
            "hostel_id": self.hostel_id,
            "food_type": self.food_type,
            "quantity": self.quantity,
            "name": self.name,
            "description": self.description,
            "location": self.location,
            "available_until": _isoformat(self.available_until),
            "has_image": bool(self.image_path),
            "status": self.status,
            "reserved_by": self.reserved_by,
            "reserved_at": _isoformat(self.reserved_at),
            "collected_by": self.collected_by,
            "collected_at": _isoformat(self.collected_at),
            "reservation_history": [
                entry.to_dict() for entry in self.reservation_history
            ],
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Listing id={self.id} hostel_id={self.hostel_id} status={self.status}>"


class ReservationHistory(db.Model):
    """A past reservation of a listing. Rows are only ever inserted."""

    __tablename__ = "reservation_history"
    __table_args__ = (
        db.Index(
            "ix_reservation_history_listing_user_expired",
            "listing_id",
            "user_id",
            "expired",
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    listing_id = db.Column(
        db.Integer,
        db.ForeignKey("listings.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = db.Column(db.Integer, nullable=False)
    reserved_at = db.Column(db.DateTime, nullable=False)
    expired = db.Column(db.Boolean, nullable=False, default=False)
    recorded_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    listing = db.relationship("Listing", back_populates="reservation_history")

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "reserved_at": _isoformat(self.reserved_at),
            "expired": self.expired,
        }
