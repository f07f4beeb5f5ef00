"""User model definition."""

from werkzeug.security import check_password_hash, generate_password_hash

from utils.timeutils import utcnow

from . import db


ROLE_HOSTEL = "hostel"
ROLE_VOLUNTEER = "volunteer"
USER_ROLES = (ROLE_HOSTEL, ROLE_VOLUNTEER)


class User(db.Model):
    """Represents a hostel or volunteer account."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(
        db.Enum(*USER_ROLES, name="user_role_enum"),
        nullable=False,
        default=ROLE_VOLUNTEER,
    )
    location = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    listings = db.relationship(
        "Listing",
        back_populates="hostel",
        cascade="all, delete-orphan",
    )

    def set_password(self, password: str) -> None:
        """Hash and store the password."""

        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify a password against the stored hash."""

        return check_password_hash(self.password_hash, password)

    @property
    def is_hostel(self) -> bool:
        return self.role == ROLE_HOSTEL

    @property
    def is_volunteer(self) -> bool:
        return self.role == ROLE_VOLUNTEER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "location": self.location,
        }

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.email}>"
