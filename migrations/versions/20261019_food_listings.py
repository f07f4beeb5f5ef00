"""create users, food listings and reservation history"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "food_listings_20261019"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLES = ("hostel", "volunteer")
FOOD_TYPES = ("VEG", "NON_VEG")
LISTING_STATUSES = ("AVAILABLE", "RESERVED", "COLLECTED")


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(*USER_ROLES, name="user_role_enum"),
            nullable=False,
            server_default="volunteer",
        ),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "hostel_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("food_type", sa.Enum(*FOOD_TYPES, name="food_type_enum"), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("available_until", sa.DateTime(), nullable=False),
        sa.Column("image_path", sa.String(length=512), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*LISTING_STATUSES, name="listing_status_enum"),
            nullable=False,
            server_default="AVAILABLE",
        ),
        sa.Column("reserved_by", sa.Integer(), nullable=True),
        sa.Column("reserved_at", sa.DateTime(), nullable=True),
        sa.Column("collected_by", sa.Integer(), nullable=True),
        sa.Column("collected_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("quantity > 0", name="ck_listings_quantity_positive"),
    )
    op.create_index("ix_listings_hostel_id", "listings", ["hostel_id"])
    op.create_index("ix_listings_status", "listings", ["status"])
    op.create_index("ix_listings_reserved_by", "listings", ["reserved_by"])

    op.create_table(
        "reservation_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "listing_id",
            sa.Integer(),
            sa.ForeignKey("listings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("reserved_at", sa.DateTime(), nullable=False),
        sa.Column("expired", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recorded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index(
        "ix_reservation_history_listing_user_expired",
        "reservation_history",
        ["listing_id", "user_id", "expired"],
    )


def downgrade():
    op.drop_index(
        "ix_reservation_history_listing_user_expired", table_name="reservation_history"
    )
    op.drop_table("reservation_history")

    op.drop_index("ix_listings_reserved_by", table_name="listings")
    op.drop_index("ix_listings_status", table_name="listings")
    op.drop_index("ix_listings_hostel_id", table_name="listings")
    op.drop_table("listings")
    op.drop_table("users")

    sa.Enum(name="listing_status_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="food_type_enum").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="user_role_enum").drop(op.get_bind(), checkfirst=True)
