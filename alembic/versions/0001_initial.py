from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "admins",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("telegram_user_id", sa.BigInteger(), nullable=False),
        sa.Column("added_by", sa.BigInteger(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint("telegram_user_id", name="uq_admins_telegram_user_id"),
    )

    op.create_table(
        "listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("code", sa.Integer(), nullable=False),
        sa.Column("mode", sa.String(length=20), nullable=False, server_default="db_channel"),

        sa.Column("model", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("condition", sa.String(length=120), nullable=False),
        sa.Column("storage", sa.String(length=60), nullable=False),
        sa.Column("color", sa.String(length=60), nullable=False),
        sa.Column("box", sa.String(length=120), nullable=False),
        sa.Column("battery", sa.String(length=60), nullable=False),
        sa.Column("warranty", sa.String(length=120), nullable=False, server_default="1 oy"),

        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("price_formatted", sa.String(length=60), nullable=False),
        sa.Column("exchange", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("images", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("telegram_message_id", sa.BigInteger(), nullable=True),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),

        sa.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_listing_rating_range"),
        sa.CheckConstraint("mode IN ('db_channel', 'only_channel')", name="ck_listing_mode"),
    )
    op.create_index("ix_listings_code", "listings", ["code"], unique=True)
    op.create_index("ix_listings_created_at", "listings", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_code", sa.String(length=20), nullable=False),
        sa.Column(
            "listing_code",
            sa.Integer(),
            sa.ForeignKey("listings.code", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("full_name", sa.String(length=200), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=False),

        sa.Column("down_payment", sa.Numeric(12, 2), nullable=False),
        sa.Column("months", sa.Integer(), nullable=False),
        sa.Column("monthly_payment", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_payment", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),

        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),

        sa.CheckConstraint("months >= 2 AND months <= 12", name="ck_booking_months_range"),
        sa.CheckConstraint("status IN ('pending', 'reserved', 'sold', 'canceled')", name="ck_booking_status"),
    )
    op.create_index("ix_bookings_order_code", "bookings", ["order_code"], unique=True)
    # listing status is derived from these two columns on every read
    op.create_index("ix_bookings_listing_code_status", "bookings", ["listing_code", "status"])


def downgrade():
    op.drop_index("ix_bookings_listing_code_status", table_name="bookings")
    op.drop_index("ix_bookings_order_code", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_listings_created_at", table_name="listings")
    op.drop_index("ix_listings_code", table_name="listings")
    op.drop_table("listings")
    op.drop_table("admins")
