from decimal import Decimal

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from phone_market.core.ids import gen_id
from phone_market.models.base import Base, AuditMixin

BOOKING_STATUSES = ("pending", "reserved", "sold", "canceled")


class Booking(AuditMixin, Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint("months >= 2 AND months <= 12", name="ck_booking_months_range"),
        CheckConstraint(
            "status IN ('pending', 'reserved', 'sold', 'canceled')",
            name="ck_booking_status",
        ),
        # listing status is derived from these two columns on every read
        Index("ix_bookings_listing_code_status", "listing_code", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("bkg"))

    # BR + 6 digits, shared with the customer
    order_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)

    listing_code: Mapped[int] = mapped_column(
        Integer, ForeignKey("listings.code", ondelete="CASCADE"), nullable=False
    )

    # telegram user id, only when the request carried verified init data
    user_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)

    down_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    months: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_payment: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # "pending" | "reserved" | "sold" | "canceled"
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
