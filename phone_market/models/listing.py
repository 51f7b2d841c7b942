from decimal import Decimal

from sqlalchemy import BigInteger, Boolean, CheckConstraint, Integer, JSON, Numeric, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from phone_market.core.ids import gen_id

from phone_market.models.base import Base, AuditMixin

LISTING_MODES = ("db_channel", "only_channel")


class Listing(AuditMixin, Base):
    __tablename__ = "listings"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_listing_rating_range"),
        CheckConstraint("mode IN ('db_channel', 'only_channel')", name="ck_listing_mode"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True, default=lambda: gen_id("lst"))

    # short public code shown in the channel post ("#12"); not the row id
    code: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    # "db_channel" | "only_channel"
    mode: Mapped[str] = mapped_column(String(20), nullable=False, default="db_channel")

    model: Mapped[str] = mapped_column(String(120), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    condition: Mapped[str] = mapped_column(String(120), nullable=False)
    storage: Mapped[str] = mapped_column(String(60), nullable=False)
    color: Mapped[str] = mapped_column(String(60), nullable=False)
    box: Mapped[str] = mapped_column(String(120), nullable=False)
    battery: Mapped[str] = mapped_column(String(60), nullable=False)
    warranty: Mapped[str] = mapped_column(String(120), nullable=False, default="1 oy")

    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    price_formatted: Mapped[str] = mapped_column(String(60), nullable=False)

    exchange: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)

    # public URLs, in upload order
    images: Mapped[list] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=list)

    telegram_message_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
