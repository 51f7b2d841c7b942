from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from phone_market.models.base import Base


class CodeCounter(Base):
    """Monotonic counters for public codes; values only ever grow, so deleted codes stay retired."""

    __tablename__ = "code_counters"

    name: Mapped[str] = mapped_column(String(40), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)
