from phone_market.models.base import Base  # noqa: F401

from phone_market.models.admin import Admin  # noqa: F401
from phone_market.models.listing import Listing  # noqa: F401
from phone_market.models.booking import Booking  # noqa: F401
from phone_market.models.code_counter import CodeCounter  # noqa: F401
