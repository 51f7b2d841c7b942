import random
import uuid

ORDER_CODE_PREFIX = "BR"


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def gen_order_code(prefix: str = ORDER_CODE_PREFIX) -> str:
    # not meant to be unguessable; uniqueness is enforced by the bookings table
    return f"{prefix}{random.randint(100000, 999999)}"
