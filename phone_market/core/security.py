import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Mapping
from urllib.parse import parse_qsl

SIGNATURE_FIELD = "hash"
SECRET_LABEL = b"WebAppData"


@dataclass(frozen=True)
class VerifiedIdentity:
    user_id: int | None
    fields: dict[str, str]


def derive_secret(bot_token: str) -> bytes:
    # Telegram WebApp: secret = HMAC_SHA256(key="WebAppData", msg=bot_token)
    return hmac.new(SECRET_LABEL, bot_token.encode("utf-8"), hashlib.sha256).digest()


def data_check_string(fields: Mapping[str, str]) -> str:
    return "\n".join(f"{k}={fields[k]}" for k in sorted(fields) if k != SIGNATURE_FIELD)


def compute_signature(fields: Mapping[str, str], secret: bytes) -> str:
    return hmac.new(secret, data_check_string(fields).encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(fields: Mapping[str, str], signature: str | None, secret: bytes) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(compute_signature(fields, secret), signature)


def parse_init_data(init_data: str, bot_token: str) -> VerifiedIdentity | None:
    """
    Verify a WebApp ``initData`` query string.
    Returns None when the signature is missing or wrong.
    """
    if not init_data or not bot_token:
        return None

    fields = dict(parse_qsl(init_data, keep_blank_values=True))
    signature = fields.pop(SIGNATURE_FIELD, None)
    if not verify_signature(fields, signature, derive_secret(bot_token)):
        return None

    user_id = None
    raw_user = fields.get("user")
    if raw_user:
        try:
            user = json.loads(raw_user)
        except ValueError:
            return None
        if isinstance(user, dict) and isinstance(user.get("id"), int):
            user_id = user["id"]

    return VerifiedIdentity(user_id=user_id, fields=fields)
