from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Header, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.config import settings
from phone_market.core.db import get_db
from phone_market.core.errors import Forbidden, Unauthorized
from phone_market.core.security import parse_init_data
from phone_market.models.admin import Admin


@dataclass(frozen=True)
class AdminContext:
    """Read-only admin configuration, built once per process."""
    bot_token: str
    bootstrap_admin_ids: frozenset[int]
    dev_bypass: bool


@dataclass(frozen=True)
class AuthResult:
    ok: bool
    principal_id: int | None = None
    status_code: int | None = None
    message: str | None = None


@dataclass(frozen=True)
class AdminPrincipal:
    user_id: int | None  # None only under dev bypass

    @property
    def audit_id(self) -> str:
        return str(self.user_id) if self.user_id is not None else "dev"


@dataclass(frozen=True)
class Credentials:
    init_data: str | None
    user_id: int | None

    @property
    def empty(self) -> bool:
        return not self.init_data and self.user_id is None


@lru_cache
def get_admin_context() -> AdminContext:
    return AdminContext(
        bot_token=settings.telegram_bot_token.get_secret_value(),
        bootstrap_admin_ids=settings.bootstrap_admin_ids,
        dev_bypass=settings.dev_bypass,
    )


def get_credentials(
    x_telegram_init_data: str | None = Header(default=None),
    x_telegram_user_id: str | None = Header(default=None),
    init_data: str | None = Query(default=None),
) -> Credentials:
    user_id = None
    raw_id = (x_telegram_user_id or "").strip()
    if raw_id.isdigit() and int(raw_id) > 0:
        user_id = int(raw_id)
    return Credentials(init_data=x_telegram_init_data or init_data or None, user_id=user_id)


async def is_admin(db: AsyncSession, ctx: AdminContext, user_id: int | None) -> bool:
    if not user_id:
        return False
    if user_id in ctx.bootstrap_admin_ids:
        return True
    stmt = select(Admin.id).where(Admin.telegram_user_id == user_id).limit(1)
    return (await db.execute(stmt)).scalar_one_or_none() is not None


async def authorize_admin(db: AsyncSession, ctx: AdminContext, creds: Credentials) -> AuthResult:
    """
    Resolve the acting principal and check admin membership.

    Signed init data wins; the raw user id header is only consulted when
    there is no init data or it failed verification.
    """
    if creds.empty:
        if ctx.dev_bypass:
            return AuthResult(ok=True, principal_id=None)
        return AuthResult(ok=False, status_code=401, message="Authentication required")

    principal_id = None
    if creds.init_data:
        identity = parse_init_data(creds.init_data, ctx.bot_token)
        if identity is not None:
            principal_id = identity.user_id

    if principal_id is None:
        principal_id = creds.user_id

    if principal_id is None:
        return AuthResult(ok=False, status_code=401, message="Invalid authentication data")

    if not await is_admin(db, ctx, principal_id):
        return AuthResult(ok=False, status_code=403, message="Admin access required")

    return AuthResult(ok=True, principal_id=principal_id)


async def require_admin(
    creds: Credentials = Depends(get_credentials),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
) -> AdminPrincipal:
    result = await authorize_admin(db, ctx, creds)
    if not result.ok:
        if result.status_code == 403:
            raise Forbidden(result.message or "Forbidden")
        raise Unauthorized(result.message or "Unauthorized")
    return AdminPrincipal(user_id=result.principal_id)


def get_requester_id(
    creds: Credentials = Depends(get_credentials),
    ctx: AdminContext = Depends(get_admin_context),
) -> int | None:
    """
    Optional customer identity for bookings.
    Absent init data is fine; init data that fails verification is rejected.
    """
    if not creds.init_data:
        return None
    identity = parse_init_data(creds.init_data, ctx.bot_token)
    if identity is None:
        raise Unauthorized("Invalid authentication data")
    return identity.user_id
