from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.models.admin import Admin

log = logging.getLogger(__name__)


async def list_admins(db: AsyncSession) -> list[Admin]:
    return list((await db.execute(select(Admin).order_by(Admin.created_at.asc()))).scalars().all())


async def add_admins(db: AsyncSession, user_ids: Iterable[int], *, added_by: int | None = None) -> list[int]:
    """Insert missing admins; returns the ids that were actually added."""
    wanted = {uid for uid in user_ids if uid > 0}
    if not wanted:
        return []

    existing = set(
        (await db.execute(select(Admin.telegram_user_id).where(Admin.telegram_user_id.in_(wanted)))).scalars().all()
    )
    added = sorted(wanted - existing)
    for uid in added:
        db.add(Admin(telegram_user_id=uid, added_by=added_by))
    await db.commit()
    return added


async def remove_admin(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(delete(Admin).where(Admin.telegram_user_id == user_id))
    await db.commit()
    return bool(result.rowcount)


async def seed_bootstrap_admins(db: AsyncSession, user_ids: Iterable[int]) -> None:
    added = await add_admins(db, user_ids)
    if added:
        log.info("seeded %d bootstrap admin(s)", len(added))
