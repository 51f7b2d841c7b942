from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from phone_market.core.db import get_db
from phone_market.schemas.common import VerifyOut
from phone_market.services.auth import AdminContext, Credentials, authorize_admin, get_admin_context, get_credentials

router = APIRouter()


@router.post("/auth/verify", response_model=VerifyOut)
async def verify(
    creds: Credentials = Depends(get_credentials),
    ctx: AdminContext = Depends(get_admin_context),
    db: AsyncSession = Depends(get_db),
) -> VerifyOut:
    """Tell the mini app whether to show admin controls. Never fails on bad credentials."""
    result = await authorize_admin(db, ctx, creds)
    if not result.ok:
        return VerifyOut(is_admin=False)
    return VerifyOut(
        is_admin=True,
        user_id=result.principal_id,
        development=result.principal_id is None,
    )
