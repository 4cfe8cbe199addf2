"""
Admin Router - scheduled jobs, guarded by a shared cron secret
"""

import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from crud.user import UserRepository
from database import get_db
from dependencies import get_axiestudio_service, get_cleanup_service
from services.axiestudio_service import AxieStudioService
from services.cleanup_service import CleanupService
from utils.responses import success_response, service_response

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


class UserStatusRequest(BaseModel):
    user_id: int


async def require_cron_secret(x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret")) -> None:
    if not settings.cron_secret:
        raise HTTPException(status_code=503, detail="CRON_SECRET is not configured")
    if not x_cron_secret or not hmac.compare_digest(x_cron_secret, settings.cron_secret):
        raise HTTPException(status_code=401, detail="Invalid cron secret")


@admin_router.post("/trial-cleanup", dependencies=[Depends(require_cron_secret)])
async def trial_cleanup(cleanup: CleanupService = Depends(get_cleanup_service)):
    summary = await cleanup.run()
    return success_response(summary, message="Trial cleanup completed")


@admin_router.post("/axiestudio-status", dependencies=[Depends(require_cron_secret)])
async def update_axiestudio_status(
    request: UserStatusRequest,
    db: AsyncSession = Depends(get_db),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    """Re-apply a user's access verdict to their AxieStudio account"""
    user = await UserRepository(db).get_user_by_id(request.user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    result = await axiestudio.sync_account_status(user)
    return service_response(result, message="AxieStudio account status updated successfully")
