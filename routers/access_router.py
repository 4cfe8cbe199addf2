"""
Access Router - access verdict for the current user
"""

from datetime import datetime
from fastapi import APIRouter, Depends

from auth import get_current_user
from database_models import User
from dependencies import get_access_service
from services.access_service import AccessService
from utils.responses import success_response

access_router = APIRouter(prefix="/api/access", tags=["access"])


async def _verdict_response(user: User, access: AccessService):
    verdict = await access.verdict_for(user)
    return success_response(
        {
            "access_control": verdict.model_dump(),
            "user_id": str(user.id),
            "email": user.email,
            "verification_timestamp": datetime.utcnow().isoformat(),
        }
    )


@access_router.get("")
async def get_access(
    user: User = Depends(get_current_user),
    access: AccessService = Depends(get_access_service),
):
    return await _verdict_response(user, access)


@access_router.post("/verify")
async def verify_access(
    user: User = Depends(get_current_user),
    access: AccessService = Depends(get_access_service),
):
    """
    Enhanced access check used before provisioning the tool account.
    Same verdict as GET /api/access; kept as POST for existing clients.
    """
    return await _verdict_response(user, access)
