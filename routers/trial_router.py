"""
Trial Router - free trial endpoints
"""

from fastapi import APIRouter, Depends

from auth import get_current_user
from database_models import User
from dependencies import get_axiestudio_service, get_trial_service
from services.axiestudio_service import AxieStudioService
from services.trial_service import TrialService
from utils.responses import success_response, service_response

trial_router = APIRouter(prefix="/api/trial", tags=["trial"])


@trial_router.post("/start")
async def start_trial(
    user: User = Depends(get_current_user),
    trial_service: TrialService = Depends(get_trial_service),
):
    """Start the one free trial allowed per email address"""
    result = await trial_service.start_trial(user)
    return service_response(result, message=f"{trial_service.trial_days}-day free trial activated successfully!")


@trial_router.get("/status")
async def trial_status(
    user: User = Depends(get_current_user),
    trial_service: TrialService = Depends(get_trial_service),
):
    return success_response(await trial_service.get_trial_status(user))


@trial_router.post("/switch-to-standard")
async def switch_to_standard(
    user: User = Depends(get_current_user),
    trial_service: TrialService = Depends(get_trial_service),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    """Pause the account and deactivate the AxieStudio account"""
    result = await trial_service.switch_to_standard(user)
    tool_result = await axiestudio.deactivate_account(user)
    data = dict(result["data"], axiestudio_deactivated=not tool_result.get("is_error", False))
    return success_response(data, message="Account switched to standard")
