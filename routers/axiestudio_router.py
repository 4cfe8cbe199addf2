"""
AxieStudio Router - tool account provisioning and launch
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from auth import get_current_user
from database_models import User
from dependencies import get_axiestudio_service
from services.axiestudio_service import AxieStudioService
from utils.responses import service_response

axiestudio_router = APIRouter(prefix="/api/axiestudio", tags=["axiestudio"])


class PasswordRequest(BaseModel):
    password: str = ""


@axiestudio_router.post("/account")
async def create_account(
    request: PasswordRequest,
    user: User = Depends(get_current_user),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    """Create the AxieStudio account; requires a trial or subscription"""
    result = await axiestudio.create_account(user, request.password)
    return service_response(result, message="AxieStudio account created successfully")


@axiestudio_router.delete("/account")
async def deactivate_account(
    user: User = Depends(get_current_user),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    result = await axiestudio.deactivate_account(user)
    return service_response(result, message="AxieStudio account deactivated (data preserved)")


@axiestudio_router.post("/account/reactivate")
async def reactivate_account(
    user: User = Depends(get_current_user),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    result = await axiestudio.reactivate_account(user)
    return service_response(result, message="AxieStudio account reactivated successfully")


@axiestudio_router.post("/login")
async def launch(
    request: PasswordRequest,
    user: User = Depends(get_current_user),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
):
    result = await axiestudio.launch(user, request.password)
    return service_response(result, message="Auto-login URL generated successfully")
