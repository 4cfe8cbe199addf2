"""
Authentication routes and dependencies
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Header, Depends, Cookie
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from config.settings import settings
from database import get_db
from database_models import User
from crud.user import UserRepository
from auth_utils import hash_password, verify_password, create_jwt, decode_jwt
from dependencies import get_access_service, get_billing_service, get_cleanup_service, get_trial_service
from services.access_service import AccessService
from services.billing_service import BillingService
from services.cleanup_service import CleanupService
from services.trial_service import TrialService
from utils.security_utils import validate_email, validate_password_strength

logger = logging.getLogger(__name__)

# Create auth router
auth_router = APIRouter(prefix="/api/auth", tags=["auth"])


# Request models
class SignupRequest(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


def _token_response(user: User, token: str) -> JSONResponse:
    response = JSONResponse(
        content={
            "ok": True,
            "user_id": str(user.id),
            "access_token": token,
            "token_type": "bearer",
        }
    )
    response.set_cookie(
        key="auth_token",
        value=token,
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=settings.jwt_expire_seconds,
    )
    return response


# Dependency for protected routes
async def get_current_user(
    auth_token: Optional[str] = Cookie(None),
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    Dependency function to get current authenticated user.

    Authentication priority:
    1. Authorization header (Bearer token) for API consumers
    2. auth_token cookie (httpOnly cookie set by login/signup)
    3. Raise 401 if neither is found
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[len("Bearer "):].strip()
    elif auth_token:
        token = auth_token

    if not token:
        raise HTTPException(status_code=401, detail="Authorization required")

    try:
        payload = decode_jwt(token)
    except ValueError as e:
        logger.error(f"Token validation unavailable: {e}")
        raise HTTPException(status_code=503, detail="Authentication is not configured")
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    user_id_str = payload.get("sub")
    if not user_id_str:
        raise HTTPException(status_code=401, detail="Invalid token payload")

    # Convert user_id to integer (JWT stores it as string)
    try:
        user_id = int(user_id_str)
    except (ValueError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid user ID in token")

    user = await UserRepository(db).get_user_by_id(user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid authentication")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User account is inactive")

    return user


@auth_router.post("/signup")
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
    trial_service: TrialService = Depends(get_trial_service),
):
    """Create a new user account and provision its trial"""
    if not validate_email(request.email):
        raise HTTPException(status_code=400, detail="Invalid email format")

    try:
        validate_password_strength(request.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user_repo = UserRepository(db)
    if await user_repo.get_user_by_email(request.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    user = await user_repo.create_user({
        "email": request.email,
        "hashed_password": hash_password(request.password),
        "is_active": True,
    })
    await trial_service.provision_signup_trial(user)

    try:
        token = create_jwt(str(user.id))
    except ValueError as e:
        logger.error(f"Cannot issue token: {e}")
        raise HTTPException(status_code=503, detail="Authentication is not configured")

    logger.info(f"New account {user.id} registered for {user.email}")
    return _token_response(user, token)


@auth_router.post("/login")
async def login(request: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Login and get JWT token"""
    user = await UserRepository(db).get_user_by_email(request.email)
    if not user or not verify_password(request.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="User account is inactive")

    try:
        token = create_jwt(str(user.id))
    except ValueError as e:
        logger.error(f"Cannot issue token: {e}")
        raise HTTPException(status_code=503, detail="Authentication is not configured")

    return _token_response(user, token)


@auth_router.get("/me")
async def get_current_user_info(
    user: User = Depends(get_current_user),
    access: AccessService = Depends(get_access_service),
):
    """Current user with their access verdict"""
    verdict = await access.verdict_for(user)
    return {
        "ok": True,
        "user_id": str(user.id),
        "email": user.email,
        "is_active": user.is_active,
        "access_control": verdict.model_dump(),
    }


@auth_router.post("/logout")
async def logout():
    """Logout and clear auth token cookie"""
    response = JSONResponse(
        content={
            "ok": True,
            "message": "Logged out successfully"
        }
    )
    response.set_cookie(
        key="auth_token",
        value="",
        httponly=True,
        secure=True,
        samesite="Lax",
        max_age=0
    )
    return response


@auth_router.delete("/account")
async def delete_account(
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
    cleanup: CleanupService = Depends(get_cleanup_service),
):
    """
    Delete the caller's account.

    Paying subscriptions are cancelled immediately, the AxieStudio account is
    deactivated, and the email is remembered as having used its trial.
    """
    result = await billing.cancel_subscription_immediately(user)
    if result.get("is_error") and result.get("status") != 503:
        raise HTTPException(status_code=502, detail=f"Could not cancel subscription: {result.get('error')}")

    await cleanup.delete_account(user)
    response = JSONResponse(content={"ok": True, "message": "Account deleted"})
    response.set_cookie(key="auth_token", value="", httponly=True, secure=True, samesite="Lax", max_age=0)
    return response
