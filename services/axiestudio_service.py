"""
AxieStudio Service - keeps the user's AxieStudio tool account in step with
their access verdict
"""
import logging
from typing import Optional, Dict, Any, List
from urllib.parse import urlencode

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from crud.axiestudio import AxieStudioAccountRepository
from database_models import User
from services.access_service import AccessService

logger = logging.getLogger(__name__)


class AxieStudioError(Exception):
    """Raised when the AxieStudio API answers with an unexpected status"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AxieStudioClient:
    """
    Thin async client for the AxieStudio admin API.

    Admin calls authenticate with an API key: the configured one when set,
    otherwise a fresh key minted after an admin login.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.base_url = (base_url or settings.axiestudio_app_url).rstrip("/")
        self.username = username if username is not None else settings.axiestudio_username
        self.password = password if password is not None else settings.axiestudio_password
        self.api_key = api_key if api_key is not None else settings.axiestudio_api_key
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, transport=self.transport, timeout=self.timeout)

    async def login(self, username: str, password: str) -> Dict[str, Any]:
        """Form-encoded login; returns the token payload (access_token, ...)"""
        async with self._client() as client:
            res = await client.post(
                "/api/v1/login",
                data={"username": username, "password": password},
            )
        if not res.is_success:
            raise AxieStudioError(f"AxieStudio login failed: {res.status_code}", res.status_code)
        payload = res.json()
        if not payload.get("access_token"):
            raise AxieStudioError("No access token received from AxieStudio login")
        return payload

    async def get_api_key(self) -> str:
        if self.api_key:
            return self.api_key

        if not self.username or not self.password:
            raise AxieStudioError("AXIESTUDIO_USERNAME / AXIESTUDIO_PASSWORD are not set")

        tokens = await self.login(self.username, self.password)
        async with self._client() as client:
            res = await client.post(
                "/api/v1/api_key/",
                headers={"Authorization": f"Bearer {tokens['access_token']}"},
                json={"name": "Account Management API Key"},
            )
        if not res.is_success:
            raise AxieStudioError(f"API key creation failed: {res.status_code}", res.status_code)
        api_key = res.json().get("api_key")
        if not api_key:
            raise AxieStudioError("No API key received from AxieStudio")
        return api_key

    async def list_users(self, api_key: str) -> List[Dict[str, Any]]:
        async with self._client() as client:
            res = await client.get("/api/v1/users/", headers={"x-api-key": api_key})
        if not res.is_success:
            raise AxieStudioError(f"Failed to fetch users: {res.status_code}", res.status_code)
        data = res.json()
        # Either {"total_count": n, "users": [...]} or a bare list
        if isinstance(data, dict):
            return data.get("users", [])
        return data

    async def find_user(self, email: str, api_key: Optional[str] = None) -> Optional[Dict[str, Any]]:
        api_key = api_key or await self.get_api_key()
        email = email.lower()
        for remote in await self.list_users(api_key):
            if (remote.get("username") or "").lower() == email or (remote.get("email") or "").lower() == email:
                return remote
        return None

    async def create_user(self, email: str, password: str, is_active: bool, api_key: str) -> Dict[str, Any]:
        """
        Create a verified, non-staff user. Returns {"already_exists": True}
        when AxieStudio reports the username as taken.
        """
        body = {
            "username": email,
            "password": password,
            "email": email,
            "is_active": is_active,
            "is_superuser": False,
            "is_verified": True,
            "is_staff": False,
            "first_name": "",
            "last_name": "",
        }
        async with self._client() as client:
            res = await client.post("/api/v1/users/", headers={"x-api-key": api_key}, json=body)

        if res.status_code == 400 and "username is unavailable" in res.text:
            return {"already_exists": True}
        if not res.is_success:
            raise AxieStudioError(
                f"Failed to create AxieStudio user: {res.status_code} - {res.text}", res.status_code
            )
        return res.json()

    async def set_user_active(self, remote_user_id: str, is_active: bool, api_key: str) -> None:
        async with self._client() as client:
            res = await client.patch(
                f"/api/v1/users/{remote_user_id}",
                headers={"x-api-key": api_key},
                json={"is_active": is_active, "is_verified": True},
            )
        if not res.is_success:
            raise AxieStudioError(
                f"Failed to update AxieStudio user {remote_user_id}: {res.status_code}", res.status_code
            )


def _remote_id(remote: Dict[str, Any]) -> Optional[str]:
    value = remote.get("id") or remote.get("user_id")
    return str(value) if value is not None else None


class AxieStudioService:
    """
    Service class for AxieStudio account lifecycle.
    Returns normalized {"data": ..., "is_error": bool} results like the billing service.
    """

    def __init__(self, db: AsyncSession, client: AxieStudioClient, access: AccessService):
        self.db = db
        self.client = client
        self.access = access
        self.accounts = AxieStudioAccountRepository(db)

    async def create_account(self, user: User, password: str) -> Dict[str, Any]:
        if not password:
            return {"error": "Password is required for account creation", "is_error": True, "status": 400}

        verdict = await self.access.verdict_for(user)
        if not verdict.can_create_tool_account:
            logger.info(f"AxieStudio account creation blocked for user {user.id}: {verdict.access_type}")
            return {
                "error": "ACCESS_REQUIRED",
                "message": "AxieStudio account creation requires an active subscription or trial. Please subscribe to continue.",
                "is_error": True,
                "status": 403,
                "data": {
                    "has_access": False,
                    "trial_status": verdict.trial_status or "unknown",
                    "subscription_status": verdict.subscription_status or "none",
                    "requires_subscription": verdict.requires_subscription,
                },
            }

        try:
            api_key = await self.client.get_api_key()
            existing = await self.client.find_user(user.email, api_key)
            if existing:
                await self.accounts.save(user.id, user.email, _remote_id(existing), bool(existing.get("is_active", True)))
                return {"data": {"already_exists": True, "email": user.email}, "is_error": False}

            created = await self.client.create_user(user.email, password, verdict.has_access, api_key)
            if created.get("already_exists"):
                await self.accounts.save(user.id, user.email, None, verdict.has_access)
                return {"data": {"already_exists": True, "email": user.email}, "is_error": False}

            remote_id = _remote_id(created)
            if remote_id:
                # Creation does not always honour is_active, so set it explicitly
                try:
                    await self.client.set_user_active(remote_id, verdict.has_access, api_key)
                except AxieStudioError as e:
                    logger.warning(f"Could not confirm activation of AxieStudio user {remote_id}: {e}")

            await self.accounts.save(user.id, user.email, remote_id, verdict.has_access)
            logger.info(f"AxieStudio account created for user {user.id} (remote id {remote_id})")
            return {
                "data": {"already_exists": False, "email": user.email, "axiestudio_user_id": remote_id},
                "is_error": False,
            }
        except (AxieStudioError, httpx.HTTPError) as e:
            logger.error(f"AxieStudio account creation failed for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}

    async def _set_active(self, user: User, is_active: bool) -> Dict[str, Any]:
        try:
            api_key = await self.client.get_api_key()
            account = await self.accounts.get_for_user(user.id)
            remote_id = account.axiestudio_user_id if account and account.axiestudio_user_id else None
            if remote_id is None:
                remote = await self.client.find_user(user.email, api_key)
                if remote is None:
                    logger.info(f"No AxieStudio account found for {user.email}; nothing to update")
                    return {"data": {"updated": False, "is_active": None}, "is_error": False}
                remote_id = _remote_id(remote)

            await self.client.set_user_active(remote_id, is_active, api_key)
            await self.accounts.save(user.id, user.email, remote_id, is_active)
            logger.info(f"AxieStudio account {remote_id} for user {user.id} set is_active={is_active}")
            return {"data": {"updated": True, "is_active": is_active}, "is_error": False}
        except (AxieStudioError, httpx.HTTPError) as e:
            logger.error(f"AxieStudio status update failed for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}

    async def deactivate_account(self, user: User) -> Dict[str, Any]:
        """Deactivate rather than delete so the user's flows are preserved"""
        return await self._set_active(user, False)

    async def restore_account(self, user: User) -> Dict[str, Any]:
        """Reactivate without an access check; billing calls this once payment is confirmed"""
        return await self._set_active(user, True)

    async def reactivate_account(self, user: User) -> Dict[str, Any]:
        verdict = await self.access.verdict_for(user)
        if not verdict.has_access:
            logger.info(f"AxieStudio reactivation blocked for user {user.id}: {verdict.access_type}")
            return {
                "error": "ACCESS_REQUIRED",
                "message": "Reactivating AxieStudio requires an active subscription or trial. Please subscribe to continue.",
                "is_error": True,
                "status": 403,
                "data": {"requires_subscription": verdict.requires_subscription},
            }
        return await self._set_active(user, True)

    async def sync_account_status(self, user: User) -> Dict[str, Any]:
        """Make the AxieStudio account's active flag match the user's current access"""
        verdict = await self.access.verdict_for(user)
        return await self._set_active(user, verdict.has_access)

    async def launch(self, user: User, password: str) -> Dict[str, Any]:
        """Log the user into AxieStudio and return an auto-login URL"""
        if not password:
            return {"error": "Password is required", "is_error": True, "status": 400}

        verdict = await self.access.verdict_for(user)
        if not verdict.has_access:
            return {
                "error": "ACCESS_REQUIRED",
                "message": "An active subscription or trial is required to launch AxieStudio.",
                "is_error": True,
                "status": 403,
            }

        try:
            tokens = await self.client.login(user.email, password)
        except (AxieStudioError, httpx.HTTPError) as e:
            logger.warning(f"AxieStudio login failed for user {user.id}: {e}")
            return {
                "error": "AxieStudio login failed",
                "is_error": True,
                "status": 502,
                "data": {"fallback_url": f"{self.client.base_url}/login"},
            }

        access_token = tokens["access_token"]
        auto_login_url = f"{self.client.base_url}/auto-login?{urlencode({'token': access_token})}"
        return {
            "data": {
                "access_token": access_token,
                "auto_login_url": auto_login_url,
                "flows_url": f"{auto_login_url}&{urlencode({'redirect': '/flows'})}",
            },
            "is_error": False,
        }


def get_axiestudio_client() -> AxieStudioClient:
    """FastAPI dependency; tests override it with a client on a mock transport"""
    return AxieStudioClient()
