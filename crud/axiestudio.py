from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database_models import AxieStudioAccount


class AxieStudioAccountRepository:
    """Local record of the AxieStudio account provisioned for a user"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, user_id: int) -> Optional[AxieStudioAccount]:
        result = await self.db.execute(
            select(AxieStudioAccount).where(AxieStudioAccount.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def save(
        self,
        user_id: int,
        email: str,
        axiestudio_user_id: Optional[str],
        is_active: bool,
    ) -> AxieStudioAccount:
        account = await self.get_for_user(user_id)
        if account is None:
            account = AxieStudioAccount(user_id=user_id, email=email.lower())
            self.db.add(account)
        if axiestudio_user_id:
            account.axiestudio_user_id = axiestudio_user_id
        account.is_active = is_active
        account.updated_at = datetime.utcnow()
        await self.db.flush()
        return account

    async def set_active(self, user_id: int, is_active: bool) -> Optional[AxieStudioAccount]:
        account = await self.get_for_user(user_id)
        if account is None:
            return None
        account.is_active = is_active
        account.updated_at = datetime.utcnow()
        await self.db.flush()
        return account
