"""
Repositories for trial records and per-email trial history
"""

import math
from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database_models import UserTrial, TrialHistory


def days_remaining(trial_end_date: Optional[datetime], now: datetime) -> int:
    """Whole days left before trial_end_date, rounded up, never negative"""
    if trial_end_date is None:
        return 0
    seconds = (trial_end_date - now).total_seconds()
    if seconds <= 0:
        return 0
    return math.ceil(seconds / 86400)


class TrialRepository:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, user_id: int) -> Optional[UserTrial]:
        result = await self.db.execute(
            select(UserTrial).where(UserTrial.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def upsert(self, user_id: int, **fields) -> UserTrial:
        trial = await self.get_for_user(user_id)
        if trial is None:
            trial = UserTrial(user_id=user_id)
            self.db.add(trial)
        for key, value in fields.items():
            setattr(trial, key, value)
        trial.updated_at = datetime.utcnow()
        await self.db.flush()
        return trial

    async def update_for_user(self, user_id: int, **fields) -> Optional[UserTrial]:
        """Update an existing trial row; returns None when the user has none"""
        trial = await self.get_for_user(user_id)
        if trial is None:
            return None
        for key, value in fields.items():
            setattr(trial, key, value)
        trial.updated_at = datetime.utcnow()
        await self.db.flush()
        return trial

    async def list_ended_active(self, now: datetime) -> Sequence[UserTrial]:
        result = await self.db.execute(
            select(UserTrial).where(
                UserTrial.trial_status == "active",
                UserTrial.trial_end_date.is_not(None),
                UserTrial.trial_end_date <= now,
            )
        )
        return result.scalars().all()

    async def list_due_for_deletion(self, now: datetime) -> Sequence[UserTrial]:
        result = await self.db.execute(
            select(UserTrial).where(
                UserTrial.trial_status.in_(("scheduled_for_deletion", "canceled")),
                UserTrial.deletion_scheduled_at.is_not(None),
                UserTrial.deletion_scheduled_at <= now,
            )
        )
        return result.scalars().all()


class TrialHistoryRepository:
    """
    Email-level trial history. A row exists once an account that used a
    trial has been deleted; it is what makes a re-registration a returning user.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def has_used_trial(self, email: str) -> bool:
        result = await self.db.execute(
            select(TrialHistory.id).where(
                TrialHistory.email == email.lower(),
                TrialHistory.has_used_trial.is_(True),
            ).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def record(
        self,
        email: str,
        user_id: Optional[int] = None,
        trial: Optional[UserTrial] = None,
    ) -> TrialHistory:
        entry = TrialHistory(
            email=email.lower(),
            user_id=user_id,
            has_used_trial=True,
            trial_start_date=trial.trial_start_date if trial else None,
            trial_end_date=trial.trial_end_date if trial else None,
            account_deleted_at=datetime.utcnow(),
        )
        self.db.add(entry)
        await self.db.flush()
        return entry
