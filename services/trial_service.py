"""
Trial Service for managing the one-per-email free trial
"""
import logging
from datetime import datetime, timedelta
from typing import Optional, Dict, Any, List

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from crud.trial import TrialRepository, TrialHistoryRepository, days_remaining
from database_models import User, UserTrial

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class TrialService:
    """
    Service for managing user trial periods.
    Handles trial start, expiry and the paused "standard" state.
    """

    def __init__(
        self,
        db: AsyncSession,
        trial_days: Optional[int] = None,
        deletion_grace_hours: Optional[int] = None,
    ):
        """
        Args:
            db: AsyncSession instance for database operations
            trial_days: Trial length, defaults to TRIAL_DAYS
            deletion_grace_hours: Delay between expiry and account deletion
        """
        self.db = db
        self.trials = TrialRepository(db)
        self.history = TrialHistoryRepository(db)
        self.trial_days = trial_days if trial_days is not None else settings.trial_days
        self.deletion_grace_hours = (
            deletion_grace_hours if deletion_grace_hours is not None else settings.deletion_grace_hours
        )

    async def _activate(self, user: User, now: datetime) -> UserTrial:
        return await self.trials.upsert(
            user.id,
            trial_start_date=now,
            trial_end_date=now + timedelta(days=self.trial_days),
            trial_status="active",
            deletion_scheduled_at=None,
        )

    async def provision_signup_trial(self, user: User, now: Optional[datetime] = None) -> UserTrial:
        """
        Give a newly registered user their trial.

        An email that already used a trial gets an expired trial record
        instead, so it cannot earn a second free trial by re-registering.
        """
        now = now or datetime.utcnow()
        if await self.history.has_used_trial(user.email):
            logger.info(f"Returning user {user.email} registered; no new trial granted")
            return await self.trials.upsert(
                user.id,
                trial_start_date=None,
                trial_end_date=now,
                trial_status="expired",
            )
        trial = await self._activate(user, now)
        logger.info(f"Started {self.trial_days}-day trial for {user.email}")
        return trial

    async def start_trial(self, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Explicit trial start.

        Returns:
            Normalized response with trial dates, or an error with status 400
        """
        now = now or datetime.utcnow()
        existing = await self.trials.get_for_user(user.id)

        if existing and existing.trial_status == "active" and existing.trial_end_date and existing.trial_end_date > now:
            return {
                "error": "You already have an active trial",
                "is_error": True,
                "status": 400,
                "data": {"trial_end_date": _iso(existing.trial_end_date)},
            }

        if existing is not None or await self.history.has_used_trial(user.email):
            return {
                "error": "You have already used your free trial. Please subscribe to continue.",
                "is_error": True,
                "status": 400,
                "data": {"requires_subscription": True},
            }

        trial = await self._activate(user, now)
        logger.info(f"Started {self.trial_days}-day trial for {user.email}")
        return {
            "data": {
                "trial_start_date": _iso(trial.trial_start_date),
                "trial_end_date": _iso(trial.trial_end_date),
                "days_remaining": self.trial_days,
            },
            "is_error": False,
        }

    async def get_trial_status(self, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or datetime.utcnow()
        trial = await self.trials.get_for_user(user.id)
        if trial is None:
            return {"trial_status": None, "days_remaining": 0}
        return {
            "trial_status": trial.trial_status,
            "trial_start_date": _iso(trial.trial_start_date),
            "trial_end_date": _iso(trial.trial_end_date),
            "deletion_scheduled_at": _iso(trial.deletion_scheduled_at),
            "days_remaining": days_remaining(trial.trial_end_date, now),
        }

    async def switch_to_standard(self, user: User) -> Dict[str, Any]:
        """Pause the account: trial status becomes "standard" (no access)"""
        trial = await self.trials.upsert(user.id, trial_status="standard", deletion_scheduled_at=None)
        logger.info(f"User {user.email} switched to standard (paused) account")
        return {"data": {"trial_status": trial.trial_status}, "is_error": False}

    async def expire_trials(self, now: Optional[datetime] = None) -> List[int]:
        """
        Move ended active trials to scheduled_for_deletion.

        Returns:
            IDs of the users whose trials were expired
        """
        now = now or datetime.utcnow()
        expired = []
        for trial in await self.trials.list_ended_active(now):
            trial.trial_status = "scheduled_for_deletion"
            trial.deletion_scheduled_at = now + timedelta(hours=self.deletion_grace_hours)
            trial.updated_at = now
            expired.append(trial.user_id)
        if expired:
            await self.db.flush()
            logger.info(f"Expired {len(expired)} trial(s)")
        return expired
