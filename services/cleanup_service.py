"""
Cleanup Service - periodic trial expiry and removal of lapsed accounts
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.ext.asyncio import AsyncSession

from crud.billing import CustomerRepository, SubscriptionRepository
from crud.trial import TrialRepository, TrialHistoryRepository
from crud.user import UserRepository
from database_models import User
from services.trial_service import TrialService

logger = logging.getLogger(__name__)


class CleanupService:
    """
    Runs the trial-cleanup job:

    1. paying customers get their trial marked converted_to_paid and any
       scheduled deletion cleared;
    2. ended trials are scheduled for deletion;
    3. accounts whose deletion date has passed, and that are still not
       paying, are deactivated in AxieStudio, recorded in the trial
       history and deleted.
    """

    def __init__(self, db: AsyncSession, trial_service: TrialService, axiestudio=None):
        self.db = db
        self.trial_service = trial_service
        self.axiestudio = axiestudio
        self.users = UserRepository(db)
        self.customers = CustomerRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.trials = TrialRepository(db)
        self.history = TrialHistoryRepository(db)

    async def _is_paying(self, user_id: int) -> bool:
        customer = await self.customers.get_for_user(user_id)
        if customer is None:
            return False
        return bool(await self.subscriptions.list_paying(customer.customer_id))

    async def protect_paying_customers(self, user_ids) -> int:
        protected = 0
        for user_id in user_ids:
            if await self._is_paying(user_id):
                await self.trials.update_for_user(
                    user_id, trial_status="converted_to_paid", deletion_scheduled_at=None
                )
                protected += 1
        return protected

    async def delete_account(self, user: User) -> None:
        """
        Remove an account while remembering that its email used a trial.
        Also used for self-service account deletion.
        """
        if self.axiestudio is not None:
            result = await self.axiestudio.deactivate_account(user)
            if result.get("is_error"):
                logger.warning(f"AxieStudio deactivation failed for {user.email}: {result.get('error')}")

        trial = await self.trials.get_for_user(user.id)
        await self.history.record(user.email, user_id=user.id, trial=trial)
        await self.users.delete_user(user)
        logger.info(f"Deleted account {user.id} ({user.email})")

    async def run(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Each overdue account is deleted in its own transaction, so a failure
        leaves neither a half-deleted user nor a stray trial-history row.
        """
        now = now or datetime.utcnow()

        ended = await self.trials.list_ended_active(now)
        due = await self.trials.list_due_for_deletion(now)
        candidates = {t.user_id for t in ended} | {t.user_id for t in due}
        protected = await self.protect_paying_customers(candidates)

        expired = await self.trial_service.expire_trials(now)
        await self.db.commit()

        # Plain ids: a rollback below expires every loaded row
        due_user_ids = [t.user_id for t in await self.trials.list_due_for_deletion(now)]

        deleted = 0
        failed = 0
        for user_id in due_user_ids:
            if await self._is_paying(user_id):
                logger.info(f"Skipping deletion of paying user {user_id}")
                continue
            user = await self.users.get_user_by_id(user_id)
            if user is None:
                continue
            try:
                await self.delete_account(user)
                await self.db.commit()
                deleted += 1
            except Exception as e:
                await self.db.rollback()
                failed += 1
                logger.error(f"Failed to delete user {user_id}: {e}", exc_info=True)

        summary = {"protected": protected, "expired": len(expired), "deleted": deleted, "failed": failed}
        logger.info(f"Trial cleanup finished: {summary}")
        return summary
