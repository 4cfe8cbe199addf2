"""
AccessStore - storage side of the access decision.

Loads the three inputs the evaluator needs (subscription record, trial
record, returning-user flag) and converts ORM rows into plain records.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from crud.billing import CustomerRepository, SubscriptionRepository
from crud.trial import TrialRepository, TrialHistoryRepository, days_remaining
from database_models import User
from models.access import SubscriptionRecord, TrialRecord


class AccessStore:

    def __init__(self, db: AsyncSession):
        self.customers = CustomerRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.trials = TrialRepository(db)
        self.history = TrialHistoryRepository(db)

    async def load_subscription(self, user: User) -> Optional[SubscriptionRecord]:
        customer = await self.customers.get_for_user(user.id)
        if customer is None:
            return None
        row = await self.subscriptions.get_current_for_customer(customer.customer_id)
        if row is None:
            return None
        return SubscriptionRecord(
            status=row.status,
            cancel_at_period_end=bool(row.cancel_at_period_end),
            current_period_end=row.current_period_end,
        )

    async def load_trial(self, user: User, now: Optional[datetime] = None) -> Optional[TrialRecord]:
        row = await self.trials.get_for_user(user.id)
        if row is None:
            return None
        now = now or datetime.utcnow()
        return TrialRecord(
            trial_status=row.trial_status,
            trial_end_date=row.trial_end_date,
            days_remaining=days_remaining(row.trial_end_date, now),
        )

    async def is_returning_user(self, user: User) -> bool:
        return await self.history.has_used_trial(user.email)
