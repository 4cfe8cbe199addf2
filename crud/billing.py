"""
Repositories for the local Stripe customer and subscription mirror
"""

from datetime import datetime
from typing import Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from database_models import StripeCustomer, StripeSubscription
from models.access import PAYING_SUBSCRIPTION_STATUSES


class CustomerRepository:
    """Maps users to Stripe customer IDs"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_user(self, user_id: int) -> Optional[StripeCustomer]:
        """Return the live (not soft-deleted) customer row for a user"""
        result = await self.db.execute(
            select(StripeCustomer).where(
                StripeCustomer.user_id == user_id,
                StripeCustomer.deleted_at.is_(None),
            )
        )
        return result.scalar_one_or_none()

    async def get_by_customer_id(self, customer_id: str) -> Optional[StripeCustomer]:
        result = await self.db.execute(
            select(StripeCustomer).where(StripeCustomer.customer_id == customer_id)
        )
        return result.scalar_one_or_none()

    async def create(self, user_id: int, customer_id: str) -> StripeCustomer:
        customer = StripeCustomer(user_id=user_id, customer_id=customer_id)
        self.db.add(customer)
        await self.db.flush()
        return customer


class SubscriptionRepository:
    """
    Read/write access to the subscription mirror.
    Writes only ever copy what Stripe reported.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_subscription_id(self, subscription_id: str) -> Optional[StripeSubscription]:
        result = await self.db.execute(
            select(StripeSubscription).where(StripeSubscription.subscription_id == subscription_id)
        )
        return result.scalar_one_or_none()

    async def list_for_customer(self, customer_id: str) -> Sequence[StripeSubscription]:
        result = await self.db.execute(
            select(StripeSubscription)
            .where(StripeSubscription.customer_id == customer_id)
            .order_by(StripeSubscription.updated_at.desc(), StripeSubscription.id.desc())
        )
        return result.scalars().all()

    async def get_current_for_customer(self, customer_id: str) -> Optional[StripeSubscription]:
        """
        The subscription that decides access: a paying one if any exists,
        otherwise the most recently updated row.
        """
        rows = await self.list_for_customer(customer_id)
        for row in rows:
            if row.status in PAYING_SUBSCRIPTION_STATUSES:
                return row
        return rows[0] if rows else None

    async def list_paying(self, customer_id: str) -> Sequence[StripeSubscription]:
        result = await self.db.execute(
            select(StripeSubscription).where(
                StripeSubscription.customer_id == customer_id,
                StripeSubscription.status.in_(PAYING_SUBSCRIPTION_STATUSES),
            )
        )
        return result.scalars().all()

    async def upsert(
        self,
        customer_id: str,
        subscription_id: str,
        status: str,
        cancel_at_period_end: bool = False,
        price_id: Optional[str] = None,
        current_period_start: Optional[datetime] = None,
        current_period_end: Optional[datetime] = None,
    ) -> StripeSubscription:
        row = await self.get_by_subscription_id(subscription_id)
        if row is None:
            row = StripeSubscription(customer_id=customer_id, subscription_id=subscription_id)
            self.db.add(row)
        row.customer_id = customer_id
        row.status = status
        row.cancel_at_period_end = cancel_at_period_end
        if price_id is not None:
            row.price_id = price_id
        if current_period_start is not None:
            row.current_period_start = current_period_start
        if current_period_end is not None:
            row.current_period_end = current_period_end
        row.updated_at = datetime.utcnow()
        await self.db.flush()
        return row

    async def update_status(self, subscription_id: str, **fields) -> Optional[StripeSubscription]:
        row = await self.get_by_subscription_id(subscription_id)
        if row is None:
            return None
        for key, value in fields.items():
            setattr(row, key, value)
        row.updated_at = datetime.utcnow()
        await self.db.flush()
        return row
