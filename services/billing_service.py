"""
Billing Service - Stripe subscription lifecycle and the local subscription mirror
"""

import math
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

import stripe
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from config.product_config import ProductConfig
from crud.billing import CustomerRepository, SubscriptionRepository
from crud.trial import TrialRepository
from crud.user import UserRepository
from database_models import StripeSubscription, User
from models.access import PAYING_SUBSCRIPTION_STATUSES

logger = logging.getLogger(__name__)

# Initialize Stripe client
if settings.stripe_secret_key:
    stripe.api_key = settings.stripe_secret_key
else:
    logger.warning("STRIPE_SECRET_KEY is not set. Stripe functionality will be unavailable.")

SUBSCRIPTION_EVENTS = (
    "customer.subscription.created",
    "customer.subscription.updated",
    "customer.subscription.deleted",
)


def _from_unix(value: Optional[int]) -> Optional[datetime]:
    """Stripe timestamps are unix seconds; the database stores naive UTC"""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _first_item(subscription) -> Optional[Dict[str, Any]]:
    items = subscription.get("items") or {}
    data = items.get("data") or []
    return data[0] if data else None


def _period_field(subscription, name: str) -> Optional[int]:
    # Newer Stripe API versions report the billing period on the subscription item
    value = subscription.get(name)
    if value is None:
        item = _first_item(subscription)
        value = item.get(name) if item else None
    return value


def _price_id(subscription) -> Optional[str]:
    item = _first_item(subscription)
    if not item:
        return None
    price = item.get("price") or {}
    return price.get("id")


class BillingService:
    """
    Service class for handling billing-related business logic.
    All public methods return {"data": ..., "is_error": False} or
    {"error": str, "is_error": True, "status": int}.
    """

    def __init__(self, db: AsyncSession, axiestudio=None):
        """
        Args:
            db: AsyncSession instance for database operations
            axiestudio: Optional AxieStudioService used to mirror access changes
        """
        self.db = db
        self.axiestudio = axiestudio
        self.customers = CustomerRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.trials = TrialRepository(db)
        self.users = UserRepository(db)

    def _stripe_unavailable(self, action: str) -> Optional[Dict[str, Any]]:
        if not settings.stripe_secret_key:
            logger.error(f"STRIPE_SECRET_KEY is not set. Cannot {action}.")
            return {"error": f"STRIPE_SECRET_KEY is not set. Cannot {action}.", "is_error": True, "status": 503}
        return None

    async def _get_or_create_customer_id(self, user: User) -> str:
        customer = await self.customers.get_for_user(user.id)
        if customer:
            return customer.customer_id

        created = stripe.Customer.create(
            email=user.email,
            metadata={"user_id": str(user.id)},
        )
        await self.customers.create(user.id, created["id"])
        logger.info(f"Created Stripe customer {created['id']} for user {user.id}")
        return created["id"]

    async def _owned_subscription(self, user: User, subscription_id: str):
        """Retrieve a Stripe subscription and check it belongs to the user"""
        customer = await self.customers.get_for_user(user.id)
        if customer is None:
            return None, {"error": "Customer not found", "is_error": True, "status": 404}
        subscription = stripe.Subscription.retrieve(subscription_id)
        if subscription.get("customer") != customer.customer_id:
            logger.warning(f"User {user.id} tried to modify subscription {subscription_id} they do not own")
            return None, {"error": "Subscription does not belong to this account", "is_error": True, "status": 403}
        return subscription, None

    async def _mirror(self, customer_id: str, subscription, status: Optional[str] = None):
        return await self.subscriptions.upsert(
            customer_id=customer_id,
            subscription_id=subscription["id"],
            status=status or subscription.get("status") or "none",
            cancel_at_period_end=bool(subscription.get("cancel_at_period_end")),
            price_id=_price_id(subscription),
            current_period_start=_from_unix(_period_field(subscription, "current_period_start")),
            current_period_end=_from_unix(_period_field(subscription, "current_period_end")),
        )

    async def _sync_tool_account(self, user: User) -> None:
        if self.axiestudio is None:
            return
        result = await self.axiestudio.sync_account_status(user)
        if result.get("is_error"):
            logger.warning(f"AxieStudio sync failed for user {user.id}: {result.get('error')}")

    async def create_checkout_session(self, user: User, price_id: str, product_config: ProductConfig):
        """
        Create a Stripe Checkout session for a new subscription.

        Args:
            user: Authenticated user
            price_id: Stripe price; must be one of the configured products
            product_config: Current product configuration

        Returns:
            Normalized response with checkout_url and session_id
        """
        unavailable = self._stripe_unavailable("create checkout session")
        if unavailable:
            return unavailable

        if not price_id:
            return {"error": "Price ID required", "is_error": True, "status": 400}
        if price_id not in product_config.price_ids():
            return {"error": "Unknown price ID", "is_error": True, "status": 400}

        try:
            customer_id = await self._get_or_create_customer_id(user)
            frontend_url = settings.frontend_url or "http://localhost:5173"

            checkout_session = stripe.checkout.Session.create(
                customer=customer_id,
                payment_method_types=["card"],
                line_items=[{
                    "price": price_id,
                    "quantity": 1,
                }],
                mode="subscription",
                success_url=f"{frontend_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{frontend_url}/account",
                metadata={"user_id": str(user.id)},
            )

            return {
                "data": {"checkout_url": checkout_session["url"], "session_id": checkout_session["id"]},
                "is_error": False,
            }
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}

    async def create_billing_portal_session(self, user: User):
        """
        Create a Stripe Billing Portal session for the user's customer.

        Uses the first portal configuration, creating one if the account has
        none; falls back to an unconfigured session if that fails.
        """
        unavailable = self._stripe_unavailable("create billing portal session")
        if unavailable:
            return unavailable

        customer = await self.customers.get_for_user(user.id)
        if customer is None:
            return {"error": "Customer not found", "is_error": True, "status": 404}

        return_url = f"{settings.frontend_url or 'http://localhost:5173'}/dashboard"
        try:
            try:
                configurations = stripe.billing_portal.Configuration.list(limit=1)
                if configurations["data"]:
                    config_id = configurations["data"][0]["id"]
                else:
                    config_id = stripe.billing_portal.Configuration.create(
                        business_profile={"headline": "Axie Studio - Manage Your Subscription"},
                        features={
                            "subscription_cancel": {"enabled": True, "mode": "at_period_end"},
                            "payment_method_update": {"enabled": True},
                            "invoice_history": {"enabled": True},
                        },
                    )["id"]
                portal_session = stripe.billing_portal.Session.create(
                    customer=customer.customer_id,
                    return_url=return_url,
                    configuration=config_id,
                )
            except stripe.StripeError as e:
                logger.warning(f"Portal configuration failed ({e}); creating session without configuration")
                portal_session = stripe.billing_portal.Session.create(
                    customer=customer.customer_id,
                    return_url=return_url,
                )
            return {"data": {"portal_url": portal_session["url"]}, "is_error": False}
        except stripe.StripeError as e:
            logger.error(f"Failed to create billing portal session: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}

    async def cancel_subscription(self, user: User, subscription_id: str, now: Optional[datetime] = None):
        """
        Cancel at period end. Access continues until the period ends; the
        account is scheduled for deletion a grace period after that.
        """
        unavailable = self._stripe_unavailable("cancel subscription")
        if unavailable:
            return unavailable
        if not subscription_id:
            return {"error": "Subscription ID is required", "is_error": True, "status": 400}

        try:
            current, error = await self._owned_subscription(user, subscription_id)
            if error:
                return error

            canceled = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
            row = await self._mirror(current["customer"], canceled)

            period_end = row.current_period_end or (now or datetime.utcnow())
            deletion_date = period_end + timedelta(hours=settings.deletion_grace_hours)
            trial = await self.trials.update_for_user(
                user.id, trial_status="canceled", deletion_scheduled_at=deletion_date
            )
            if trial is None:
                await self.trials.upsert(user.id, trial_status="canceled", deletion_scheduled_at=deletion_date)

            logger.info(
                f"Subscription {subscription_id} for {user.email} cancels at {period_end.isoformat()}; "
                f"deletion scheduled {deletion_date.isoformat()}"
            )
            return {
                "data": {
                    "cancellation_effective_date": deletion_date.isoformat(),
                    "subscription": {
                        "id": subscription_id,
                        "status": row.status,
                        "cancel_at_period_end": True,
                        "current_period_end": period_end.isoformat(),
                    },
                },
                "is_error": False,
            }
        except stripe.StripeError as e:
            logger.error(f"Failed to cancel subscription {subscription_id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 400}

    async def cancel_subscription_immediately(self, user: User, now: Optional[datetime] = None):
        """Cancel every paying subscription now and remove access"""
        unavailable = self._stripe_unavailable("cancel subscription")
        if unavailable:
            return unavailable

        now = now or datetime.utcnow()
        customer = await self.customers.get_for_user(user.id)
        if customer is None:
            return {"data": {"canceled": []}, "is_error": False}

        canceled_ids = []
        try:
            for row in await self.subscriptions.list_paying(customer.customer_id):
                stripe.Subscription.cancel(row.subscription_id)
                await self.subscriptions.update_status(
                    row.subscription_id, status="canceled", cancel_at_period_end=False
                )
                canceled_ids.append(row.subscription_id)
        except stripe.StripeError as e:
            logger.error(f"Immediate cancellation failed for user {user.id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}

        await self.trials.update_for_user(user.id, trial_status="expired", trial_end_date=now)
        if self.axiestudio is not None:
            result = await self.axiestudio.deactivate_account(user)
            if result.get("is_error"):
                logger.warning(f"AxieStudio deactivation failed for user {user.id}: {result.get('error')}")

        logger.info(f"Immediately canceled {len(canceled_ids)} subscription(s) for {user.email}")
        return {"data": {"canceled": canceled_ids}, "is_error": False}

    async def reactivate_subscription(self, user: User, subscription_id: str, now: Optional[datetime] = None):
        """
        Undo a pending cancellation. Time left in the current period is
        credited by pushing the next billing date out by the same amount.
        """
        unavailable = self._stripe_unavailable("reactivate subscription")
        if unavailable:
            return unavailable
        if not subscription_id:
            return {"error": "Subscription ID is required", "is_error": True, "status": 400}

        try:
            current, error = await self._owned_subscription(user, subscription_id)
            if error:
                return error

            if not current.get("cancel_at_period_end"):
                logger.info(f"Subscription {subscription_id} is not pending cancellation; reactivating anyway")

            now_ts = int((now or datetime.utcnow()).replace(tzinfo=timezone.utc).timestamp())
            period_end_ts = _period_field(current, "current_period_end") or now_ts
            remaining_seconds = max(0, period_end_ts - now_ts)
            remaining_days = math.ceil(remaining_seconds / 86400)

            reactivated = stripe.Subscription.modify(subscription_id, cancel_at_period_end=False)
            if remaining_days > 0:
                reactivated = stripe.Subscription.modify(
                    subscription_id,
                    proration_behavior="none",
                    trial_end=period_end_ts + remaining_seconds,
                )

            await self._mirror(current["customer"], reactivated, status="active")
            await self.trials.update_for_user(
                user.id, trial_status="converted_to_paid", deletion_scheduled_at=None
            )

            if self.axiestudio is not None:
                result = await self.axiestudio.restore_account(user)
                if result.get("is_error"):
                    logger.warning(f"AxieStudio reactivation failed for user {user.id}: {result.get('error')}")

            logger.info(f"Subscription {subscription_id} reactivated with {remaining_days} day(s) credit")
            return {
                "data": {
                    "credit_applied": remaining_days,
                    "subscription": {
                        "id": subscription_id,
                        "status": "active",
                        "current_period_end": _period_field(reactivated, "current_period_end"),
                    },
                },
                "is_error": False,
            }
        except stripe.StripeError as e:
            logger.error(f"Failed to reactivate subscription {subscription_id}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 400}

    async def _apply_subscription_state(self, customer_id: str, row: StripeSubscription, now: datetime) -> None:
        """
        Carry a subscription change over to the trial record and tool account.

        A paying subscription that is set to cancel at period end keeps the
        trial in ``canceled`` with deletion at period end plus the grace
        period, the same schedule the cancel route writes.
        """
        customer = await self.customers.get_by_customer_id(customer_id)
        if customer is None:
            logger.warning(f"Stripe customer {customer_id} has no local user")
            return
        user = await self.users.get_user_by_id(customer.user_id)
        if user is None:
            return

        grace = timedelta(hours=settings.deletion_grace_hours)
        if row.status in PAYING_SUBSCRIPTION_STATUSES and row.cancel_at_period_end:
            await self.trials.update_for_user(
                user.id,
                trial_status="canceled",
                deletion_scheduled_at=(row.current_period_end or now) + grace,
            )
        elif row.status in PAYING_SUBSCRIPTION_STATUSES:
            await self.trials.update_for_user(user.id, trial_status="converted_to_paid", deletion_scheduled_at=None)
        elif row.status == "canceled":
            await self.trials.update_for_user(user.id, trial_status="canceled", deletion_scheduled_at=now + grace)
        await self._sync_tool_account(user)

    async def sync_customer_from_stripe(self, customer_id: str, now: Optional[datetime] = None):
        """Pull the customer's latest subscription from Stripe into the mirror"""
        now = now or datetime.utcnow()
        subscriptions = stripe.Subscription.list(customer=customer_id, limit=1, status="all")
        data = subscriptions.get("data") or []
        if not data:
            logger.info(f"No subscriptions for customer {customer_id}")
            return None
        row = await self._mirror(customer_id, data[0])
        await self._apply_subscription_state(customer_id, row, now)
        return row

    async def process_webhook(self, event, now: Optional[datetime] = None):
        """
        Process a verified Stripe webhook event.

        Args:
            event: Verified Stripe Event (from webhook signature verification)

        Returns:
            Normalized response: {"data": {"handled": bool}, "is_error": False} or an error
        """
        now = now or datetime.utcnow()
        event_type = event["type"]
        obj = event["data"]["object"]
        logger.info(f"Processing Stripe webhook event: {event_type}")

        try:
            if event_type == "checkout.session.completed":
                if obj.get("mode") != "subscription" or not obj.get("customer"):
                    return {"data": {"handled": False}, "is_error": False}
                await self.sync_customer_from_stripe(obj["customer"], now)
                return {"data": {"handled": True}, "is_error": False}

            if event_type in SUBSCRIPTION_EVENTS:
                status = "canceled" if event_type == "customer.subscription.deleted" else None
                row = await self._mirror(obj["customer"], obj, status=status)
                await self._apply_subscription_state(obj["customer"], row, now)
                return {"data": {"handled": True}, "is_error": False}

            logger.info(f"Ignoring Stripe event {event_type}")
            return {"data": {"handled": False}, "is_error": False}
        except stripe.StripeError as e:
            logger.error(f"Error processing webhook {event_type}: {e}", exc_info=True)
            return {"error": str(e), "is_error": True, "status": 502}
