"""
Access control models: the inputs and output of the access decision.
"""
from datetime import datetime
from typing import Optional, Literal
from pydantic import BaseModel, ConfigDict


# Stripe subscription statuses plus the local "not started" placeholder
SUBSCRIPTION_STATUSES = frozenset({
    "active",
    "trialing",
    "canceled",
    "past_due",
    "unpaid",
    "incomplete",
    "incomplete_expired",
    "paused",
    "not_started",
    "none",
})

TRIAL_STATUSES = frozenset({
    "active",
    "expired",
    "scheduled_for_deletion",
    "standard",
    "converted_to_paid",
    "canceled",
})

# Trial states that mean the free trial is used up
EXHAUSTED_TRIAL_STATUSES = frozenset({"expired", "scheduled_for_deletion"})

# Subscription states that keep an account alive
PAYING_SUBSCRIPTION_STATUSES = ("active", "trialing")

AccessType = Literal["paid_subscription", "stripe_trial", "free_trial", "no_access"]
ProtectionLevel = Literal["protected", "trial", "expired", "none"]


class SubscriptionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: str = "none"
    cancel_at_period_end: bool = False
    current_period_end: Optional[datetime] = None


class TrialRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    trial_status: str
    trial_end_date: Optional[datetime] = None
    days_remaining: int = 0


class AccessVerdict(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_access: bool
    access_type: AccessType
    can_create_tool_account: bool
    protection_level: ProtectionLevel
    subscription_status: Optional[str] = None
    trial_status: Optional[str] = None
    is_returning_user: bool = False
    is_expired_trial_user: bool = False
    requires_subscription: bool = False
