"""
Access decision evaluator.

Merges a user's subscription, trial and returning-user history into one
AccessVerdict. Pure: no I/O and no clock reads, so the same inputs always
give the same verdict.
"""
from typing import Optional

from models.access import (
    AccessVerdict,
    SubscriptionRecord,
    TrialRecord,
    SUBSCRIPTION_STATUSES,
    TRIAL_STATUSES,
    EXHAUSTED_TRIAL_STATUSES,
)


def _deny(protection_level: str = "none", **echo) -> AccessVerdict:
    return AccessVerdict(
        has_access=False,
        access_type="no_access",
        can_create_tool_account=False,
        protection_level=protection_level,
        **echo,
    )


def evaluate_access(
    subscription: Optional[SubscriptionRecord],
    trial: Optional[TrialRecord],
    is_returning_user: bool,
) -> AccessVerdict:
    """
    Compute the access verdict. Rules are checked top to bottom, first match wins:

    1. active subscription, not cancelling  -> paid_subscription (protected)
    2. active subscription, cancelling      -> paid_subscription until period end
    3. trialing subscription                -> stripe_trial
    4. active free trial with days left, new user only -> free_trial
    5. returning user whose trial is used up -> no_access (expired)
    6. anything else                         -> no_access (none)

    An unrecognised status in either record yields no_access / none.
    """
    sub_status = subscription.status if subscription else None
    trial_status = trial.trial_status if trial else None
    returning = bool(is_returning_user)

    if sub_status is not None and sub_status not in SUBSCRIPTION_STATUSES:
        return _deny()
    if trial_status is not None and trial_status not in TRIAL_STATUSES:
        return _deny()

    is_expired_trial_user = trial_status in EXHAUSTED_TRIAL_STATUSES
    echo = {
        "subscription_status": sub_status,
        "trial_status": trial_status,
        "is_returning_user": returning,
        "is_expired_trial_user": is_expired_trial_user,
    }

    if sub_status == "active":
        # Cancelled-at-period-end keeps full access until the period ends
        return AccessVerdict(
            has_access=True,
            access_type="paid_subscription",
            can_create_tool_account=True,
            protection_level="protected",
            **echo,
        )

    if sub_status == "trialing":
        return AccessVerdict(
            has_access=True,
            access_type="stripe_trial",
            can_create_tool_account=True,
            protection_level="trial",
            **echo,
        )

    if trial_status == "active" and trial.days_remaining > 0 and not returning:
        return AccessVerdict(
            has_access=True,
            access_type="free_trial",
            can_create_tool_account=True,
            protection_level="trial",
            **echo,
        )

    if returning and is_expired_trial_user:
        return _deny("expired", requires_subscription=True, **echo)

    return _deny(**echo)
