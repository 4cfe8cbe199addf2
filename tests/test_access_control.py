"""
Unit tests for the access decision evaluator
"""
import itertools
from datetime import datetime

import pytest

from models.access import SubscriptionRecord, TrialRecord, SUBSCRIPTION_STATUSES, TRIAL_STATUSES
from services.access_control import evaluate_access

PERIOD_END = datetime(2030, 1, 31)


def test_free_trial_with_days_left():
    verdict = evaluate_access(None, TrialRecord(trial_status="active", days_remaining=3), False)

    assert verdict.access_type == "free_trial"
    assert verdict.has_access is True
    assert verdict.can_create_tool_account is True
    assert verdict.protection_level == "trial"


def test_active_subscription_pending_cancellation_keeps_access():
    subscription = SubscriptionRecord(status="active", cancel_at_period_end=True, current_period_end=PERIOD_END)
    for trial in (None, TrialRecord(trial_status="canceled"), TrialRecord(trial_status="active", days_remaining=5)):
        verdict = evaluate_access(subscription, trial, False)
        assert verdict.access_type == "paid_subscription"
        assert verdict.has_access is True
        assert verdict.can_create_tool_account is True
        assert verdict.protection_level == "protected"


def test_active_subscription():
    verdict = evaluate_access(SubscriptionRecord(status="active"), None, False)

    assert verdict.access_type == "paid_subscription"
    assert verdict.can_create_tool_account is True
    assert verdict.subscription_status == "active"


def test_trialing_subscription():
    verdict = evaluate_access(SubscriptionRecord(status="trialing"), None, False)

    assert verdict.access_type == "stripe_trial"
    assert verdict.has_access is True
    assert verdict.can_create_tool_account is True
    assert verdict.protection_level == "trial"


def test_returning_user_with_expired_trial_is_blocked():
    verdict = evaluate_access(None, TrialRecord(trial_status="expired"), True)

    assert verdict.access_type == "no_access"
    assert verdict.has_access is False
    assert verdict.can_create_tool_account is False
    assert verdict.protection_level == "expired"
    assert verdict.requires_subscription is True
    assert verdict.is_returning_user is True
    assert verdict.is_expired_trial_user is True


def test_returning_user_scheduled_for_deletion_is_blocked():
    verdict = evaluate_access(None, TrialRecord(trial_status="scheduled_for_deletion"), True)

    assert verdict.protection_level == "expired"
    assert verdict.can_create_tool_account is False


def test_no_records_means_no_access():
    verdict = evaluate_access(None, None, False)

    assert verdict.access_type == "no_access"
    assert verdict.has_access is False
    assert verdict.protection_level == "none"
    assert verdict.subscription_status is None
    assert verdict.trial_status is None


def test_returning_user_cannot_restart_active_trial():
    verdict = evaluate_access(None, TrialRecord(trial_status="active", days_remaining=6), True)

    assert verdict.access_type == "no_access"
    assert verdict.protection_level == "none"


def test_active_trial_with_no_days_left():
    verdict = evaluate_access(None, TrialRecord(trial_status="active", days_remaining=0), False)

    assert verdict.access_type == "no_access"
    assert verdict.can_create_tool_account is False


@pytest.mark.parametrize("status", ["canceled", "past_due", "unpaid", "incomplete", "paused", "not_started", "none"])
def test_non_paying_subscription_without_trial(status):
    verdict = evaluate_access(SubscriptionRecord(status=status), None, False)

    assert verdict.has_access is False
    assert verdict.protection_level == "none"


@pytest.mark.parametrize("trial_status", ["standard", "converted_to_paid", "canceled", "expired"])
def test_new_user_inactive_trial_states(trial_status):
    verdict = evaluate_access(None, TrialRecord(trial_status=trial_status, days_remaining=4), False)

    assert verdict.access_type == "no_access"
    assert verdict.protection_level == "none"


def test_paid_subscription_wins_over_expired_returning_user():
    verdict = evaluate_access(SubscriptionRecord(status="active"), TrialRecord(trial_status="expired"), True)

    assert verdict.access_type == "paid_subscription"
    assert verdict.is_expired_trial_user is True


def test_unknown_subscription_status_fails_closed():
    verdict = evaluate_access(
        SubscriptionRecord(status="ACTIVE"),
        TrialRecord(trial_status="active", days_remaining=5),
        False,
    )

    assert verdict.has_access is False
    assert verdict.access_type == "no_access"
    assert verdict.protection_level == "none"


def test_unknown_trial_status_fails_closed():
    verdict = evaluate_access(SubscriptionRecord(status="active"), TrialRecord(trial_status="bogus"), False)

    assert verdict.has_access is False
    assert verdict.protection_level == "none"


def test_evaluation_is_repeatable():
    subscription = SubscriptionRecord(status="active", cancel_at_period_end=True, current_period_end=PERIOD_END)
    trial = TrialRecord(trial_status="canceled", trial_end_date=PERIOD_END)

    assert evaluate_access(subscription, trial, False) == evaluate_access(subscription, trial, False)


def test_invariants_hold_for_every_status_combination():
    subscriptions = [None] + [
        SubscriptionRecord(status=status, cancel_at_period_end=cancel)
        for status in sorted(SUBSCRIPTION_STATUSES)
        for cancel in (False, True)
    ]
    trials = [None] + [
        TrialRecord(trial_status=status, days_remaining=days)
        for status in sorted(TRIAL_STATUSES)
        for days in (0, 3)
    ]

    for subscription, trial, returning in itertools.product(subscriptions, trials, (False, True)):
        verdict = evaluate_access(subscription, trial, returning)

        assert verdict.has_access == (verdict.access_type != "no_access")
        assert verdict.can_create_tool_account == verdict.has_access
        if verdict.has_access:
            assert verdict.protection_level in ("protected", "trial")
        else:
            assert verdict.protection_level in ("expired", "none")

        if subscription and subscription.status == "active" and not subscription.cancel_at_period_end:
            assert verdict.access_type == "paid_subscription"
            assert verdict.can_create_tool_account is True

        if returning and trial and trial.trial_status == "expired":
            paying = subscription is not None and subscription.status in ("active", "trialing")
            if not paying:
                assert verdict.can_create_tool_account is False
                assert verdict.protection_level == "expired"
