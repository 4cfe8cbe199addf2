"""
Access Service - loads a user's records and runs the access evaluator
"""
import logging
from typing import Callable, Optional

from crud.access import AccessStore
from database_models import User
from models.access import AccessVerdict, SubscriptionRecord, TrialRecord
from services.access_control import evaluate_access

logger = logging.getLogger(__name__)

Evaluator = Callable[[Optional[SubscriptionRecord], Optional[TrialRecord], bool], AccessVerdict]


class AccessService:
    """
    Combines a storage interface with an evaluator. Both are injected so
    handlers and tests can swap either one.
    """

    def __init__(self, store: AccessStore, evaluator: Evaluator = evaluate_access):
        self.store = store
        self.evaluator = evaluator

    async def verdict_for(self, user: User) -> AccessVerdict:
        subscription = await self.store.load_subscription(user)
        trial = await self.store.load_trial(user)
        returning = await self.store.is_returning_user(user)
        verdict = self.evaluator(subscription, trial, returning)
        logger.info(
            f"Access check user={user.id} access_type={verdict.access_type} "
            f"protection={verdict.protection_level} returning={returning}"
        )
        return verdict
