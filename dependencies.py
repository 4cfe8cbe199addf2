"""
Service factories shared by the routers
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from crud.access import AccessStore
from database import get_db
from services.access_control import evaluate_access
from services.access_service import AccessService
from services.axiestudio_service import AxieStudioClient, AxieStudioService, get_axiestudio_client
from services.billing_service import BillingService
from services.cleanup_service import CleanupService
from services.trial_service import TrialService


def get_access_service(db: AsyncSession = Depends(get_db)) -> AccessService:
    return AccessService(AccessStore(db), evaluate_access)


def get_axiestudio_service(
    db: AsyncSession = Depends(get_db),
    client: AxieStudioClient = Depends(get_axiestudio_client),
    access: AccessService = Depends(get_access_service),
) -> AxieStudioService:
    return AxieStudioService(db, client, access)


def get_trial_service(db: AsyncSession = Depends(get_db)) -> TrialService:
    return TrialService(db)


def get_billing_service(
    db: AsyncSession = Depends(get_db),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
) -> BillingService:
    return BillingService(db, axiestudio)


def get_cleanup_service(
    db: AsyncSession = Depends(get_db),
    trial_service: TrialService = Depends(get_trial_service),
    axiestudio: AxieStudioService = Depends(get_axiestudio_service),
) -> CleanupService:
    return CleanupService(db, trial_service, axiestudio)
