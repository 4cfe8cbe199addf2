"""
Billing Router - API endpoints for Stripe billing integration
Webhook is defined FIRST to avoid middleware conflicts
"""

import logging
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
import stripe

from auth import get_current_user
from config.product_config import ProductConfig, current_product_config
from config.settings import settings
from database_models import User
from dependencies import get_billing_service
from services.billing_service import BillingService
from utils.responses import service_response

logger = logging.getLogger(__name__)

# Create billing router
billing_router = APIRouter(prefix="/api/billing", tags=["billing"])


class CheckoutRequest(BaseModel):
    price_id: str


class SubscriptionRequest(BaseModel):
    subscription_id: str


# WEBHOOK ENDPOINT - MUST BE DEFINED FIRST TO AVOID MIDDLEWARE CONFLICTS
@billing_router.post("/webhook")
async def stripe_webhook(
    request: Request,
    billing: BillingService = Depends(get_billing_service),
):
    """
    Handle Stripe webhook events with signature verification.

    Only verified events are processed. Always returns 200 OK to Stripe to
    prevent retries; the body says whether the event was handled.
    """
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET environment variable is not set")
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": "Webhook secret not configured"}
        )

    # Raw body is required for signature verification
    payload = await request.body()
    stripe_signature = request.headers.get("stripe-signature")
    if not stripe_signature:
        logger.error("Missing Stripe-Signature header")
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": "Missing signature header"}
        )

    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, webhook_secret)
    except stripe.SignatureVerificationError as e:
        logger.error(f"Stripe webhook signature verification failed: {e}")
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": "Invalid webhook signature"}
        )
    except ValueError as e:
        logger.error(f"Invalid webhook payload: {e}")
        return JSONResponse(
            status_code=200,
            content={"ok": False, "received": True, "error": "Invalid payload format"}
        )

    result = await billing.process_webhook(event)
    return JSONResponse(
        status_code=200,
        content={
            "ok": not result.get("is_error", True),
            "received": True,
            "event_type": event["type"],
        }
    )


@billing_router.post("/checkout")
async def create_checkout_session(
    request: CheckoutRequest,
    user: User = Depends(get_current_user),
    product_config: ProductConfig = Depends(current_product_config),
    billing: BillingService = Depends(get_billing_service),
):
    """Create a Checkout session for a new subscription"""
    result = await billing.create_checkout_session(user, request.price_id, product_config)
    return service_response(result, message="New subscription checkout created")


@billing_router.post("/portal")
async def create_billing_portal_session(
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    result = await billing.create_billing_portal_session(user)
    return service_response(result)


@billing_router.post("/cancel")
async def cancel_subscription(
    request: SubscriptionRequest,
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    """Cancel at the end of the current billing period"""
    result = await billing.cancel_subscription(user, request.subscription_id)
    return service_response(result, message="Subscription canceled successfully")


@billing_router.post("/cancel-immediately")
async def cancel_subscription_immediately(
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    result = await billing.cancel_subscription_immediately(user)
    return service_response(result, message="Subscription canceled immediately")


@billing_router.post("/reactivate")
async def reactivate_subscription(
    request: SubscriptionRequest,
    user: User = Depends(get_current_user),
    billing: BillingService = Depends(get_billing_service),
):
    result = await billing.reactivate_subscription(user, request.subscription_id)
    return service_response(result, message="Subscription reactivated successfully")
