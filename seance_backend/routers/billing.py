from __future__ import annotations

import json
import logging
from typing import Any, Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from seance_backend.auth.dependencies import AuthContext, get_current_user
from seance_backend.config import Settings
from seance_backend.db.deps import get_session
from seance_backend.db.enums import SubscriptionStatusEnum
from seance_backend.db.repositories.subscriptions import SubscriptionsRepository
from seance_backend.db.repositories.users import UsersRepository
from seance_backend.deps import get_app_settings
from seance_backend.schemas.billing import SubscriptionStatusResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["stripe"])

_SUBSCRIPTION_UPSERT_EVENTS = {"customer.subscription.created", "customer.subscription.updated"}
_SUBSCRIPTION_DELETE_EVENT = "customer.subscription.deleted"


def _customer_email(app_settings: Settings, customer_id: str) -> Optional[str]:
    if not app_settings.STRIPE_SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe secret key is not configured.",
        )
    customer = stripe.Customer.retrieve(customer_id, api_key=app_settings.STRIPE_SECRET_KEY)
    return getattr(customer, "email", None)


def _current_period_end(subscription_obj: dict[str, Any]) -> int:
    value = subscription_obj.get("current_period_end")
    if value is None:
        # Newer API versions report the period on each subscription item.
        items = (subscription_obj.get("items") or {}).get("data") or []
        value = max((item.get("current_period_end") or 0 for item in items), default=0)
    return int(value)


def _parse_status(value: Any) -> SubscriptionStatusEnum:
    try:
        return SubscriptionStatusEnum(value)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unsupported subscription status: {value}",
        ) from exc


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    session: Session = Depends(get_session),
    app_settings: Settings = Depends(get_app_settings),
):
    webhook_secret = app_settings.STRIPE_WEBHOOK_SECRET
    if not webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe webhook secret is not configured.",
        )

    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe signature header.")

    payload = await request.body()
    try:
        stripe.Webhook.construct_event(payload, signature, webhook_secret)
    except stripe.SignatureVerificationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe signature.") from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe payload.") from exc

    # The signature covers the raw payload; read the event from it as plain JSON.
    event = json.loads(payload)
    event_type = event.get("type")
    data_object = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        logger.info("Checkout completed", extra={"customer_email": data_object.get("customer_email")})
        return {"received": True}

    if event_type not in _SUBSCRIPTION_UPSERT_EVENTS and event_type != _SUBSCRIPTION_DELETE_EVENT:
        logger.info("Unhandled Stripe event", extra={"event_type": event_type})
        return {"received": True}

    customer_id = data_object.get("customer")
    subscription_id = data_object.get("id")
    if not customer_id or not subscription_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe subscription payload.")

    email = _customer_email(app_settings, customer_id)
    if not email:
        logger.warning("Stripe customer has no email", extra={"customer_id": customer_id})
        return {"received": True}

    subscriptions = SubscriptionsRepository(session)
    if event_type == _SUBSCRIPTION_DELETE_EVENT:
        subscriptions.delete(email)
        logger.info("Subscription deleted", extra={"subscription_id": subscription_id})
        return {"received": True}

    subscription = subscriptions.upsert(
        email=email,
        customer_id=customer_id,
        subscription_id=subscription_id,
        status=_parse_status(data_object.get("status")),
        current_period_end=_current_period_end(data_object),
        cancel_at_period_end=bool(data_object.get("cancel_at_period_end")),
    )
    users = UsersRepository(session)
    user = users.get_by_email(email)
    if user is not None:
        users.set_stripe_ids(user, customer_id=customer_id, subscription_id=subscription_id)
    logger.info(
        "Subscription stored",
        extra={"subscription_id": subscription_id, "status": subscription.status.value},
    )
    return {"received": True}


@router.get("/subscription", response_model=SubscriptionStatusResponse)
def get_subscription(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
) -> SubscriptionStatusResponse:
    subscription = SubscriptionsRepository(session).get(auth.email)
    if subscription is None:
        return SubscriptionStatusResponse(hasSubscription=False)
    return SubscriptionStatusResponse(
        hasSubscription=True,
        status=subscription.status,
        currentPeriodEnd=subscription.current_period_end,
        cancelAtPeriodEnd=subscription.cancel_at_period_end,
    )
