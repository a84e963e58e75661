import time
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from seance_backend.db.enums import ACTIVE_SUBSCRIPTION_STATUSES, SubscriptionStatusEnum
from seance_backend.db.models import Subscription


class SubscriptionsRepository:
    """Stripe subscription state keyed by customer email."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, email: str) -> Optional[Subscription]:
        if not email:
            return None
        stmt = select(Subscription).where(Subscription.email == email.strip().lower())
        return self.session.scalars(stmt).first()

    def upsert(
        self,
        *,
        email: str,
        customer_id: str,
        subscription_id: str,
        status: SubscriptionStatusEnum,
        current_period_end: int,
        cancel_at_period_end: bool,
    ) -> Subscription:
        if not email:
            raise ValueError("User email is required")
        subscription = self.get(email)
        if subscription is None:
            subscription = Subscription(email=email.strip().lower())
            self.session.add(subscription)
        subscription.customer_id = customer_id
        subscription.subscription_id = subscription_id
        subscription.status = status
        subscription.current_period_end = current_period_end
        subscription.cancel_at_period_end = cancel_at_period_end
        self.session.commit()
        self.session.refresh(subscription)
        return subscription

    def delete(self, email: str) -> None:
        if not email:
            return
        self.session.execute(delete(Subscription).where(Subscription.email == email.strip().lower()))
        self.session.commit()

    def has_active(self, email: str, *, now: Optional[float] = None) -> bool:
        subscription = self.get(email)
        if subscription is None:
            return False
        current_time = time.time() if now is None else now
        return (
            subscription.status in ACTIVE_SUBSCRIPTION_STATUSES
            and subscription.current_period_end > current_time
        )
