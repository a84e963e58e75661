from __future__ import annotations

from pydantic import BaseModel

from seance_backend.db.enums import SubscriptionStatusEnum


class SubscriptionStatusResponse(BaseModel):
    hasSubscription: bool
    status: SubscriptionStatusEnum | None = None
    currentPeriodEnd: int | None = None
    cancelAtPeriodEnd: bool | None = None
