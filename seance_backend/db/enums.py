from enum import Enum


class SubscriptionStatusEnum(str, Enum):
    active = "active"
    trialing = "trialing"
    past_due = "past_due"
    canceled = "canceled"
    incomplete = "incomplete"
    incomplete_expired = "incomplete_expired"
    unpaid = "unpaid"
    paused = "paused"


ACTIVE_SUBSCRIPTION_STATUSES = frozenset({SubscriptionStatusEnum.active, SubscriptionStatusEnum.trialing})
